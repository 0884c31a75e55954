# tests/test_tracing.py
from types import SimpleNamespace

import pytest

from chess_insights.tracing import CorrelationID, trace_stage


class EchoStage:
    @trace_stage
    async def execute(self, context):
        return context


class FailingStage:
    @trace_stage
    async def execute(self, context):
        raise RuntimeError("boom")


def test_start_generates_distinct_run_ids():
    first, second = CorrelationID.start("bob"), CorrelationID.start("bob")

    assert first.run_id.startswith("run-")
    assert first.run_id != second.run_id
    assert first.short_id == first.run_id


def test_short_id_includes_game_prefix():
    cid = CorrelationID(run_id="run-1234abcd", username="bob", game_uuid="0123456789abcdef")

    assert cid.short_id == "run-1234abcd:01234567"


@pytest.mark.asyncio
async def test_trace_stage_returns_stage_result():
    context = SimpleNamespace(game=SimpleNamespace(uuid="g1"))

    assert await EchoStage().execute(context) is context


@pytest.mark.asyncio
async def test_trace_stage_propagates_errors():
    with pytest.raises(RuntimeError, match="boom"):
        await FailingStage().execute(SimpleNamespace())
