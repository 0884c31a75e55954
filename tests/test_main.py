# tests/test_main.py
import pytest

import main


@pytest.fixture
def isolated_cache(tmp_path, monkeypatch):
    monkeypatch.setenv("CHESS_INSIGHTS_CACHE__DB_FILEPATH", str(tmp_path / "cli.db"))


def test_parser_reads_analyze_command():
    args = main.build_parser().parse_args(["analyze", "Bob", "--limit", "5"])

    assert (args.command, args.username, args.limit) == ("analyze", "Bob", 5)


@pytest.mark.parametrize("argv, expected", [
    (["--clear-cache"], "*"),
    (["--clear-cache", "bob"], "bob"),
    ([], None),
])
def test_parser_clear_cache_scope(argv, expected):
    assert main.build_parser().parse_args(argv).clear_cache == expected


def test_no_command_prints_help(capsys):
    assert main.main([]) == 2
    assert "usage" in capsys.readouterr().out


def test_cache_stats_on_empty_cache(isolated_cache, capsys):
    assert main.main(["--log-level", "WARNING", "--cache-stats"]) == 0

    out = capsys.readouterr().out
    assert "Durable games:      0" in out
    assert "Cached months:      0" in out


def test_clear_cache_for_one_player(isolated_cache, capsys):
    assert main.main(["--log-level", "WARNING", "--clear-cache", "bob"]) == 0

    assert "Cache cleared for bob." in capsys.readouterr().out
