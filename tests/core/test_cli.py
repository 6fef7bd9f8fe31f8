"""CLI 入口测试 -- python -m scorebase.core <command>"""

import sys

import pytest
from scorebase.core.__main__ import main


@pytest.fixture
def db_env(tmp_path, monkeypatch):
    monkeypatch.setenv("SCOREBASE_DB_PATH", str(tmp_path / "sqlite" / "scorebase.db"))
    monkeypatch.setenv("SCOREBASE_EVENT_DB_PATH", str(tmp_path / "sqlite" / "events.db"))
    return tmp_path


def _run(monkeypatch, *args: str) -> None:
    monkeypatch.setattr(sys, "argv", ["scorebase.core", *args])
    main()


class TestCLI:
    def test_no_command_prints_usage(self, monkeypatch, capsys):
        with pytest.raises(SystemExit) as exc_info:
            _run(monkeypatch)
        assert exc_info.value.code == 1
        assert "reconcile-projections" in capsys.readouterr().out

    def test_unknown_command(self, monkeypatch, capsys):
        with pytest.raises(SystemExit) as exc_info:
            _run(monkeypatch, "drop-everything")
        assert exc_info.value.code == 1
        assert "drop-everything" in capsys.readouterr().out

    def test_reconcile_on_empty_log(self, db_env, monkeypatch, capsys):
        _run(monkeypatch, "reconcile-projections")
        out = capsys.readouterr().out
        assert "共 0 条事件" in out
        assert (db_env / "sqlite" / "events.db").exists()

    def test_purge_commands(self, db_env, monkeypatch, capsys):
        _run(monkeypatch, "purge-expired-events")
        _run(monkeypatch, "purge-stale-connections")
        out = capsys.readouterr().out
        assert "删除 0 条过期事件" in out
        assert "删除 0 条过期连接" in out
