import io
import sys
from contextlib import redirect_stderr, redirect_stdout
from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest

from chronos import config
from chronos.cli import main
from chronos.lib import clock as clock_module
from chronos.lib.ansi import strip
from chronos.session import open_session
from chronos.store import MemoryStore

DAY_ONE = datetime(2026, 3, 2, 9, 0)


class FrozenClock:
    def __init__(self, start: datetime = DAY_ONE):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def on_day(self, n: int, hour: int = 9) -> datetime:
        """Move to day n (day 1 is DAY_ONE) at the given hour."""
        self.current = DAY_ONE.replace(hour=hour) + timedelta(days=n - 1)
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def tmp_chronos_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "CHRONOS_DIR", tmp_path)
    monkeypatch.setattr(config, "DB_PATH", tmp_path / "chronos.db")
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config.yaml")
    monkeypatch.setattr(config.Config, "_instance", None)
    return tmp_path


@pytest.fixture
def clock(monkeypatch):
    frozen = FrozenClock()
    monkeypatch.setattr(clock_module, "now", frozen.now)
    return frozen


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def make_session(tmp_chronos_dir, memory_store):
    opened = []

    def _make(catalog=None, store=None):
        s = open_session(store if store is not None else memory_store, catalog=catalog)
        opened.append(s)
        return s

    yield _make
    for s in opened:
        s.saver.close()


@pytest.fixture
def session(make_session, clock):
    return make_session()


@dataclass
class CLIResult:
    exit_code: int
    stdout: str
    stderr: str


class FnCLIRunner:
    """Runs `chronos <args>` in-process and captures output with colours stripped."""

    def invoke(self, args: list[str]) -> CLIResult:
        out, err = io.StringIO(), io.StringIO()
        argv = sys.argv
        sys.argv = ["chronos", *args]
        code = 0
        try:
            with redirect_stdout(out), redirect_stderr(err):
                main()
        except SystemExit as e:
            code = e.code if isinstance(e.code, int) else int(e.code is not None)
        finally:
            sys.argv = argv
        return CLIResult(code, strip(out.getvalue()), strip(err.getvalue()))


@pytest.fixture
def runner(tmp_chronos_dir):
    return FnCLIRunner()
