import datetime
import io
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

import pytest
from rich.console import Console

from letsencrypt_configurator.backup import BackupManager
from letsencrypt_configurator.config import Config
from letsencrypt_configurator.ui import Operator

FIXED_NOW = datetime.datetime(2026, 10, 18, 9, 30, 59)


class ScriptedInput:
    """A readline() source fed from a list; running out of answers behaves like EOF."""

    def __init__(self, answers: Iterable[str]):
        self.pending = list(answers)

    def readline(self) -> str:
        if not self.pending:
            raise EOFError
        return self.pending.pop(0) + "\n"


def scripted_operator(answers: Iterable[str]) -> Operator:
    stream = ScriptedInput(answers)
    operator = Operator(Console(file=io.StringIO(), width=100), stream=stream)
    operator.pending = stream.pending
    return operator


class FakeRunner:
    """
    Records command lines instead of running them.

    fail maps a command-line prefix to True (always fails) or to the 1-based
    occurrences of that prefix that fail.
    """

    def __init__(self, fail: Optional[Dict[str, Union[bool, Sequence[int]]]] = None, raises=None):
        self.fail = fail or {}
        self.raises = raises or {}
        self.calls: List[str] = []

    def _run(self, command: str, args: Sequence[str]) -> bool:
        line = " ".join([command, *args])
        self.calls.append(line)
        for prefix, error in self.raises.items():
            if line.startswith(prefix):
                raise error
        for prefix, rule in self.fail.items():
            if not line.startswith(prefix):
                continue
            if rule is True:
                return False
            seen = sum(1 for call in self.calls if call.startswith(prefix))
            if seen in rule:
                return False
        return True

    def execute(self, command, args=()):
        return self._run(command, args)

    def execute_watching(self, command, args, success_marker, fail_marker):
        return self._run(command, args)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    home = tmp_path / "home"
    home.mkdir()
    nginx = tmp_path / "etc" / "nginx"
    (nginx / "sites-available").mkdir(parents=True)
    (nginx / "sites-available" / "default").write_text("server { listen 80; }\n")
    (nginx / "nginx.conf").write_text("events {}\n")
    return Config(
        home_dir=home,
        nginx_dir=nginx,
        cron_dir=tmp_path / "etc" / "cron.d",
        dhparam_path=str(tmp_path / "dhparam.pem"),
        log_file=str(tmp_path / "run.log"),
        restart_settle_seconds=0,
        watch_timeout=5,
    )


@pytest.fixture
def make_backup():
    def factory(config: Config, operator: Operator) -> BackupManager:
        return BackupManager(config.backup_root, operator, clock=lambda: FIXED_NOW)

    return factory
