import asyncio
import sys

from conftest import FAST, FakeBackend, running

from trainwatch import cli
from trainwatch.core.events import ProgressSnapshot
from trainwatch.core.lifecycle import LifecycleController
from trainwatch.core.machine import UnifiedStatus
from trainwatch.core.state import StatusKind


def test_no_command_prints_help(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["trainwatch"])
    assert cli.main() == 2
    assert "watch" in capsys.readouterr().out


def test_fmt_training_line():
    snap = running(0.5, steps_done=50, steps_total=100, loss_value=0.25, stage_label="epoch 1")
    line = cli._fmt_status(UnifiedStatus(kind=StatusKind.TRAINING, progress=snap))
    assert "50.0%" in line and "step 50/100" in line and "loss 0.2500" in line
    assert cli._fmt_status(UnifiedStatus.of(StatusKind.STOPPED)) == "stopped"


def test_watch_until_completed(capsys):
    backend = FakeBackend(
        progress=[running(0.5), ProgressSnapshot(status="completed", fraction_complete=1.0)]
    )
    ctl = LifecycleController(backend, progress_cfg=FAST, download_cfg=FAST, threshold=3)
    code = asyncio.run(asyncio.wait_for(cli._watch(ctl, "job-1"), 2))
    out = capsys.readouterr().out
    assert code == 0
    assert "completed" in out and "ckpt-final" in out
    assert backend.calls["stop"] == 0
