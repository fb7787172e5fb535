import pytest
from pydantic import ValidationError

from trainwatch.core.events import DownloadSnapshot, JobHandle, ProgressSnapshot
from trainwatch.core.state import RemoteStatus


def test_progress_payload_aliases_and_normalization():
    snap = ProgressSnapshot.model_validate(
        {
            "status": "Running",
            "stage": "epoch 2/3",
            "progress": 1.7,
            "loss": 0.123,
            "current_step": 20,
            "total_steps": 30,
            "eta_seconds": 90,
        }
    )
    assert snap.status is RemoteStatus.RUNNING
    assert snap.stage_label == "epoch 2/3"
    assert snap.fraction_complete == 1.0  # acotado a [0, 1]
    assert snap.steps_done == 20 and snap.steps_total == 30
    assert not snap.is_terminal


def test_unknown_remote_status_rejected():
    with pytest.raises(ValidationError):
        ProgressSnapshot.model_validate({"status": "exploded"})


def test_download_payload():
    snap = DownloadSnapshot.model_validate(
        {"active": True, "downloaded_bytes": 5, "total_bytes": 10, "speed": 2.5}
    )
    assert snap.is_active and snap.bytes_done == 5 and snap.speed_bytes_per_sec == 2.5
    assert DownloadSnapshot.model_validate({}).is_active is False


def test_job_handle_is_immutable():
    h = JobHandle(job_id="abc")
    assert h.submitted_at is not None
    with pytest.raises(ValidationError):
        h.job_id = "other"
    with pytest.raises(ValidationError):
        JobHandle(job_id="")
