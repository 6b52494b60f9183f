import logging

import pytest

from testprep_cbt.models.session_state import ExamStatus, SingleChoiceAnswer
from testprep_cbt.services import attempt_service as svc
from testprep_cbt.services.attempt_store import AttemptStore
from testprep_cbt.services.progress_sync import ProgressSync

from conftest import T0


class BrokenStore:
    """모든 호출이 실패하는 저장소"""

    def create_attempt(self, *args):
        raise OSError("disk unavailable")

    def save_progress(self, *args):
        raise OSError("disk unavailable")

    def submit(self, *args):
        raise OSError("disk unavailable")


@pytest.fixture
def store(tmp_path):
    return AttemptStore(str(tmp_path / "attempts.json"))


@pytest.fixture
def started(scenario_paper):
    state = svc.load_exam(scenario_paper)
    svc.start_exam(state, now=T0)
    return state


def test_checkpoint_respects_interval(store, started):
    sync = ProgressSync(store, interval_seconds=30)
    attempt_id = sync.open_attempt(started, now=T0)
    svc.set_answer(started, "Q1", SingleChoiceAnswer(selected_index=1))

    assert sync.maybe_checkpoint(started, now=T0 + 10) is False
    assert store.get_attempt(attempt_id)["answers"] == {}

    assert sync.maybe_checkpoint(started, now=T0 + 30) is True
    saved = store.get_attempt(attempt_id)["answers"]
    assert saved["Q1"] == {"type": "mcq_single", "selected_index": 1}

    assert sync.maybe_checkpoint(started, now=T0 + 45) is False


def test_submit_stores_final_copy(store, started):
    sync = ProgressSync(store)
    attempt_id = sync.open_attempt(started, now=T0)
    svc.submit_exam(started, now=T0 + 12)

    assert sync.submit(started, {"total_score": 2}) is True

    record = store.get_attempt(attempt_id)
    assert record["status"] == "completed"
    assert record["times"]["Q1"] == 12
    assert sync.maybe_checkpoint(started, now=T0 + 100) is False


def test_store_failures_do_not_interrupt_exam(started, caplog):
    sync = ProgressSync(BrokenStore())

    with caplog.at_level(logging.WARNING):
        assert sync.open_attempt(started, now=T0) is None

    sync.attempt_id = 1
    assert sync.checkpoint(started, now=T0 + 40) is False
    svc.submit_exam(started, now=T0 + 50)
    assert sync.submit(started, {"total_score": 0}) is False

    assert started.status == ExamStatus.SUBMITTED
    assert "응시 기록 생성 실패" in caplog.text


def test_without_attempt_nothing_is_written(store, started):
    sync = ProgressSync(store)

    assert sync.checkpoint(started, now=T0 + 100) is False
    assert sync.submit(started, {}) is False
    assert store.list_attempts() == []
