"""
Tests for the task state machine and cache records.
"""

import pytest
from pydantic import ValidationError

from review_analysis.dto import callback_adapter
from review_analysis.entities import (
    AnalysisResult,
    AnalysisTask,
    Completed,
    Failed,
    Pending,
    Processing,
    StatusReport,
    TaskStatus,
)

RESULT = AnalysisResult(sentiment={"positive": 100.0}, summary="Great", keywords=["great"], total_reviews=3)


def test_task_defaults_to_pending():
    task = AnalysisTask(product_id="p1", task_id="t1")

    assert task.status is TaskStatus.PENDING
    assert task.progress == 0
    assert not task.is_terminal


def test_task_requires_task_id():
    with pytest.raises(ValueError):
        AnalysisTask(product_id="p1", task_id="")


def test_result_only_when_completed():
    """Test result and error are tied to their terminal states."""
    with pytest.raises(ValueError):
        AnalysisTask(product_id="p1", task_id="t1", result=RESULT)
    with pytest.raises(ValueError):
        AnalysisTask(product_id="p1", task_id="t1", status=TaskStatus.COMPLETED)
    with pytest.raises(ValueError):
        AnalysisTask(product_id="p1", task_id="t1", status=TaskStatus.FAILED)


def test_progress_is_clamped():
    assert AnalysisTask(product_id="p1", task_id="t1", progress=140).progress == 100
    assert AnalysisTask(product_id="p1", task_id="t1", progress=-5).progress == 0


def test_apply_moves_forward():
    """Test pending -> processing -> completed."""
    task = AnalysisTask(product_id="p1", task_id="t1", estimated_time=60)

    processing = task.apply(Processing(progress=30))
    completed = processing.apply(Completed(result=RESULT))

    assert processing.status is TaskStatus.PROCESSING
    assert processing.progress == 30
    assert completed.status is TaskStatus.COMPLETED
    assert completed.progress == 100
    assert completed.estimated_time == 0
    assert completed.result == RESULT
    assert completed.completed_at is not None
    assert completed.created_at == task.created_at


def test_apply_never_regresses():
    """Test lower-rank updates and stale progress return the same task."""
    processing = AnalysisTask(product_id="p1", task_id="t1").apply(Processing(progress=50))

    assert processing.apply(Pending()) is processing
    assert processing.apply(Processing(progress=20)) is processing
    assert processing.apply(Processing()) is processing
    assert processing.apply(Processing(progress=70)).progress == 70


def test_terminal_states_are_sticky():
    failed = AnalysisTask(product_id="p1", task_id="t1").apply(Failed(error="boom"))

    assert failed.is_terminal
    assert failed.apply(Completed(result=RESULT)) is failed
    assert failed.apply(Processing(progress=99)) is failed


def test_pending_can_fail_directly():
    failed = AnalysisTask(product_id="p1", task_id="t1").apply(Failed(error="bad url"))

    assert failed.status is TaskStatus.FAILED
    assert failed.error == "bad url"
    assert failed.result is None


def test_task_record_round_trip():
    task = AnalysisTask(product_id="p1", task_id="t1").apply(Completed(result=RESULT))

    assert AnalysisTask.from_record(task.to_record()) == task


def test_invalid_task_record():
    with pytest.raises(ValueError):
        AnalysisTask.from_record({"task_id": "t1"})
    with pytest.raises(ValueError):
        AnalysisTask.from_record({"product_id": "p1", "task_id": "t1", "status": "unknown"})


def test_record_with_non_mapping_result_is_invalid():
    record = {"product_id": "p1", "task_id": "t1", "status": "completed", "result": "oops"}

    with pytest.raises(ValueError):
        AnalysisTask.from_record(record)
    with pytest.raises(ValueError):
        StatusReport.from_record(record)


def test_status_report_from_task_and_record():
    task = AnalysisTask(product_id="p1", task_id="t1").apply(Processing(progress=40))
    report = StatusReport.from_task(task)

    restored = StatusReport.from_record(report.to_record())

    assert report.from_cache is False
    assert restored.from_cache is True
    assert restored.task_id == "t1"
    assert restored.status is TaskStatus.PROCESSING
    assert restored.progress == 40


def test_callback_payload_variants():
    """Test the tagged callback union converts to state updates."""
    completed = callback_adapter.validate_python(
        {
            "taskId": "t1",
            "status": "completed",
            "result": {"sentiment": {"positive": 1.0}, "summary": "ok", "keywords": [], "totalReviews": 2},
        }
    )
    processing = callback_adapter.validate_python({"taskId": "t1", "status": "processing", "progress": 20})
    failed = callback_adapter.validate_python({"taskId": "t1", "status": "failed"})

    assert completed.to_update() == Completed(
        result=AnalysisResult(sentiment={"positive": 1.0}, summary="ok", keywords=[], total_reviews=2)
    )
    assert processing.to_update() == Processing(progress=20)
    assert failed.to_update() == Failed(error="Analysis failed")


@pytest.mark.parametrize(
    "body",
    [
        {"taskId": "t1", "status": "completed"},
        {"taskId": "t1", "status": "exploded"},
        {"status": "processing"},
        {"taskId": "t1", "status": "processing", "progress": 150},
    ],
)
def test_callback_payload_rejects_malformed(body):
    with pytest.raises(ValidationError):
        callback_adapter.validate_python(body)
