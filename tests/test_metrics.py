"""Metrics counters and duration aggregates."""

from filecopy.utils.metrics import (
    get_metrics_summary,
    metrics,
    record_claim_error,
    record_job_claimed,
    record_job_finished,
    record_recording_error,
)


def test_counters_accumulate():
    record_job_claimed()
    record_job_claimed()
    record_claim_error()
    record_recording_error()

    assert metrics.get_counter("jobs_claimed_total") == 2
    assert metrics.get_counter("claim_errors_total") == 1
    assert metrics.get_counter("recording_errors_total") == 1


def test_finished_jobs_labelled_by_status():
    record_job_finished("done", 0.5)
    record_job_finished("done", 1.5)
    record_job_finished("failed", 0.1)

    assert metrics.get_counter("jobs_finished_total", {"status": "done"}) == 2
    assert metrics.get_counter("jobs_finished_total", {"status": "failed"}) == 1
    stats = metrics.get_histogram_stats("task_duration_seconds", {"status": "done"})
    assert stats["count"] == 2
    assert stats["sum"] == 2.0
    assert stats["min"] == 0.5
    assert stats["max"] == 1.5
    assert stats["avg"] == 1.0


def test_empty_histogram_stats():
    assert metrics.get_histogram_stats("task_duration_seconds")["count"] == 0


def test_durations_kept_as_fixed_size_aggregate():
    for _ in range(10_000):
        record_job_finished("done", 0.01)
    record_job_finished("done", 2.0)

    agg = metrics.histograms["task_duration_seconds{status=done}"]
    assert not isinstance(agg, list)
    stats = metrics.get_histogram_stats("task_duration_seconds", {"status": "done"})
    assert stats["count"] == 10_001
    assert stats["min"] == 0.01
    assert stats["max"] == 2.0


def test_summary_shape():
    record_job_claimed()
    record_job_finished("failed", 0.25)

    summary = get_metrics_summary()

    assert summary["counters"] == {
        "jobs_claimed_total": 1,
        "jobs_finished_total{status=failed}": 1,
    }
    assert summary["histograms"]["task_duration_seconds{status=failed}"]["count"] == 1
