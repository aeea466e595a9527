import threading
import time

import pytest

from clipjobs.errors import TransientNetworkError, UpstreamError, UpstreamRateLimited
from clipjobs.models.domain import Job, JobStatus
from clipjobs.poller import JobPoller, PollCancelled, PollTimeout


def _job(status: JobStatus) -> Job:
    return Job(id="pred-1", provider="replicate", status=status)


def _scripted(*steps):
    steps = list(steps)
    calls = []

    def poll() -> Job:
        calls.append(len(calls))
        step = steps.pop(0)
        if isinstance(step, Exception):
            raise step
        return _job(step)

    return poll, calls


def test_returns_first_terminal_snapshot():
    poll, calls = _scripted(JobStatus.STARTING, JobStatus.PROCESSING, JobStatus.SUCCEEDED, JobStatus.FAILED)
    sleeps = []
    updates = []

    job = JobPoller(poll, interval=3, max_attempts=10, sleep=sleeps.append).wait(on_update=updates.append)

    assert job.status is JobStatus.SUCCEEDED
    assert len(calls) == 3
    assert sleeps == [3, 3]
    assert [update.status for update in updates] == [JobStatus.STARTING, JobStatus.PROCESSING, JobStatus.SUCCEEDED]


def test_failed_job_is_returned_not_raised():
    poll, _ = _scripted(JobStatus.PROCESSING, JobStatus.FAILED)
    job = JobPoller(poll, interval=0, sleep=lambda _: None).wait()
    assert job.status is JobStatus.FAILED


def test_transient_errors_consume_attempts_and_retry():
    poll, calls = _scripted(
        TransientNetworkError("connection reset"),
        JobStatus.PROCESSING,
        TransientNetworkError("timed out"),
        JobStatus.SUCCEEDED,
    )
    job = JobPoller(poll, interval=1, max_attempts=4, sleep=lambda _: None).wait()
    assert job.status is JobStatus.SUCCEEDED
    assert len(calls) == 4


def test_rate_limit_honours_retry_after():
    poll, _ = _scripted(UpstreamRateLimited("slow down", retry_after=12), JobStatus.SUCCEEDED)
    sleeps = []
    JobPoller(poll, interval=2, sleep=sleeps.append).wait()
    assert sleeps == [12]


def test_other_errors_propagate():
    poll, calls = _scripted(UpstreamError("bad request", upstream_status=400), JobStatus.SUCCEEDED)
    with pytest.raises(UpstreamError):
        JobPoller(poll, interval=0, sleep=lambda _: None).wait()
    assert len(calls) == 1


def test_timeout_after_max_attempts():
    poll, calls = _scripted(*([JobStatus.PROCESSING] * 5))
    sleeps = []
    with pytest.raises(PollTimeout) as exc_info:
        JobPoller(poll, interval=3, max_attempts=5, sleep=sleeps.append).wait()
    assert len(calls) == 5
    assert len(sleeps) == 4
    assert exc_info.value.attempts == 5
    assert exc_info.value.last.status is JobStatus.PROCESSING


def test_cancel_before_first_poll():
    cancel = threading.Event()
    cancel.set()
    poll, calls = _scripted(JobStatus.SUCCEEDED)
    with pytest.raises(PollCancelled) as exc_info:
        JobPoller(poll, interval=1).wait(cancel=cancel)
    assert calls == []
    assert exc_info.value.last is None


def test_cancel_interrupts_wait_between_polls():
    cancel = threading.Event()
    poll, calls = _scripted(JobStatus.PROCESSING, JobStatus.SUCCEEDED)
    sleeps = []
    timer = threading.Timer(0.05, cancel.set)
    timer.start()
    started = time.monotonic()
    try:
        with pytest.raises(PollCancelled) as exc_info:
            JobPoller(poll, interval=30, sleep=sleeps.append).wait(cancel=cancel)
    finally:
        timer.cancel()
    assert time.monotonic() - started < 10
    assert len(calls) == 1
    assert sleeps == []
    assert exc_info.value.last.status is JobStatus.PROCESSING


@pytest.mark.parametrize("interval,max_attempts", [(-1, 5), (1, 0)])
def test_rejects_invalid_configuration(interval, max_attempts):
    with pytest.raises(ValueError):
        JobPoller(lambda: _job(JobStatus.SUCCEEDED), interval=interval, max_attempts=max_attempts)
