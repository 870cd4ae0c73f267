import threading

from app.core.errors import ParseFailure
from app.jobs.scheduler import PeriodicJob, default_jobs


def test_run_once_logs_scraper_errors_and_keeps_going():
    calls = []

    def job(cancel_event):
        calls.append(cancel_event)
        raise ParseFailure("GMP table not found in page")

    periodic = PeriodicJob("gmp-update", job, interval=60)
    periodic.run_once()
    periodic.run_once()
    assert periodic.runs == 2
    assert calls[0] is periodic.cancel_event


def test_run_once_survives_unexpected_errors():
    def job(cancel_event):
        raise KeyError("boom")

    periodic = PeriodicJob("ipo-update", job, interval=60)
    periodic.run_once()
    assert periodic.runs == 1


def test_start_runs_at_start_and_stop_signals_cancel():
    ran = threading.Event()

    def job(cancel_event):
        ran.set()

    periodic = PeriodicJob("gmp-update", job, interval=3600, run_at_start=True)
    periodic.start()
    assert ran.wait(2.0)
    periodic.stop(timeout=2.0)
    assert periodic.cancel_event.is_set()
    assert not periodic._thread.is_alive()


def test_default_jobs():
    jobs = {job.name: job for job in default_jobs()}
    assert set(jobs) == {"ipo-update", "gmp-update"}
    assert jobs["gmp-update"].run_at_start
    assert jobs["ipo-update"].interval > jobs["gmp-update"].interval
