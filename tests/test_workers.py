"""
Tests for the recognition worker pool and progress utilities.
"""

import threading
import time
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from docstruct.config import OCROptions
from docstruct.errors import AbortError, InitializationError, RecognitionError


def make_pool(factory, **option_overrides):
    from docstruct.utils.workers import WorkerPool

    options = OCROptions(worker_count=option_overrides.pop("worker_count", 2), **option_overrides)
    return WorkerPool(options, worker_factory=lambda worker_id: factory(worker_id, options))


class TestWorkerPool:
    """Tests for WorkerPool."""

    def test_initialize_reports_each_worker(self, fake_factory):
        from docstruct.utils.workers import PoolState

        factory = fake_factory()
        pool = make_pool(factory, worker_count=3)
        progress = []

        pool.initialize(on_progress=lambda ready, total: progress.append((ready, total)))

        assert pool.state == PoolState.READY
        assert progress == [(1, 3), (2, 3), (3, 3)]
        assert all(w.loaded for w in factory.workers)

    def test_initialize_twice_is_noop(self, fake_factory):
        factory = fake_factory()
        pool = make_pool(factory)
        pool.initialize()
        pool.initialize()
        assert len(factory.workers) == 2

    def test_initialization_failure_cleans_up(self, fake_factory):
        from docstruct.utils.workers import PoolState

        factory = fake_factory(load_error=RuntimeError("no traineddata"))
        pool = make_pool(factory)

        with pytest.raises(InitializationError, match="no traineddata"):
            pool.initialize()

        assert pool.state == PoolState.UNINITIALIZED
        assert all(w.terminated for w in factory.workers)

    def test_submit_before_initialize(self, fake_factory, blank_image):
        pool = make_pool(fake_factory())
        with pytest.raises(RecognitionError):
            pool.submit(blank_image)

    def test_submit_returns_result(self, fake_factory, blank_image):
        pool = make_pool(fake_factory(script=lambda image: "Pool result"))
        pool.initialize()

        result = pool.submit(blank_image)

        assert result.text == "Pool result"
        assert pool.in_flight == 0
        pool.terminate()

    def test_failed_job_does_not_poison_pool(self, fake_factory, blank_image):
        factory = fake_factory(recognize_error=RuntimeError("segfault"))
        pool = make_pool(factory, worker_count=1)
        pool.initialize()

        with pytest.raises(RecognitionError, match="segfault"):
            pool.submit(blank_image)

        # Same worker is back in the pool and healthy
        assert pool.submit(blank_image).text == "Hello world"
        pool.terminate()

    def test_worker_error_callback(self, fake_factory, blank_image):
        from docstruct.utils.workers import WorkerPool

        errors = []
        factory = fake_factory(recognize_error=ValueError("bad pixels"))
        options = OCROptions(worker_count=1)
        pool = WorkerPool(
            options,
            worker_factory=lambda worker_id: factory(worker_id, options),
            on_worker_error=lambda worker_id, e: errors.append((worker_id, str(e)))
        )
        pool.initialize()

        with pytest.raises(RecognitionError):
            pool.submit(blank_image)
        assert errors == [(0, "bad pixels")]
        pool.terminate()

    def test_timeout(self, fake_factory, blank_image):
        release = threading.Event()
        pool = make_pool(fake_factory(gate=release), worker_count=1, timeout_ms=50)
        pool.initialize()

        with pytest.raises(RecognitionError, match="timed out"):
            pool.submit(blank_image)

        release.set()
        pool.terminate()

    def test_jobs_run_in_parallel(self, fake_factory, blank_image):
        release = threading.Event()
        factory = fake_factory(gate=release)
        pool = make_pool(factory, worker_count=2)
        pool.initialize()
        results = []

        threads = [
            threading.Thread(target=lambda: results.append(pool.submit(blank_image)))
            for _ in range(2)
        ]
        for t in threads:
            t.start()

        # Both workers pick up a job before either is released
        for _ in range(100):
            if all(w.calls for w in factory.workers):
                break
            time.sleep(0.01)
        assert all(w.calls for w in factory.workers)

        release.set()
        for t in threads:
            t.join(5)
        assert len(results) == 2
        pool.terminate()

    def test_worker_from_terminated_pool_not_reused(self, fake_factory, blank_image, gate):
        started, release = gate
        factory = fake_factory(gate=release, started=started)
        pool = make_pool(factory, worker_count=1)
        pool.initialize()
        outcome = []

        thread = threading.Thread(target=lambda: outcome.append(pool.submit(blank_image).text))
        thread.start()
        assert started.wait(5)

        pool.terminate()
        pool.initialize()
        release.set()
        thread.join(5)

        old_worker, new_worker = factory.workers
        assert outcome == ["Hello world"]
        for _ in range(4):
            assert pool.submit(blank_image).text == "Hello world"
        assert len(old_worker.calls) == 1
        assert len(new_worker.calls) == 4
        pool.terminate()

    def test_progress_hook_reaches_worker(self, fake_factory, blank_image):
        pool = make_pool(fake_factory(), worker_count=1)
        pool.initialize()
        fractions = []

        pool.submit(blank_image, on_progress=fractions.append)

        assert fractions == [0.5]
        pool.terminate()

    def test_terminate_tolerates_worker_failure(self, fake_factory):
        from docstruct.utils.workers import PoolState

        factory = fake_factory(terminate_error=RuntimeError("already gone"))
        pool = make_pool(factory)
        pool.initialize()

        pool.terminate()

        assert pool.state == PoolState.UNINITIALIZED
        assert all(w.terminated for w in factory.workers)

    def test_terminate_uninitialized(self, fake_factory):
        pool = make_pool(fake_factory())
        pool.terminate()
        assert not pool.is_ready


class TestProgressReporter:
    """Tests for ProgressReporter."""

    def test_subscribe_and_unsubscribe(self):
        from docstruct.utils.progress import ProgressReporter, ProgressInfo

        reporter = ProgressReporter()
        seen = []
        unsubscribe = reporter.subscribe("progress", seen.append)

        reporter.progress(ProgressInfo("loading", 50))
        unsubscribe()
        reporter.progress(ProgressInfo("complete", 100))

        assert [i.status for i in seen] == ["loading"]

    def test_callback_and_failing_subscriber(self):
        from docstruct.utils.progress import ProgressReporter, ProgressInfo

        received = []
        reporter = ProgressReporter(progress_callback=received.append)

        def broken(info):
            raise RuntimeError("subscriber bug")

        reporter.subscribe("progress", broken)
        reporter.progress(ProgressInfo("recognizing", 70))

        assert len(received) == 1

    def test_unknown_event(self):
        from docstruct.utils.progress import ProgressReporter

        with pytest.raises(ValueError):
            ProgressReporter().subscribe("finished", print)

    def test_progress_info(self):
        from docstruct.utils.progress import ProgressInfo

        info = ProgressInfo("error", 140, error=RuntimeError("boom"))
        assert info.progress == 100.0
        assert info.to_dict()["error"] == "boom"

        with pytest.raises(ValueError):
            ProgressInfo("sleeping", 10)


class TestAbortController:
    """Tests for AbortController."""

    def test_abort_and_reset(self):
        from docstruct.utils.progress import AbortController

        controller = AbortController()
        controller.check()

        controller.abort()
        with pytest.raises(AbortError):
            controller.check()

        controller.reset()
        assert not controller.is_aborted

    def test_external_signal(self):
        from docstruct.utils.progress import AbortController

        signal = threading.Event()
        controller = AbortController(signal)
        assert not controller.is_aborted

        signal.set()
        assert controller.is_aborted
