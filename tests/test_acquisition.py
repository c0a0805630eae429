from __future__ import annotations

from typing import Any, Callable, Optional

from acquisition import AcquisitionManager
from config import ClassifierConfig
from errors import CaptureUnavailableError, ModelLoadError
from models import (
    AcquisitionOutcome,
    AudioFormat,
    Category,
    Error,
    Loading,
    RecordingSpecs,
    ViewState,
)
from state import ViewStateStore

CONFIG = ClassifierConfig(model_path="yamnet.tflite")


class FakeClassifier:
    def __init__(self, events: list[str]) -> None:
        self.events = events
        self.closed = False

    @property
    def required_format(self) -> AudioFormat:
        return AudioFormat(channels=1, sample_rate=16000)

    @property
    def window_samples(self) -> int:
        return 15600

    def classify(self, samples: Any) -> list[Category]:
        return []

    def close(self) -> None:
        self.closed = True
        self.events.append("classifier-close")


class FakeSource:
    def __init__(self, events: list[str], start_error: Optional[Exception] = None) -> None:
        self.events = events
        self.start_error = start_error
        self.started = False
        self.stopped = False
        self.released = False
        self.stop_error: Optional[Exception] = None

    def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def stop(self) -> None:
        self.events.append("capture-stop")
        if self.stop_error is not None:
            raise self.stop_error
        self.stopped = True

    def release(self) -> None:
        self.events.append("capture-release")
        self.released = True

    def read(self, num_samples: int) -> Any:
        return [0.0] * num_samples


class FakeSourceFactory:
    """Hands out sources whose first ``failures`` starts report a busy device."""

    def __init__(self, events: list[str], failures: int = 0) -> None:
        self.events = events
        self.failures = failures
        self.created: list[FakeSource] = []

    def __call__(self, config: ClassifierConfig, audio_format: AudioFormat) -> FakeSource:
        error = None
        if self.failures > 0:
            self.failures -= 1
            error = CaptureUnavailableError("device busy")
        source = FakeSource(self.events, start_error=error)
        self.created.append(source)
        return source


class FakeHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    def __init__(self) -> None:
        self.calls: list[tuple[float, Callable[[], Any], FakeHandle]] = []
        self.delays: list[float] = []

    def call_later(self, delay_s: float, fn: Callable[[], Any]) -> FakeHandle:
        handle = FakeHandle()
        self.calls.append((delay_s, fn, handle))
        self.delays.append(delay_s)
        return handle

    def run_next(self) -> Any:
        _, fn, _ = self.calls.pop(0)
        return fn()


class FakePoller:
    def __init__(self, source: Any, classifier: Any, store: ViewStateStore, **kwargs: Any) -> None:
        self.source = source
        self.classifier = classifier
        self.kwargs = kwargs
        self.started = False
        self.cancelled = False
        self.events: list[str] = source.events
        self.cancel_error: Optional[Exception] = None

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True
        self.events.append("timer-cancel")
        if self.cancel_error is not None:
            raise self.cancel_error


class Harness:
    def __init__(self, failures: int = 0, muted: bool = False) -> None:
        self.events: list[str] = []
        self.store = ViewStateStore()
        self.states: list[ViewState] = []
        self.store.subscribe(self.states.append)
        self.classifiers: list[FakeClassifier] = []
        self.sources = FakeSourceFactory(self.events, failures=failures)
        self.scheduler = FakeScheduler()
        self.pollers: list[FakePoller] = []
        self.manager = AcquisitionManager(
            self.store,
            classifier_factory=self._make_classifier,
            source_factory=self.sources,
            scheduler=self.scheduler,
            is_microphone_muted=lambda: muted,
            poller_factory=self._make_poller,
        )

    def _make_classifier(self, config: ClassifierConfig) -> FakeClassifier:
        classifier = FakeClassifier(self.events)
        self.classifiers.append(classifier)
        return classifier

    def _make_poller(self, *args: Any, **kwargs: Any) -> FakePoller:
        poller = FakePoller(*args, **kwargs)
        self.pollers.append(poller)
        return poller


def test_successful_acquire_starts_polling() -> None:
    h = Harness()

    outcome = h.manager.acquire(CONFIG)

    assert outcome == AcquisitionOutcome.STARTED
    assert h.sources.created[0].started is True
    assert h.pollers[0].started is True
    assert h.pollers[0].kwargs == {
        "score_threshold": 0.3,
        "interval_s": 0.5,
        "initial_delay_s": 0.001,
    }
    assert h.states[1:] == [Loading(), RecordingSpecs(channels=1, sample_rate=16000)]
    assert h.manager.attempts == 0


def test_three_failures_back_off_linearly_then_give_up() -> None:
    h = Harness(failures=10)

    assert h.manager.acquire(CONFIG) == AcquisitionOutcome.RETRY_SCHEDULED
    assert h.scheduler.run_next() == AcquisitionOutcome.RETRY_SCHEDULED
    assert h.scheduler.run_next() == AcquisitionOutcome.RETRY_SCHEDULED
    assert h.scheduler.run_next() == AcquisitionOutcome.FAILED

    assert h.scheduler.delays == [1.0, 2.0, 3.0]
    assert h.scheduler.calls == []
    assert len(h.sources.created) == 4
    assert h.store.value == Error("Failed after 3 attempts", code="CAPTURE_UNAVAILABLE")
    assert h.manager.holds_resources is False
    assert h.pollers == []


def test_success_after_failures_resets_attempts() -> None:
    h = Harness(failures=2)

    h.manager.acquire(CONFIG)
    h.scheduler.run_next()
    assert h.manager.attempts == 2

    assert h.scheduler.run_next() == AcquisitionOutcome.STARTED
    assert h.manager.attempts == 0
    assert h.scheduler.delays == [1.0, 2.0]
    assert h.pollers[0].started is True


def test_failed_start_releases_partial_resources_before_retry() -> None:
    h = Harness(failures=1)

    h.manager.acquire(CONFIG)

    assert h.sources.created[0].released is True
    assert h.classifiers[0].closed is True
    assert h.manager.holds_resources is False
    assert h.manager.retry_pending is True


def test_muted_microphone_fails_without_retry() -> None:
    h = Harness(muted=True)

    outcome = h.manager.acquire(CONFIG)

    assert outcome == AcquisitionOutcome.MUTED
    assert h.store.value == Error("Microphone is muted", code="MICROPHONE_MUTED")
    assert h.manager.attempts == 0
    assert h.scheduler.calls == []
    assert h.sources.created == []
    assert RecordingSpecs(channels=1, sample_rate=16000) in h.states


def test_model_load_error_is_not_retried() -> None:
    store = ViewStateStore()
    scheduler = FakeScheduler()

    def _broken(config: ClassifierConfig) -> FakeClassifier:
        raise ModelLoadError("model file not found: yamnet.tflite")

    manager = AcquisitionManager(store, classifier_factory=_broken, scheduler=scheduler)

    assert manager.acquire(CONFIG) == AcquisitionOutcome.FAILED
    assert store.value == Error(
        "Initialization failed: model file not found: yamnet.tflite",
        code="INITIALIZATION_FAILED",
    )
    assert scheduler.calls == []


def test_unexpected_start_error_is_not_retried() -> None:
    h = Harness()
    h.sources.failures = 0

    def _exploding(config: ClassifierConfig, audio_format: AudioFormat) -> FakeSource:
        source = FakeSource(h.events, start_error=ValueError("bad channel count"))
        h.sources.created.append(source)
        return source

    h.manager._source_factory = _exploding

    assert h.manager.acquire(CONFIG) == AcquisitionOutcome.FAILED
    assert isinstance(h.store.value, Error)
    assert h.store.value.message == "Initialization failed: bad channel count"
    assert h.scheduler.calls == []
    assert h.sources.created[0].released is True


def test_release_order_and_idempotence() -> None:
    h = Harness()
    h.manager.acquire(CONFIG)

    h.manager.release()
    h.manager.release()

    assert h.events == ["timer-cancel", "capture-stop", "capture-release", "classifier-close"]
    assert h.manager.holds_resources is False


def test_release_without_resources_is_safe() -> None:
    h = Harness()

    h.manager.release()

    assert h.events == []


def test_release_swallows_teardown_errors() -> None:
    h = Harness()
    h.manager.acquire(CONFIG)
    h.sources.created[0].stop_error = RuntimeError("device vanished")

    h.manager.release()

    assert h.manager.holds_resources is False
    assert h.classifiers[0].closed is True
    assert h.sources.created[0].released is True
    assert h.events == ["timer-cancel", "capture-stop", "capture-release", "classifier-close"]


def test_failing_loop_cancel_still_frees_capture() -> None:
    h = Harness()
    h.manager.acquire(CONFIG)
    h.pollers[0].cancel_error = RuntimeError("thread wedged")

    h.manager.release()

    assert h.sources.created[0].stopped is True
    assert h.sources.created[0].released is True
    assert h.classifiers[0].closed is True
    assert h.manager.holds_resources is False


def test_reacquire_releases_previous_set_first() -> None:
    h = Harness()
    h.manager.acquire(CONFIG)
    first_source = h.sources.created[0]

    h.manager.acquire(CONFIG)

    assert h.pollers[0].cancelled is True
    assert first_source.released is True
    assert h.classifiers[0].closed is True
    assert h.events[:4] == ["timer-cancel", "capture-stop", "capture-release", "classifier-close"]
    assert h.pollers[1].started is True


def test_release_cancels_pending_retry() -> None:
    h = Harness(failures=1)
    h.manager.acquire(CONFIG)
    _, retry, handle = h.scheduler.calls[0]

    h.manager.release()

    assert handle.cancelled is True
    assert h.manager.attempts == 0
    assert h.manager.retry_pending is False
    # A timer that already fired still must not re-acquire.
    assert retry() == AcquisitionOutcome.CANCELLED
    assert len(h.sources.created) == 1


def test_explicit_acquire_supersedes_pending_retry() -> None:
    h = Harness(failures=1)
    h.manager.acquire(CONFIG)
    _, stale_retry, handle = h.scheduler.calls[0]

    assert h.manager.acquire(CONFIG) == AcquisitionOutcome.STARTED
    assert handle.cancelled is True
    assert stale_retry() == AcquisitionOutcome.CANCELLED
    assert len(h.pollers) == 1


def test_permission_denied_publishes_error() -> None:
    h = Harness()

    outcome = h.manager.on_permission_result(False, CONFIG)

    assert outcome == AcquisitionOutcome.FAILED
    assert h.store.value == Error(
        "Permission denied - the microphone cannot be accessed", code="PERMISSION_DENIED"
    )
    assert h.classifiers == []
    assert h.manager.resume(CONFIG) is None


def test_pause_and_resume_after_permission_granted() -> None:
    h = Harness()
    assert h.manager.on_permission_result(True, CONFIG) == AcquisitionOutcome.STARTED

    h.manager.pause()
    assert h.manager.holds_resources is False

    assert h.manager.resume(CONFIG) == AcquisitionOutcome.STARTED
    assert len(h.pollers) == 2
    assert h.pollers[1].started is True
