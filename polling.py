"""Fixed-interval classification loop."""

from __future__ import annotations

import logging

from errors import CLASSIFICATION_FAILED, error_message
from interfaces import AudioSource, ClassifierHandle
from models import Error, Success
from results import summarize
from scheduling import PeriodicTask
from state import ViewStateStore

logger = logging.getLogger(__name__)


class PollingLoop:
    def __init__(
        self,
        source: AudioSource,
        classifier: ClassifierHandle,
        store: ViewStateStore,
        score_threshold: float = 0.3,
        interval_s: float = 0.5,
        initial_delay_s: float = 0.001,
    ) -> None:
        self._source = source
        self._classifier = classifier
        self._store = store
        self._score_threshold = score_threshold
        self._task = PeriodicTask(
            self.tick,
            interval_s=interval_s,
            initial_delay_s=initial_delay_s,
            name="classification-loop",
        )

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> None:
        self._task.start()

    def cancel(self) -> None:
        self._task.cancel()

    def tick(self) -> None:
        """Sample, classify and publish once.

        Nothing is published when no label clears the threshold, so the
        last result stays on screen through quiet stretches.
        """
        try:
            samples = self._source.read(self._classifier.window_samples)
            categories = self._classifier.classify(samples)
            text = summarize(categories, self._score_threshold)
        except Exception as exc:
            logger.exception("Classification tick failed")
            self._store.publish(
                Error(error_message(CLASSIFICATION_FAILED, detail=exc), code=CLASSIFICATION_FAILED)
            )
            return
        if text is not None:
            self._store.publish(Success(text))
