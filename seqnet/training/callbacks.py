"""Hooks invoked by ``Sequential.fit``."""

from __future__ import annotations

from typing import Iterable, List

from ..core.types import BatchEvent, EpochEvent, TrainingHistory


class Callback:
    """No-op base; subclasses override the hooks they need."""

    def on_batch_end(self, event: BatchEvent) -> None:
        pass

    def on_epoch_end(self, event: EpochEvent) -> None:
        pass

    def on_train_end(self, history: TrainingHistory) -> None:
        pass


class CallbackList:
    """Dispatch events to callbacks, skipping hooks an object does not define."""

    def __init__(self, callbacks: Iterable[object] = ()) -> None:
        self.callbacks: List[object] = list(callbacks)

    def _dispatch(self, hook: str, payload: object) -> None:
        for callback in self.callbacks:
            method = getattr(callback, hook, None)
            if method is not None:
                method(payload)

    def on_batch_end(self, event: BatchEvent) -> None:
        self._dispatch("on_batch_end", event)

    def on_epoch_end(self, event: EpochEvent) -> None:
        self._dispatch("on_epoch_end", event)

    def on_train_end(self, history: TrainingHistory) -> None:
        self._dispatch("on_train_end", history)


__all__ = ["Callback", "CallbackList"]
