from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock

logger = logging.getLogger(__name__)

AUTO_DISPLAY_NAME = "Auto"

SelectionListener = Callable[[str], None]


def format_display_name(model_name: str) -> str:
    return f"{AUTO_DISPLAY_NAME} ({model_name})"


class SelectionState:
    """Most recent auto selection, shared by the resolver and display readers.

    Concurrent resolutions are last-writer-wins. Listeners are called with the
    model name after each effective change, outside the lock.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._display_name = ""
        self._last_actual_model_name = ""
        self._listeners: list[SelectionListener] = []

    def update(self, model_name: str) -> bool:
        display_name = format_display_name(model_name)
        with self._lock:
            if display_name == self._display_name:
                return False
            self._display_name = display_name
            self._last_actual_model_name = model_name
            listeners = list(self._listeners)

        logger.info("auto_selection_changed model_name=%s display_name=%s", model_name, display_name)
        for listener in listeners:
            try:
                listener(model_name)
            except Exception:
                logger.exception("auto_selection_listener_failed model_name=%s", model_name)
        return True

    def current_display_name(self) -> str:
        with self._lock:
            return self._display_name or AUTO_DISPLAY_NAME

    def last_actual_model_name(self) -> str:
        with self._lock:
            return self._last_actual_model_name or AUTO_DISPLAY_NAME

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            return {
                "display_name": self._display_name or AUTO_DISPLAY_NAME,
                "last_actual_model_name": self._last_actual_model_name or AUTO_DISPLAY_NAME,
                "selected": bool(self._display_name),
            }

    def subscribe(self, listener: SelectionListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe
