from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from sidebet.core.types import Notice

logger = logging.getLogger(__name__)

Listener = Callable[[Notice], None]


class NoticeBus:
    """Fan-out of engine events (bet opened, fire back declined, ...) to observers.

    Listeners run after the engine has released its locks. A failing listener is logged and
    does not undo the operation that produced the notice.
    """

    def __init__(self) -> None:
        self._mu = threading.Lock()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._mu:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._mu:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, notice: Notice) -> None:
        logger.info("[%s] %s", notice.kind, notice.message)
        with self._mu:
            listeners = list(self._listeners)
        for fn in listeners:
            try:
                fn(notice)
            except Exception:
                logger.exception("Notice listener failed for %s on bet %s", notice.kind, notice.bet_id)
