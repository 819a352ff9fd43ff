from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], None]

CLAIM_APPROVED = "claim.approved"


class EventBus:
    """In-process pub/sub for after-commit side effects.

    Handlers run synchronously in the publishing request. A failing handler is
    logged and never reaches the publisher, whose transaction is already
    committed. Not suitable for fan-out across processes.
    """

    def __init__(self) -> None:
        self._subs: dict[str, List[Handler]] = {}
        self._lock = Lock()

    def subscribe(self, topic: str, handler: Handler) -> None:
        with self._lock:
            self._subs.setdefault(topic, []).append(handler)

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        with self._lock:
            arr = self._subs.get(topic)
            if not arr:
                return
            try:
                arr.remove(handler)
            except ValueError:
                pass
            if not arr:
                self._subs.pop(topic, None)

    def publish(self, topic: str, event: Dict[str, Any]) -> None:
        with self._lock:
            arr = list(self._subs.get(topic, []))
        for handler in arr:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", topic, extra={"claim_id": event.get("claim_id")})
