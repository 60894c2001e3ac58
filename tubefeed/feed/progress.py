"""Observable progress of feed aggregation rounds."""

import logging
import secrets
import time
from collections.abc import Callable

from tubefeed.rss.models import CamelModel

logger = logging.getLogger(__name__)


class ProgressSnapshot(CamelModel):
    """Point-in-time view of the current aggregation round."""

    total: int = 0
    completed: int = 0
    current_channel: str | None = None
    current_channel_title: str | None = None
    session_id: str | None = None


ProgressCallback = Callable[[ProgressSnapshot], None]


class ProgressBroadcaster:
    """Shared progress record with publish/subscribe.

    Written by aggregation workers, read by any number of observers (the
    progress stream endpoint). Every round starts with ``init``, which mints
    a session id; updates tagged with an older session are dropped so a slow
    worker from a superseded round can't move the new round's counter.

    Not thread-safe: all callers run on one asyncio event loop and no method
    awaits, so check and mutation never interleave.
    """

    def __init__(self) -> None:
        self._state = ProgressSnapshot()
        self._observers: dict[object, ProgressCallback] = {}

    def snapshot(self) -> ProgressSnapshot:
        """Return a copy of the current progress."""
        return self._state.model_copy()

    @property
    def session_id(self) -> str | None:
        return self._state.session_id

    def init(self, total: int) -> str:
        """Start a new round of ``total`` channels and notify observers.

        Returns:
            The session id that workers of this round must pass to ``update``
        """
        logger.debug(
            f"Progress init: total={total} "
            f"(previous {self._state.completed}/{self._state.total}, "
            f"{len(self._observers)} observers)"
        )
        session_id = f"{int(time.time() * 1000)}-{secrets.token_hex(3)}"
        self._state = ProgressSnapshot(total=total, completed=0, session_id=session_id)
        self._notify()
        return session_id

    def update(self, channel_id: str, channel_title: str | None, session_id: str) -> None:
        """Record one finished channel of the round identified by ``session_id``.

        Ignored when no round is initialised or the session is stale. Once
        ``completed`` reaches ``total`` further updates only refresh the
        current channel fields.
        """
        state = self._state
        if state.total <= 0 or session_id != state.session_id:
            return

        state.completed = min(state.completed + 1, state.total)
        state.current_channel = channel_id
        state.current_channel_title = channel_title
        logger.debug(
            f"Progress {state.completed}/{state.total} "
            f"({round(state.completed / state.total * 100)}%) {channel_title or channel_id}"
        )
        self._notify()

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register an observer and send it the current snapshot right away.

        Returns:
            A function that removes the observer; safe to call repeatedly
        """
        token = object()
        self._observers[token] = callback
        logger.debug(f"Progress observer added ({len(self._observers)} total)")
        self._deliver(callback, self.snapshot())

        def unsubscribe() -> None:
            if self._observers.pop(token, None) is not None:
                logger.debug(f"Progress observer removed ({len(self._observers)} remaining)")

        return unsubscribe

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def _notify(self) -> None:
        # Copy: an observer may unsubscribe while being notified
        for callback in list(self._observers.values()):
            self._deliver(callback, self.snapshot())

    @staticmethod
    def _deliver(callback: ProgressCallback, snapshot: ProgressSnapshot) -> None:
        try:
            callback(snapshot)
        except Exception:
            logger.error("Progress observer raised", exc_info=True)
