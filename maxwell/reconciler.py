import logging
import threading

from maxwell.session_state import PollResult

logger = logging.getLogger(__name__)


class MonitorListener:
    """Receives edge-triggered notification events. Override what you need."""

    def waiting_changed(self, messages: list[str]) -> None:
        pass

    def waiting_cleared(self) -> None:
        pass

    def finished_changed(self, messages: list[str]) -> None:
        pass

    def finished_cleared(self) -> None:
        pass


class Reconciler:
    """Turns successive poll results into change events.

    Two independent channels, waiting and finished. Each fires a changed
    event when its message list is non-empty and differs from the previous
    poll, and a cleared event when it goes from non-empty to empty.
    """

    def __init__(self, listener: MonitorListener):
        self._listener = listener
        self._lock = threading.RLock()
        self._last_waiting: list[str] = []
        self._last_finished: list[str] = []
        self._finished_ids: set[str] = set()
        self._dismissed: set[str] = set()

    @property
    def dismissed(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._dismissed)

    def apply(self, result: PollResult) -> None:
        with self._lock:
            self._apply_waiting(list(result.waiting_messages))
            # A poll that started before a dismiss can still carry those sessions
            finished = [f for f in result.finished if f.session_id not in self._dismissed]
            # A dismissal lasts until its session stops qualifying
            self._dismissed &= result.finished_session_ids | result.dismissed_finished
            self._apply_finished([f.message for f in finished], {f.session_id for f in finished})

    def dismiss_finished(self) -> None:
        """Acknowledge every currently finished session."""
        with self._lock:
            self._dismissed.update(self._finished_ids)
            had_messages = bool(self._last_finished)
            self._finished_ids = set()
            self._last_finished = []
            if had_messages:
                self._listener.finished_cleared()

    def _apply_waiting(self, messages: list[str]) -> None:
        if messages:
            if messages != self._last_waiting:
                self._last_waiting = messages
                self._listener.waiting_changed(messages)
        elif self._last_waiting:
            self._last_waiting = []
            self._listener.waiting_cleared()

    def _apply_finished(self, messages: list[str], session_ids: set[str]) -> None:
        self._finished_ids = session_ids
        if messages:
            if messages != self._last_finished:
                self._last_finished = messages
                self._listener.finished_changed(messages)
        elif self._last_finished:
            self._last_finished = []
            self._dismissed.clear()
            logger.debug("Finished list emptied, dismissals reset")
            self._listener.finished_cleared()
