import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from maxwell.defaults import POLL_INTERVAL_SECONDS
from maxwell.finished_scanner import FinishedScanner
from maxwell.marker_scanner import MarkerScanner
from maxwell.reconciler import MonitorListener, Reconciler
from maxwell.session_state import PollResult
from maxwell.settings import Settings

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[PollResult], None], PollResult], None]


def _apply_inline(apply: Callable[[PollResult], None], result: PollResult) -> None:
    apply(result)


class SessionMonitor:
    """Polls marker files and transcripts on a fixed interval.

    A ticker thread starts one worker thread per tick so a slow poll (a
    remote host that takes its full ssh timeout) never delays the schedule.
    Workers hand their result to ``dispatch``, which decides the thread the
    reconciler runs on: the GTK app passes a ``GLib.idle_add`` wrapper,
    headless callers apply inline under the reconciler's lock. Results apply
    in completion order and in-flight polls are never cancelled.
    """

    def __init__(
        self,
        listener: MonitorListener,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        marker_scanner: Optional[MarkerScanner] = None,
        finished_scanner: Optional[FinishedScanner] = None,
        settings_path: Optional[Path] = None,
        dispatch: Dispatch = _apply_inline,
    ):
        self.reconciler = Reconciler(listener)
        self.marker_scanner = marker_scanner or MarkerScanner()
        self.finished_scanner = finished_scanner or FinishedScanner()
        self._poll_interval = poll_interval
        self._settings_path = settings_path
        self._settings = Settings.load(settings_path)
        self._dispatch = dispatch
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def settings(self) -> Settings:
        return self._settings

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="maxwell-ticker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None

    def reload_settings(self) -> None:
        """Re-read remote hosts; the next poll picks them up."""
        self._settings = Settings.load(self._settings_path)
        logger.info("Loaded %d remote host(s)", len(self._settings.remotes))

    def dismiss_finished(self) -> None:
        self.reconciler.dismiss_finished()

    def tick(self) -> threading.Thread:
        worker = threading.Thread(target=self._poll_and_dispatch, name="maxwell-poll", daemon=True)
        worker.start()
        return worker

    def poll_once(self, now: Optional[float] = None) -> PollResult:
        """Run both scanners and return the raw result without reconciling."""
        remotes = self._settings.enabled_remotes
        waiting = self.marker_scanner.scan(remotes, now=now)
        dismissed = self.reconciler.dismissed
        qualifying = self.finished_scanner.scan(
            active_sessions=self.marker_scanner.active_sessions(),
            now=now,
        )
        return PollResult(
            waiting_messages=waiting,
            finished=[f for f in qualifying if f.session_id not in dismissed],
            dismissed_finished=frozenset(f.session_id for f in qualifying if f.session_id in dismissed),
        )

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self._poll_interval)

    def _poll_and_dispatch(self) -> None:
        started = time.monotonic()
        try:
            result = self.poll_once()
        except Exception as e:
            logger.warning("Monitor error: %s", e, exc_info=True)
            return
        elapsed = time.monotonic() - started
        if elapsed > self._poll_interval:
            logger.debug("Poll took %.1fs, longer than the %.1fs interval", elapsed, self._poll_interval)
        self._dispatch(self.reconciler.apply, result)
