"""Background operation tracking and progress rendering for lxinit."""

from __future__ import annotations

import contextlib
import signal
import sys
import threading
from typing import Any, Dict, Iterator, Optional, TextIO

from lxinit.exceptions import InitError, OperationCancelled, OperationError
from lxinit.models import OperationInfo, ProgressEvent
from lxinit.remote import Operation
from lxinit.utils import log


def format_bytes(value: int) -> str:
    size = float(value)
    for unit in ("B", "kB", "MB", "GB"):
        if size < 1000:
            return f"{size:.2f}{unit}" if unit != "B" else f"{int(size)}{unit}"
        size /= 1000
    return f"{size:.2f}TB"


def describe_progress(event: ProgressEvent) -> str:
    """Render a progress event as ``stage: 42% (12.30MB/s)``."""
    text = event.text
    details = []
    if event.percent is not None:
        details.append(f"{event.percent}%")
    elif event.processed_bytes is not None:
        details.append(format_bytes(event.processed_bytes))
    if details:
        text = f"{text}: {' '.join(details)}"
    if event.speed:
        text = f"{text} ({format_bytes(event.speed)}/s)"
    return text


class ProgressRenderer:
    """Keep a single, constantly overwritten status line on the terminal."""

    def __init__(self, fmt: str = "{}", quiet: bool = False, stream: Optional[TextIO] = None) -> None:
        self.fmt = fmt
        self.quiet = quiet
        self.stream = stream
        self._last_len = 0
        self._finished = False
        self._lock = threading.Lock()

    def _out(self) -> TextIO:
        return self.stream if self.stream is not None else sys.stdout

    def update(self, event: ProgressEvent) -> None:
        with self._lock:
            if self.quiet or self._finished:
                return
            line = self.fmt.format(describe_progress(event))
            padding = " " * max(0, self._last_len - len(line))
            out = self._out()
            out.write(f"\r{line}{padding}")
            out.flush()
            self._last_len = len(line)

    def done(self, msg: str = "") -> None:
        with self._lock:
            if self._finished:
                return
            self._finished = True
            if self.quiet:
                return
            out = self._out()
            if self._last_len:
                out.write("\r" + " " * self._last_len + "\r")
            if msg:
                out.write(msg + "\n")
            out.flush()


class OperationTracker:
    """Wait for a background operation while staying responsive to Ctrl+C.

    The remote wait runs on a daemon thread. The caller blocks on one event
    that is set either by that thread finishing or by ``interrupt()``.
    """

    def __init__(self, progress: Optional[ProgressRenderer] = None, handle_signals: bool = True) -> None:
        self.progress = progress if progress is not None else ProgressRenderer(quiet=True)
        self.handle_signals = handle_signals
        self._wake = threading.Event()
        self._interrupted = threading.Event()

    def interrupt(self) -> None:
        """Stop waiting and cancel the operation."""
        self._interrupted.set()
        self._wake.set()

    @contextlib.contextmanager
    def _signals_installed(self) -> Iterator[None]:
        # signal.signal() only works from the main thread
        if not self.handle_signals or threading.current_thread() is not threading.main_thread():
            yield
            return

        def _request_cancel(signum, frame):
            log("DEBUG", f"{signal.Signals(signum).name} received, cancelling remote operation")
            self.interrupt()

        prev_sigint = signal.signal(signal.SIGINT, _request_cancel)
        prev_sigterm = signal.signal(signal.SIGTERM, _request_cancel)
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, prev_sigint)
            signal.signal(signal.SIGTERM, prev_sigterm)

    def _cancel(self, operation: Operation) -> str:
        try:
            operation.cancel()
        except InitError as exc:
            log("DEBUG", f"Cancel request failed: {exc}")
            return f"Failed to cancel the remote operation ({exc}); it will keep running"
        return "Remote operation canceled by user"

    def wait(self, operation: Operation) -> OperationInfo:
        self._wake.clear()
        self._interrupted.clear()

        try:
            operation.add_handler(self.progress.update)
        except InitError:
            self.progress.done("")
            raise

        outcome: Dict[str, Any] = {}

        def _waiter() -> None:
            try:
                outcome["result"] = operation.wait()
            except Exception as exc:
                outcome["error"] = exc
            finally:
                self._wake.set()

        waiter = threading.Thread(target=_waiter, name="operation-wait", daemon=True)
        with self._signals_installed():
            waiter.start()
            self._wake.wait()

        if self._interrupted.is_set() and not outcome:
            message = self._cancel(operation)
            self.progress.done("")
            raise OperationCancelled(message)

        self.progress.done("")
        if "error" in outcome:
            raise outcome["error"]
        if "result" not in outcome:
            raise OperationError("Operation wait ended without a result")
        return outcome["result"]


def cancelable_wait(operation: Operation, progress: Optional[ProgressRenderer] = None) -> OperationInfo:
    return OperationTracker(progress).wait(operation)
