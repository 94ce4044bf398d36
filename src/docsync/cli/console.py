"""
Interactive console helpers: live progress line and confirmation prompt.
"""

import sys
import threading
from typing import TextIO

from docsync.progress import Progress, ScanProgress, SyncProgress

# ANSI colors, only used when the stream is a terminal
CYAN = '\033[36m'
GREEN = '\033[32m'
YELLOW = '\033[33m'
RED = '\033[31m'
BOLD = '\033[1m'
RESET = '\033[0m'


def _is_tty(stream: TextIO) -> bool:
    return hasattr(stream, 'isatty') and stream.isatty()


def colorize(text: str, color: str, stream: TextIO | None = None) -> str:
    return f"{color}{text}{RESET}" if _is_tty(stream or sys.stderr) else text


def format_elapsed(seconds: float) -> str:
    """
    Human readable duration, e.g. "1h 02m 03s", "4m 05s" or "1.25s".
    """
    if seconds < 60:
        return f"{seconds:.2f}s"

    minutes, secs = divmod(int(round(seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    return f"{minutes}m {secs:02d}s"


def format_progress(progress: Progress) -> str:
    if isinstance(progress, ScanProgress):
        return (
            f"Scanning collection... : {progress.records_processed} | "
            f"{progress.records_per_second:.0f} rec/s | "
            f"{progress.percent_complete:.0f}%"
        )
    if isinstance(progress, SyncProgress):
        return (
            f"Synchronizing changes... : created {progress.created} | "
            f"updated {progress.updated} | deleted {progress.deleted}"
        )
    raise TypeError(f"Unknown progress sample: {progress!r}")


class ProgressPrinter:
    """
    Progress callback rewriting a single status line on a stream.

    Samples arrive from the progress monitor thread; a new line is
    started whenever the collection or the phase changes.
    """

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stderr
        self._lock = threading.Lock()
        self._current: tuple[str, type] | None = None
        self._width = 0

    def __call__(self, collection: str, progress: Progress) -> None:
        line = f"{collection}: {format_progress(progress)}"
        color = CYAN if isinstance(progress, ScanProgress) else GREEN

        with self._lock:
            state = (collection, type(progress))
            if self._current is not None and self._current != state:
                self.stream.write("\n")
                self._width = 0
            self._current = state

            padding = " " * max(0, self._width - len(line))
            self._width = len(line)
            self.stream.write(f"\r{colorize(line, color, self.stream)}{padding}")
            self.stream.flush()

    def finish(self) -> None:
        """Terminate the current status line."""
        with self._lock:
            if self._current is not None:
                self.stream.write("\n")
                self.stream.flush()
            self._current = None
            self._width = 0


def confirm(message: str, stream: TextIO | None = None, input_func=input) -> bool:
    """
    Ask a yes/no question, defaulting to no.

    End of input counts as no.
    """
    stream = stream or sys.stderr
    stream.write(f"{message}\n")
    stream.flush()

    try:
        answer = input_func("Proceed? [y/N] ")
    except EOFError:
        return False

    return answer.strip().lower() in ('y', 'yes')
