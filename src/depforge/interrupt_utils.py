"""Utilities for cleaning up partial output when the process is interrupted.

Termination signals run the same cleanup as a normal exit, so temporary
files are never left behind next to their destination.
"""

import atexit
import signal
import sys
from typing import Any, Callable, Dict, Optional

CLEANUP_SIGNALS = ("SIGINT", "SIGTERM", "SIGHUP")


def install_cleanup_handlers(cleanup: Callable[[], None]) -> Dict[int, Any]:
    """Run cleanup at exit and on termination signals.

    SIGINT still raises KeyboardInterrupt after cleaning up, so callers can
    report the interruption; other signals exit with status 1.

    Usage:
        writer = OutputWriter()
        previous = install_cleanup_handlers(writer.cleanup)
        try:
            writer.write_model(dest, result)
        finally:
            restore_signal_handlers(previous, writer.cleanup)

    Args:
        cleanup: Idempotent cleanup function

    Returns:
        Previous handlers, by signal number
    """
    atexit.register(cleanup)

    def exit_on_signal(signum: int, frame: Any) -> None:
        cleanup()
        if signum == signal.SIGINT:
            raise KeyboardInterrupt
        sys.exit(1)

    previous = {}
    for name in CLEANUP_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is None:
            continue  # no SIGHUP on Windows
        previous[signum] = signal.signal(signum, exit_on_signal)
    return previous


def restore_signal_handlers(
    previous: Dict[int, Any], cleanup: Optional[Callable[[], None]] = None
) -> None:
    """Reinstall the handlers returned by install_cleanup_handlers().

    Args:
        previous: Handlers returned by install_cleanup_handlers()
        cleanup: Cleanup function to drop from the exit handlers, if any
    """
    if cleanup is not None:
        atexit.unregister(cleanup)
    for signum, handler in previous.items():
        if handler is not None:  # installed outside Python
            signal.signal(signum, handler)
