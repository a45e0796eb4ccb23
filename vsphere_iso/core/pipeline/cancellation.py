import logging
import threading

from vsphere_iso.core.pipeline.errors import OperationCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cooperative cancellation signal shared by one build.

    Set from any thread (signal handler, Worker.cancel) and polled by the
    step runner between steps and by steps at their own wait points.
    A remote call already in flight is never interrupted.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.info("Cancellation requested")
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """
        Sleep up to `seconds`, waking early on cancel.
        Returns True if cancellation was requested.
        """
        return self._event.wait(timeout=seconds)

    def raise_if_cancelled(self, what: str) -> None:
        if self._event.is_set():
            raise OperationCancelled(f"Cancelled while {what}")
