import logging
import sys

from vsphere_iso.core.ui.port import Ui

logger = logging.getLogger(__name__)


class ConsoleUi(Ui):
    """
    Prints build progress for a human, prefixed with the VM name.
    """

    def __init__(self, prefix: str, out=None, err=None):
        self.prefix = prefix
        self.out = out or sys.stdout
        self.err = err or sys.stderr

    def say(self, message: str) -> None:
        logger.debug("say: %s", message)
        print(f"==> {self.prefix}: {message}", file=self.out, flush=True)

    def message(self, message: str) -> None:
        logger.debug("message: %s", message)
        print(f"    {self.prefix}: {message}", file=self.out, flush=True)

    def error(self, message: str) -> None:
        logger.debug("error: %s", message)
        print(f"❌ {self.prefix}: {message}", file=self.err, flush=True)
