import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from vsphere_iso.config.models import BuildConfig
from vsphere_iso.core.driver.port import HypervisorDriver
from vsphere_iso.core.pipeline.cancellation import CancellationToken
from vsphere_iso.core.pipeline.errors import MissingStateError
from vsphere_iso.core.pipeline.services import Services
from vsphere_iso.core.ui.port import Ui

logger = logging.getLogger(__name__)


class Termination(str, Enum):
    ERROR = "error"
    CANCELLED = "cancelled"
    HALTED = "halted"


@dataclass
class BuildContext:
    """
    Execution context of one build.
    Used ONLY to pass data between steps, created per run and thrown away after.

    Steps never talk to each other directly: CreateVM writes `vm`,
    everything after it reads `vm` through require_vm().
    """

    config: BuildConfig
    services: Services  # DI container
    cancel: CancellationToken = field(default_factory=CancellationToken)
    build_id: UUID = field(default_factory=uuid4)

    # Data written by steps
    driver: Optional[HypervisorDriver] = None
    vm: Optional[Any] = None
    ip: Optional[str] = None

    # Terminal state, one marker at most
    error: Optional[BaseException] = None
    termination: Optional[Termination] = None

    @property
    def ui(self) -> Ui:
        return self.services.ui

    def require_driver(self) -> HypervisorDriver:
        if self.driver is None:
            raise MissingStateError("driver")
        return self.driver

    def require_vm(self) -> Any:
        if self.vm is None:
            raise MissingStateError("vm")
        return self.vm

    def require_ip(self) -> str:
        if not self.ip:
            raise MissingStateError("ip")
        return self.ip

    def record_error(self, err: BaseException) -> None:
        # First cause wins, later errors are only logged
        if self.error is not None:
            logger.warning("Ignoring secondary error (first cause kept): %s", err)
            return
        self.error = err

    def terminate(self, termination: Termination) -> None:
        if self.termination is not None:
            logger.debug(
                "Build already terminated as %s, ignoring %s",
                self.termination.value,
                termination.value,
            )
            return
        self.termination = termination

    @property
    def aborted(self) -> bool:
        return self.termination is not None

    @property
    def failed(self) -> bool:
        return self.termination is Termination.ERROR

    @property
    def cancelled(self) -> bool:
        return self.termination is Termination.CANCELLED

    @property
    def halted(self) -> bool:
        return self.termination is Termination.HALTED
