import logging
from dataclasses import dataclass
from typing import Any, List

from vsphere_iso.core.driver.port import HypervisorDriver

logger = logging.getLogger(__name__)

BUILDER_ID = "vsphere-iso"


@dataclass(frozen=True)
class Artifact:
    """
    Result of a successful build: the provisioned machine.
    """

    name: str
    vm: Any
    driver: HypervisorDriver

    builder_id: str = BUILDER_ID

    @property
    def id(self) -> str:
        return self.name

    def files(self) -> List[str]:
        return []

    def state(self, name: str) -> Any:
        return None

    def destroy(self) -> None:
        logger.info("Destroying artifact VM %s", self.name)
        self.driver.destroy_vm(self.vm)

    def __str__(self) -> str:
        return self.name
