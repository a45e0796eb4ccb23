from abc import ABC, abstractmethod
from typing import List

from vsphere_iso.config.models import CommConfig, ProvisionerConfig


class GuestProvisioner(ABC):
    @abstractmethod
    def provision(
        self,
        host: str,
        comm: CommConfig,
        provisioners: List[ProvisionerConfig],
        cancel,
    ) -> None:
        """
        Run the configured provisioners against a booted guest.

        Raises on the first failing provisioner, OperationCancelled if
        `cancel` fires between commands. How commands reach the guest
        is not the core's concern.
        """
        raise NotImplementedError
