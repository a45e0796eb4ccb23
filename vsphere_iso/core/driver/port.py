from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from vsphere_iso.config.models import CreateConfig, HardwareConfig


class PowerState(str, Enum):
    POWERED_ON = "poweredOn"
    POWERED_OFF = "poweredOff"
    SUSPENDED = "suspended"


class HypervisorDriver(ABC):
    """
    Session to a hypervisor management endpoint.

    Core:
    - only sees VM handles as opaque values
    - every remote task is awaited before a method returns
    - the session is shared by all steps of a build, never used concurrently
    """

    @abstractmethod
    def create_vm(self, config: CreateConfig) -> Any:
        raise NotImplementedError

    @abstractmethod
    def destroy_vm(self, vm: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def configure_vm(self, vm: Any, config: HardwareConfig) -> None:
        raise NotImplementedError

    @abstractmethod
    def power_on(self, vm: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def wait_for_ip(self, vm: Any, cancel) -> str:
        """
        Block until the guest tools report an address.
        Raises OperationCancelled when `cancel` fires during the wait.
        """
        raise NotImplementedError

    @abstractmethod
    def power_off(self, vm: Any) -> None:
        """
        Hard power off. Must be a no-op when the VM is already off.
        """
        raise NotImplementedError

    @abstractmethod
    def start_shutdown(self, vm: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def power_state(self, vm: Any) -> PowerState:
        raise NotImplementedError

    @abstractmethod
    def create_snapshot(self, vm: Any, name: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def convert_to_template(self, vm: Any) -> None:
        raise NotImplementedError
