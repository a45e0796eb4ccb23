from dataclasses import dataclass
from typing import Callable

from vsphere_iso.config.models import ConnectConfig
from vsphere_iso.core.driver.port import HypervisorDriver
from vsphere_iso.core.provisioning.port import GuestProvisioner
from vsphere_iso.core.ui.port import Ui


@dataclass
class Services:
    """
    Infrastructure services container.
    Lives on Worker level, injected into BuildContext.
    """

    driver_factory: Callable[[ConnectConfig], HypervisorDriver]
    provisioner: GuestProvisioner
    ui: Ui
