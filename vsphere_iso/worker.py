from typing import Callable, Optional

from vsphere_iso.config.models import BuildConfig, ConnectConfig
from vsphere_iso.core.build.models import Build
from vsphere_iso.core.build.runner import BuildRunner
from vsphere_iso.core.driver.port import HypervisorDriver
from vsphere_iso.core.pipeline.cancellation import CancellationToken
from vsphere_iso.core.pipeline.services import Services
from vsphere_iso.infrastructure.provisioning.ssh import SSHProvisioner
from vsphere_iso.infrastructure.ui.console import ConsoleUi


def default_driver_factory(config: ConnectConfig) -> HypervisorDriver:
    # pyvmomi is only imported once a build actually connects
    from vsphere_iso.infrastructure.vsphere.driver import VSphereDriver

    return VSphereDriver.connect(config)


class Worker:
    def __init__(
        self,
        driver_factory: Callable[[ConnectConfig], HypervisorDriver] = default_driver_factory,
    ):
        self.driver_factory = driver_factory
        # One token for the worker: a cancel before submit() still stops the build
        self.token = CancellationToken()
        self.runner: Optional[BuildRunner] = None

    def services_for(self, config: BuildConfig) -> Services:
        ui = ConsoleUi(prefix=config.create.vm_name)
        return Services(
            driver_factory=self.driver_factory,
            provisioner=SSHProvisioner(ui=ui),
            ui=ui,
        )

    def submit(self, build: Build, config: BuildConfig) -> Build:
        self.runner = BuildRunner(self.services_for(config), cancel=self.token)
        return self.runner.run(build, config)

    def cancel(self) -> None:
        self.token.cancel()
