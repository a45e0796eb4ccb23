from typing import Any, Callable, Dict, List, Optional

import pytest

from vsphere_iso.config.models import (
    BuildConfig,
    CommConfig,
    ConnectConfig,
    CreateConfig,
    HardwareConfig,
)
from vsphere_iso.core.driver.port import HypervisorDriver, PowerState
from vsphere_iso.core.pipeline.context import BuildContext
from vsphere_iso.core.pipeline.services import Services
from vsphere_iso.core.pipeline.steps.base import Step, StepAction
from vsphere_iso.core.provisioning.port import GuestProvisioner
from vsphere_iso.core.ui.port import Ui


class RecordingUi(Ui):
    def __init__(self):
        self.says: List[str] = []
        self.messages: List[str] = []
        self.errors: List[str] = []

    def say(self, message: str) -> None:
        self.says.append(message)

    def message(self, message: str) -> None:
        self.messages.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class FakeDriver(HypervisorDriver):
    """
    Records every call by name in `calls`. Set `fail_on[name]` to make a
    call raise, `hooks[name]` to run a callback inside a call.
    """

    def __init__(self):
        self.calls: List[str] = []
        self.fail_on: Dict[str, Exception] = {}
        self.hooks: Dict[str, Callable[[], None]] = {}
        self.state = PowerState.POWERED_OFF
        self.ip = "10.0.0.5"
        self.shutdown_completes = True
        self.snapshots: List[str] = []

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.hooks:
            self.hooks[name]()
        if name in self.fail_on:
            raise self.fail_on[name]

    def create_vm(self, config) -> Any:
        self._call("create_vm")
        return f"vm:{config.vm_name}"

    def destroy_vm(self, vm) -> None:
        self._call("destroy_vm")

    def configure_vm(self, vm, config) -> None:
        self._call("configure_vm")

    def power_on(self, vm) -> None:
        self._call("power_on")
        self.state = PowerState.POWERED_ON

    def wait_for_ip(self, vm, cancel) -> str:
        self._call("wait_for_ip")
        return self.ip

    def power_off(self, vm) -> None:
        self._call("power_off")
        self.state = PowerState.POWERED_OFF

    def start_shutdown(self, vm) -> None:
        self._call("start_shutdown")
        if self.shutdown_completes:
            self.state = PowerState.POWERED_OFF

    def power_state(self, vm) -> PowerState:
        self._call("power_state")
        return self.state

    def create_snapshot(self, vm, name: str) -> None:
        self._call("create_snapshot")
        self.snapshots.append(name)

    def convert_to_template(self, vm) -> None:
        self._call("convert_to_template")


class FakeProvisioner(GuestProvisioner):
    def __init__(self):
        self.hosts: List[str] = []
        self.error: Optional[Exception] = None

    def provision(self, host, comm, provisioners, cancel) -> None:
        self.hosts.append(host)
        if self.error is not None:
            raise self.error


class ScriptedStep(Step):
    """
    Step with a scripted outcome; appends ("run"|"cleanup", name) to `log`.
    """

    def __init__(
        self,
        name: str,
        log: list,
        action: StepAction = StepAction.CONTINUE,
        error: Optional[Exception] = None,
        raises: Optional[Exception] = None,
        cleanup_error: Optional[Exception] = None,
        on_run: Optional[Callable[[BuildContext], None]] = None,
    ):
        self.name = name
        self.log = log
        self.action = action
        self.error = error
        self.raises = raises
        self.cleanup_error = cleanup_error
        self.on_run = on_run

    def run(self, ctx: BuildContext) -> StepAction:
        self.log.append(("run", self.name))
        if self.on_run:
            self.on_run(ctx)
        if self.raises:
            raise self.raises
        if self.error:
            ctx.record_error(self.error)
        return self.action

    def cleanup(self, ctx: BuildContext) -> None:
        self.log.append(("cleanup", self.name))
        if self.cleanup_error:
            raise self.cleanup_error


@pytest.fixture
def ui():
    return RecordingUi()


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def provisioner():
    return FakeProvisioner()


@pytest.fixture
def services(driver, provisioner, ui):
    return Services(driver_factory=lambda config: driver, provisioner=provisioner, ui=ui)


@pytest.fixture
def config():
    return BuildConfig(
        connect=ConnectConfig(vcenter_server="vc.example.com", username="admin", password="secret"),
        create=CreateConfig(vm_name="test-vm"),
        hardware=HardwareConfig(cpus=2, ram=2048),
        comm=CommConfig(type="ssh", ssh_username="root", ssh_password="pw"),
        create_snapshot=True,
        convert_to_template=False,
    )


@pytest.fixture
def ctx(config, services):
    return BuildContext(config=config, services=services)


@pytest.fixture
def ready_ctx(ctx, driver):
    """Context as it looks after Connect and CreateVM succeeded."""
    ctx.driver = driver
    ctx.vm = "vm:test-vm"
    return ctx


@pytest.fixture
def log():
    return []


@pytest.fixture
def make_step(log):
    def _make(name: str, **kwargs) -> ScriptedStep:
        return ScriptedStep(name, log, **kwargs)

    return _make
