import logging
from typing import Any, List, Optional

from pyVim.connect import SmartConnect
from pyVim.task import WaitForTask
from pyVmomi import vim, vmodl

from vsphere_iso.config.models import ConnectConfig, CreateConfig, HardwareConfig
from vsphere_iso.core.driver.port import HypervisorDriver, PowerState
from vsphere_iso.core.pipeline.errors import OperationCancelled, VsphereIsoError
from vsphere_iso.infrastructure.vsphere import devices

logger = logging.getLogger(__name__)


class DriverError(VsphereIsoError):
    pass


def _fault_message(e: Exception) -> str:
    return getattr(e, "msg", None) or str(e)


class VSphereDriver(HypervisorDriver):
    """
    HypervisorDriver backed by pyvmomi.

    One instance holds one authenticated vCenter session and the
    datacenter every lookup is scoped to.
    """

    def __init__(self, si, datacenter, poll_interval: float = 1.0):
        self.si = si
        self.content = si.RetrieveContent()
        self.datacenter = datacenter
        self.poll_interval = poll_interval

    @classmethod
    def connect(cls, config: ConnectConfig) -> "VSphereDriver":
        host, _, port = config.vcenter_server.partition(":")
        logger.info("Connecting to vCenter %s as %s", config.vcenter_server, config.username)

        try:
            si = SmartConnect(
                host=host,
                port=int(port or 443),
                user=config.username,
                pwd=config.password,
                disableSslCertValidation=config.insecure_connection,
            )
        except vmodl.MethodFault as e:
            raise DriverError(f"Cannot log in to {config.vcenter_server}: {_fault_message(e)}") from e
        except OSError as e:
            raise DriverError(f"Cannot connect to {config.vcenter_server}: {e}") from e

        content = si.RetrieveContent()
        datacenter = cls._datacenter_or_default(content, config.datacenter)
        logger.info("Using datacenter %s", datacenter.name)

        return cls(si, datacenter)

    # --- lookups ---

    @staticmethod
    def _list(content, root, vimtype) -> List[Any]:
        view = content.viewManager.CreateContainerView(root, [vimtype], True)
        try:
            return list(view.view)
        finally:
            view.Destroy()

    @classmethod
    def _datacenter_or_default(cls, content, name: str):
        datacenters = cls._list(content, content.rootFolder, vim.Datacenter)

        if name:
            for dc in datacenters:
                if dc.name == name:
                    return dc
            raise DriverError(f"Datacenter '{name}' not found")

        if len(datacenters) != 1:
            raise DriverError(
                f"Found {len(datacenters)} datacenters, 'datacenter' must be specified"
            )
        return datacenters[0]

    def _find(self, vimtype, name: str, kind: str):
        for obj in self._list(self.content, self.datacenter, vimtype):
            if obj.name == name:
                return obj
        raise DriverError(f"{kind} '{name}' not found in datacenter {self.datacenter.name}")

    def _folder(self, path: str):
        folder = self.datacenter.vmFolder
        for part in [p for p in path.split("/") if p]:
            child = next(
                (c for c in folder.childEntity if isinstance(c, vim.Folder) and c.name == part),
                None,
            )
            if child is None:
                raise DriverError(f"Folder '{path}' not found")
            folder = child
        return folder

    def _resource_pool(self, config: CreateConfig, host):
        if config.resource_pool:
            return self._find(vim.ResourcePool, config.resource_pool, "Resource pool")
        if config.cluster:
            return self._find(vim.ClusterComputeResource, config.cluster, "Cluster").resourcePool
        if host is not None:
            return host.parent.resourcePool

        computes = self._list(self.content, self.datacenter, vim.ComputeResource)
        if not computes:
            raise DriverError(f"No compute resource in datacenter {self.datacenter.name}")
        return computes[0].resourcePool

    def _datastore(self, config: CreateConfig, pool):
        if config.datastore:
            return self._find(vim.Datastore, config.datastore, "Datastore")

        available = pool.owner.datastore
        if not available:
            raise DriverError("No datastore available, 'datastore' must be specified")
        return available[0]

    def _wait(self, task, what: str) -> Any:
        try:
            WaitForTask(task)
        except vmodl.MethodFault as e:
            raise DriverError(f"{what}: {_fault_message(e)}") from e
        return task.info.result

    # --- HypervisorDriver ---

    def create_vm(self, config: CreateConfig) -> Any:
        try:
            host = self._find(vim.HostSystem, config.host, "Host") if config.host else None
            pool = self._resource_pool(config, host)
            datastore = self._datastore(config, pool)
            folder = self._folder(config.folder)
            network = self._find(vim.Network, config.network, "Network") if config.network else None

            iso_path = None
            if config.iso:
                iso_path = f"[{config.iso_datastore or datastore.name}] {config.iso}"

            spec = vim.vm.ConfigSpec(
                name=config.vm_name,
                guestId=config.guest_os_type,
                numCPUs=config.cpu,
                memoryMB=config.ram,
                annotation=config.annotation,
                files=vim.vm.FileInfo(vmPathName=f"[{datastore.name}]"),
                deviceChange=devices.device_changes(
                    disk_size_kb=config.disk_size_kb,
                    iso_path=iso_path,
                    network=network,
                    adapter_type=config.network_adapter,
                    mac_address=config.network_mac_address,
                ),
            )
        except ValueError as e:
            raise DriverError(str(e)) from e

        if config.hardware_version:
            version = config.hardware_version
            spec.version = version if version.startswith("vmx-") else f"vmx-{version}"

        logger.info("Creating VM %s on datastore %s", config.vm_name, datastore.name)
        try:
            task = folder.CreateVM_Task(config=spec, pool=pool, host=host)
        except vmodl.MethodFault as e:
            raise DriverError(f"Creating VM {config.vm_name}: {_fault_message(e)}") from e

        return self._wait(task, f"Creating VM {config.vm_name}")

    def destroy_vm(self, vm: Any) -> None:
        self._wait(vm.Destroy_Task(), f"Destroying VM {vm.name}")

    def configure_vm(self, vm: Any, config: HardwareConfig) -> None:
        spec = vim.vm.ConfigSpec()
        if config.cpus:
            spec.numCPUs = config.cpus
        if config.ram:
            spec.memoryMB = config.ram

        # Zero means "not set": -1 is vSphere's unlimited, 0 would cap the VM
        spec.cpuAllocation = vim.ResourceAllocationInfo(
            reservation=config.cpu_reservation,
            limit=config.cpu_limit or -1,
        )
        spec.memoryAllocation = vim.ResourceAllocationInfo(reservation=config.ram_reservation)
        spec.memoryReservationLockedToMax = config.ram_reserve_all

        self._wait(vm.ReconfigVM_Task(spec=spec), f"Reconfiguring VM {vm.name}")

    def power_on(self, vm: Any) -> None:
        self._wait(vm.PowerOnVM_Task(), f"Powering on VM {vm.name}")

    def wait_for_ip(self, vm: Any, cancel) -> str:
        while True:
            ip: Optional[str] = vm.guest.ipAddress if vm.guest else None
            # link-local IPv6 shows up before DHCP finishes
            if ip and not ip.lower().startswith("fe80"):
                return ip

            if cancel.wait(self.poll_interval):
                raise OperationCancelled("Cancelled while waiting for IP")

    def power_off(self, vm: Any) -> None:
        if self.power_state(vm) == PowerState.POWERED_OFF:
            return
        self._wait(vm.PowerOffVM_Task(), f"Powering off VM {vm.name}")

    def start_shutdown(self, vm: Any) -> None:
        try:
            vm.ShutdownGuest()
        except vmodl.MethodFault as e:
            raise DriverError(_fault_message(e)) from e

    def power_state(self, vm: Any) -> PowerState:
        return PowerState(str(vm.runtime.powerState))

    def create_snapshot(self, vm: Any, name: str) -> None:
        task = vm.CreateSnapshot_Task(name=name, description="", memory=False, quiesce=False)
        self._wait(task, f"Creating snapshot of VM {vm.name}")

    def convert_to_template(self, vm: Any) -> None:
        try:
            vm.MarkAsTemplate()
        except vmodl.MethodFault as e:
            raise DriverError(f"Converting VM {vm.name} to template: {_fault_message(e)}") from e
