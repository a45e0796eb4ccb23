"""
Device specs for a new VM: SCSI controller + thin disk, CD-ROM with the
install ISO, one network adapter.

Negative keys are temporary; vCenter assigns real ones on creation.
New VMs always get IDE controllers 200/201, the CD-ROM goes on 200.
"""
from typing import List, Optional

from pyVmomi import vim

SCSI_KEY = -101
DISK_KEY = -102
CDROM_KEY = -103
NIC_KEY = -104
IDE_KEY = 200

NIC_TYPES = {
    "e1000": vim.vm.device.VirtualE1000,
    "e1000e": vim.vm.device.VirtualE1000e,
    "vmxnet2": vim.vm.device.VirtualVmxnet2,
    "vmxnet3": vim.vm.device.VirtualVmxnet3,
    "pcnet32": vim.vm.device.VirtualPCNet32,
}

_ADD = vim.vm.device.VirtualDeviceSpec.Operation.add


def _add(device, file_operation=None) -> vim.vm.device.VirtualDeviceSpec:
    spec = vim.vm.device.VirtualDeviceSpec(operation=_ADD, device=device)
    if file_operation:
        spec.fileOperation = file_operation
    return spec


def scsi_controller() -> vim.vm.device.VirtualDeviceSpec:
    controller = vim.vm.device.VirtualLsiLogicController(
        key=SCSI_KEY,
        busNumber=0,
        sharedBus=vim.vm.device.VirtualSCSIController.Sharing.noSharing,
    )
    return _add(controller)


def thin_disk(size_kb: int) -> vim.vm.device.VirtualDeviceSpec:
    disk = vim.vm.device.VirtualDisk(
        key=DISK_KEY,
        controllerKey=SCSI_KEY,
        unitNumber=0,
        capacityInKB=size_kb,
        backing=vim.vm.device.VirtualDisk.FlatVer2BackingInfo(
            diskMode="persistent",
            thinProvisioned=True,
        ),
    )
    return _add(disk, vim.vm.device.VirtualDeviceSpec.FileOperation.create)


def iso_cdrom(iso_path: str) -> vim.vm.device.VirtualDeviceSpec:
    cdrom = vim.vm.device.VirtualCdrom(
        key=CDROM_KEY,
        controllerKey=IDE_KEY,
        unitNumber=0,
        backing=vim.vm.device.VirtualCdrom.IsoBackingInfo(fileName=iso_path),
        connectable=vim.vm.device.VirtualDevice.ConnectInfo(
            startConnected=True,
            connected=True,
            allowGuestControl=True,
        ),
    )
    return _add(cdrom)


def network_adapter(network, adapter_type: str, mac_address: str = "") -> vim.vm.device.VirtualDeviceSpec:
    nic_cls = NIC_TYPES.get(adapter_type.lower())
    if nic_cls is None:
        raise ValueError(
            f"Unknown network adapter '{adapter_type}', expected one of: {', '.join(NIC_TYPES)}"
        )

    if isinstance(network, vim.dvs.DistributedVirtualPortgroup):
        backing = vim.vm.device.VirtualEthernetCard.DistributedVirtualPortBackingInfo(
            port=vim.dvs.PortConnection(
                portgroupKey=network.key,
                switchUuid=network.config.distributedVirtualSwitch.uuid,
            )
        )
    else:
        backing = vim.vm.device.VirtualEthernetCard.NetworkBackingInfo(
            deviceName=network.name,
            network=network,
        )

    nic = nic_cls(
        key=NIC_KEY,
        backing=backing,
        connectable=vim.vm.device.VirtualDevice.ConnectInfo(
            startConnected=True,
            allowGuestControl=True,
        ),
    )
    if mac_address:
        nic.addressType = "manual"
        nic.macAddress = mac_address

    return _add(nic)


def device_changes(
    disk_size_kb: int,
    iso_path: Optional[str],
    network=None,
    adapter_type: str = "vmxnet3",
    mac_address: str = "",
) -> List[vim.vm.device.VirtualDeviceSpec]:
    changes = [scsi_controller(), thin_disk(disk_size_kb)]
    if iso_path:
        changes.append(iso_cdrom(iso_path))
    if network is not None:
        changes.append(network_adapter(network, adapter_type, mac_address))
    return changes
