"""
Typed build definition.

Every section mirrors one group of keys in the build yaml, converts raw
values to its field types in `from_dict()` and knows how to validate
itself (`prepare()` returns a list of problems, never raises).
BuildConfig.validate() collects the problems of all sections into one
ConfigError so the user sees everything that is wrong at once.
"""
import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, get_origin

from vsphere_iso.core.pipeline.errors import VsphereIsoError


class ConfigError(VsphereIsoError):
    """Invalid build definition"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        details = "\n".join(f"  * {e}" for e in self.errors)
        super().__init__(f"{len(self.errors)} error(s) in build configuration:\n{details}")


DISK_SIZE_RE = re.compile(r"^(\d+)([BKMGTPE]?)(ib|b)?$", re.IGNORECASE)

_UNIT_POWERS = {"B": 0, "K": 1, "M": 2, "G": 3, "T": 4, "P": 5, "E": 6}

COMMUNICATOR_TYPES = ("ssh", "none")
PROVISIONER_TYPES = ("shell", "file")


def parse_disk_size(value: str) -> int:
    """
    Disk size in KiB. "20G", "20GB", "20GiB" and "20480M" are accepted,
    a bare number is a size in GiB.
    """
    m = DISK_SIZE_RE.match(str(value).strip())
    if not m:
        raise ValueError(f"Invalid disk size: {value!r}")

    number = int(m.group(1))
    unit = (m.group(2) or "G").upper()

    size_bytes = number * (1024 ** _UNIT_POWERS[unit])
    return size_bytes // 1024


_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0", ""}


def _convert(value: Any, kind: Any) -> Any:
    """
    Coerce a yaml value to a field type. ${VAR} expansion and quoting both
    turn numbers and booleans into strings, so strings are parsed here.
    """
    if kind is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value != 0
        if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
            return value.strip().lower() in _TRUE
        raise ValueError(f"expected true or false, got {value!r}")

    if kind is int:
        if isinstance(value, bool):
            raise ValueError(f"expected an integer, got {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise ValueError(f"expected an integer, got {value!r}")

    if kind is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                pass
        raise ValueError(f"expected a number, got {value!r}")

    if get_origin(kind) is list:
        if isinstance(value, str):
            return [value]
        if isinstance(value, list):
            return [str(v) for v in value]
        raise ValueError(f"expected a list, got {value!r}")

    if isinstance(value, (dict, list)):
        raise ValueError(f"expected a string, got {value!r}")
    return str(value)


def _typed(cls, raw: Dict[str, Any], errors: Optional[List[str]], keys=None) -> Dict[str, Any]:
    """
    Keyword arguments for section `cls` read from the flat yaml mapping.

    `keys` maps yaml keys to field names (default: the field names).
    Values that do not convert are reported in `errors` and keep their
    default; with no `errors` list they raise ConfigError right away.
    """
    types = {f.name: f.type for f in fields(cls)}
    keys = keys or {name: name for name in types}
    problems: List[str] = []

    data = {}
    for key, attr in keys.items():
        value = raw.get(key)
        if value is None:
            continue
        try:
            data[attr] = _convert(value, types[attr])
        except ValueError as e:
            problems.append(f"'{key}': {e}")

    if errors is None and problems:
        raise ConfigError(problems)
    if errors is not None:
        errors.extend(problems)
    return data


@dataclass(frozen=True)
class ConnectConfig:
    vcenter_server: str = ""
    username: str = ""
    password: str = ""
    insecure_connection: bool = False
    datacenter: str = ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], errors: Optional[List[str]] = None) -> "ConnectConfig":
        return cls(**_typed(cls, raw, errors))

    def prepare(self) -> List[str]:
        errs = []
        if not self.vcenter_server:
            errs.append("vCenter hostname is required")
        if not self.username:
            errs.append("Username is required")
        if not self.password:
            errs.append("Password is required")
        return errs


@dataclass(frozen=True)
class CreateConfig:
    vm_name: str = ""
    folder: str = ""
    guest_os_type: str = "otherGuest"
    cpu: int = 1
    ram: int = 1024
    annotation: str = ""
    hardware_version: str = ""

    disk_size: str = "20G"
    iso: str = ""
    iso_datastore: str = ""
    host: str = ""
    resource_pool: str = ""
    cluster: str = ""
    datastore: str = ""

    network: str = ""
    network_adapter: str = "vmxnet3"
    network_mac_address: str = ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], errors: Optional[List[str]] = None) -> "CreateConfig":
        return cls(**_typed(cls, raw, errors))

    @property
    def disk_size_kb(self) -> int:
        return parse_disk_size(self.disk_size)

    def prepare(self) -> List[str]:
        errs = []
        if not self.vm_name:
            errs.append("Target VM name is required")
        if not DISK_SIZE_RE.match(str(self.disk_size).strip()):
            errs.append(f"'disk_size' has an invalid format: {self.disk_size!r}")
        return errs


@dataclass(frozen=True)
class HardwareConfig:
    # Raw yaml keys keep their original casing (CPUs, RAM_reservation...)
    cpus: int = 0
    cpu_reservation: int = 0
    cpu_limit: int = 0
    ram: int = 0
    ram_reservation: int = 0
    ram_reserve_all: bool = False

    KEYS = {
        "CPUs": "cpus",
        "CPU_reservation": "cpu_reservation",
        "CPU_limit": "cpu_limit",
        "RAM": "ram",
        "RAM_reservation": "ram_reservation",
        "RAM_reserve_all": "ram_reserve_all",
    }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], errors: Optional[List[str]] = None) -> "HardwareConfig":
        return cls(**_typed(cls, raw, errors, cls.KEYS))

    def is_default(self) -> bool:
        return self == HardwareConfig()

    def prepare(self) -> List[str]:
        errs = []
        if self.ram_reservation > 0 and self.ram_reserve_all:
            errs.append("'RAM_reservation' and 'RAM_reserve_all' cannot be used together")
        return errs


@dataclass(frozen=True)
class CommConfig:
    type: str = "ssh"
    ssh_host: str = ""
    ssh_port: int = 22
    ssh_username: str = ""
    ssh_password: str = ""
    ssh_private_key_file: str = ""
    ssh_timeout: float = 300.0

    KEYS = {
        "communicator": "type",
        "ssh_host": "ssh_host",
        "ssh_port": "ssh_port",
        "ssh_username": "ssh_username",
        "ssh_password": "ssh_password",
        "ssh_private_key_file": "ssh_private_key_file",
        "ssh_timeout": "ssh_timeout",
    }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], errors: Optional[List[str]] = None) -> "CommConfig":
        return cls(**_typed(cls, raw, errors, cls.KEYS))

    @property
    def enabled(self) -> bool:
        return self.type != "none"

    def prepare(self) -> List[str]:
        errs = []
        if self.type not in COMMUNICATOR_TYPES:
            errs.append(
                f"Unknown communicator '{self.type}', expected one of: {', '.join(COMMUNICATOR_TYPES)}"
            )
        if self.type == "ssh" and not self.ssh_username:
            errs.append("'ssh_username' must be specified when communicator is 'ssh'")
        return errs


@dataclass(frozen=True)
class ProvisionerConfig:
    type: str
    inline: List[str] = field(default_factory=list)
    scripts: List[str] = field(default_factory=list)
    source: str = ""
    destination: str = ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], errors: Optional[List[str]] = None) -> "ProvisionerConfig":
        data = _typed(cls, raw, errors)
        data.setdefault("type", "")
        return cls(**data)

    def prepare(self, index: int) -> List[str]:
        where = f"provisioner #{index + 1}"
        if self.type not in PROVISIONER_TYPES:
            return [f"{where}: unknown type '{self.type}'"]

        errs = []
        if self.type == "shell" and not (self.inline or self.scripts):
            errs.append(f"{where}: shell provisioner needs 'inline' or 'scripts'")
        if self.type == "file" and not (self.source and self.destination):
            errs.append(f"{where}: file provisioner needs 'source' and 'destination'")
        return errs


@dataclass(frozen=True)
class BuildConfig:
    connect: ConnectConfig = field(default_factory=ConnectConfig)
    create: CreateConfig = field(default_factory=CreateConfig)
    hardware: HardwareConfig = field(default_factory=HardwareConfig)
    comm: CommConfig = field(default_factory=CommConfig)
    provisioners: List[ProvisionerConfig] = field(default_factory=list)

    create_snapshot: bool = False
    snapshot_name: str = "Created by vsphere-iso"
    convert_to_template: bool = False
    shutdown_timeout: float = 300.0

    KEYS = {
        "create_snapshot": "create_snapshot",
        "snapshot_name": "snapshot_name",
        "convert_to_template": "convert_to_template",
        "shutdown_timeout": "shutdown_timeout",
    }

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "BuildConfig":
        """
        Build the typed config from the flat yaml mapping
        (all sections share one flat namespace of keys).
        Raises ConfigError listing every value of the wrong type.
        """
        raw = dict(raw or {})
        errors: List[str] = []

        provisioners = []
        entries = raw.get("provisioners") or []
        if not isinstance(entries, list):
            errors.append("'provisioners' must be a list")
            entries = []
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict):
                errors.append(f"provisioner #{i + 1}: must be a mapping")
                continue
            provisioners.append(ProvisionerConfig.from_dict(entry, errors))

        data = _typed(cls, raw, errors, cls.KEYS)
        if not data.get("snapshot_name"):
            data.pop("snapshot_name", None)

        config = cls(
            connect=ConnectConfig.from_dict(raw, errors),
            create=CreateConfig.from_dict(raw, errors),
            hardware=HardwareConfig.from_dict(raw, errors),
            comm=CommConfig.from_dict(raw, errors),
            provisioners=provisioners,
            **data,
        )
        if errors:
            raise ConfigError(errors)
        return config

    def prepare(self) -> List[str]:
        errs: List[str] = []
        errs += self.connect.prepare()
        errs += self.create.prepare()
        errs += self.hardware.prepare()
        errs += self.comm.prepare()
        for i, p in enumerate(self.provisioners):
            errs += p.prepare(i)
        if self.shutdown_timeout <= 0:
            errs.append("'shutdown_timeout' must be positive")
        return errs

    def validate(self) -> "BuildConfig":
        errs = self.prepare()
        if errs:
            raise ConfigError(errs)
        return self
