import textwrap

import pytest

from vsphere_iso.config.loader import load_build_config
from vsphere_iso.config.models import (
    BuildConfig,
    ConfigError,
    HardwareConfig,
    parse_disk_size,
)

VALID = """
vcenter_server: vc.example.com
username: admin
password: secret
insecure_connection: true
datacenter: dc1

vm_name: ubuntu-base
guest_os_type: ubuntu64Guest
cpu: 2
ram: 4096
disk_size: 40G
iso: iso/ubuntu.iso
iso_datastore: isos
datastore: ds1
network: VM Network
network_adapter: vmxnet3

CPUs: 2
RAM_reservation: 1024

communicator: ssh
ssh_username: ubuntu
ssh_password: ubuntu

create_snapshot: true
convert_to_template: true

provisioners:
  - type: shell
    inline:
      - apt-get update
  - type: file
    source: files/motd
    destination: /etc/motd
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("VSPHERE_SERVER", "VSPHERE_USER", "VSPHERE_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    # keep a developer's .env out of the tests
    monkeypatch.setattr("vsphere_iso.config.loader.load_dotenv", lambda: False)


def _write(tmp_path, text):
    path = tmp_path / "build.yaml"
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return str(path)


def test_loads_full_definition(tmp_path):
    config = load_build_config(_write(tmp_path, VALID))

    assert config.connect.vcenter_server == "vc.example.com"
    assert config.connect.insecure_connection is True
    assert config.create.vm_name == "ubuntu-base"
    assert config.create.disk_size_kb == 40 * 1024 * 1024
    assert config.hardware == HardwareConfig(cpus=2, ram_reservation=1024)
    assert config.comm.type == "ssh"
    assert config.comm.enabled
    assert [p.type for p in config.provisioners] == ["shell", "file"]
    assert config.provisioners[0].inline == ["apt-get update"]
    assert config.create_snapshot and config.convert_to_template


def test_all_problems_reported_together(tmp_path):
    path = _write(tmp_path, """
        RAM_reservation: 512
        RAM_reserve_all: true
        communicator: ssh
        disk_size: lots
    """)

    with pytest.raises(ConfigError) as excinfo:
        load_build_config(path)

    errors = excinfo.value.errors
    assert "vCenter hostname is required" in errors
    assert "Username is required" in errors
    assert "Password is required" in errors
    assert "Target VM name is required" in errors
    assert "'RAM_reservation' and 'RAM_reserve_all' cannot be used together" in errors
    assert "'ssh_username' must be specified when communicator is 'ssh'" in errors
    assert any("disk_size" in e for e in errors)


def test_credentials_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("VSPHERE_SERVER", "vc.env.local")
    monkeypatch.setenv("VSPHERE_USER", "svc-packer")
    monkeypatch.setenv("VSPHERE_PASSWORD", "from-env")

    config = load_build_config(_write(tmp_path, """
        vm_name: test
        communicator: none
    """))

    assert config.connect.vcenter_server == "vc.env.local"
    assert config.connect.username == "svc-packer"
    assert config.connect.password == "from-env"


def test_variables_are_expanded(tmp_path, monkeypatch):
    monkeypatch.setenv("BUILD_PASSWORD", "s3cret")

    config = load_build_config(_write(tmp_path, """
        vcenter_server: vc
        username: admin
        password: ${BUILD_PASSWORD}
        vm_name: test
        communicator: none
    """))

    assert config.connect.password == "s3cret"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_build_config(str(tmp_path / "nope.yaml"))


def test_unknown_communicator_and_provisioner():
    config = BuildConfig.from_dict({
        "vcenter_server": "vc",
        "username": "u",
        "password": "p",
        "vm_name": "x",
        "communicator": "winrm",
        "provisioners": [{"type": "ansible"}, {"type": "shell"}],
    })

    errors = config.prepare()

    assert any("Unknown communicator 'winrm'" in e for e in errors)
    assert "provisioner #1: unknown type 'ansible'" in errors
    assert "provisioner #2: shell provisioner needs 'inline' or 'scripts'" in errors


@pytest.mark.parametrize("value, kb", [
    ("20", 20 * 1024 * 1024),
    ("20G", 20 * 1024 * 1024),
    ("20GB", 20 * 1024 * 1024),
    ("20gib", 20 * 1024 * 1024),
    ("512M", 512 * 1024),
    ("1T", 1024 ** 3),
])
def test_parse_disk_size(value, kb):
    assert parse_disk_size(value) == kb


def test_parse_disk_size_rejects_garbage():
    with pytest.raises(ValueError):
        parse_disk_size("twenty gigs")


def test_hardware_defaults():
    assert HardwareConfig().is_default()
    assert not HardwareConfig.from_dict({"CPU_limit": 2000}).is_default()


def test_expanded_and_quoted_values_get_field_types(tmp_path, monkeypatch):
    monkeypatch.setenv("RAM_RES", "1024")
    monkeypatch.setenv("SNAPSHOT", "false")

    config = load_build_config(_write(tmp_path, """
        vcenter_server: vc
        username: admin
        password: secret
        insecure_connection: "yes"
        vm_name: test
        cpu: "4"
        RAM_reservation: ${RAM_RES}
        communicator: ssh
        ssh_username: root
        ssh_port: "2222"
        shutdown_timeout: "600"
        create_snapshot: ${SNAPSHOT}
        convert_to_template: "0"
    """))

    assert config.hardware.ram_reservation == 1024
    assert config.create.cpu == 4
    assert config.comm.ssh_port == 2222
    assert config.shutdown_timeout == 600.0
    assert config.connect.insecure_connection is True
    assert config.create_snapshot is False
    assert config.convert_to_template is False


def test_wrong_types_are_config_errors(tmp_path):
    path = _write(tmp_path, """
        vcenter_server: vc
        username: admin
        password: secret
        vm_name: test
        CPUs: two
        RAM_reserve_all: maybe
        communicator: none
        shutdown_timeout: soon
        provisioners:
          - apt-get update
    """)

    with pytest.raises(ConfigError) as excinfo:
        load_build_config(path)

    errors = excinfo.value.errors
    assert "'CPUs': expected an integer, got 'two'" in errors
    assert "'RAM_reserve_all': expected true or false, got 'maybe'" in errors
    assert "'shutdown_timeout': expected a number, got 'soon'" in errors
    assert "provisioner #1: must be a mapping" in errors


def test_section_from_dict_raises_on_its_own():
    with pytest.raises(ConfigError, match="'CPU_limit': expected an integer"):
        HardwareConfig.from_dict({"CPU_limit": "unlimited"})
