import logging
import os
import shlex
import socket
import subprocess
import time
from pathlib import Path
from typing import List, Optional

from vsphere_iso.config.models import CommConfig, ProvisionerConfig
from vsphere_iso.core.pipeline.errors import OperationCancelled, VsphereIsoError
from vsphere_iso.core.provisioning.port import GuestProvisioner
from vsphere_iso.core.ui.port import Ui

logger = logging.getLogger(__name__)


class ProvisionerError(VsphereIsoError):
    pass


class CommunicatorTimeoutError(ProvisionerError):
    pass


class SSHProvisioner(GuestProvisioner):
    """
    Provisions the guest through the OpenSSH client (ssh / scp).

    - waits until the SSH port accepts TCP connections
    - runs shell provisioners (inline commands or uploaded scripts)
    - uploads files
    Password auth is delegated to `sshpass -e`.
    """

    REMOTE_TMP = "/tmp"

    def __init__(
        self,
        ui: Optional[Ui] = None,
        run=subprocess.run,
        connect=socket.create_connection,
        poll_interval: float = 5.0,
    ):
        self.ui = ui
        self._run = run
        self._connect = connect
        self.poll_interval = poll_interval

    def provision(
        self,
        host: str,
        comm: CommConfig,
        provisioners: List[ProvisionerConfig],
        cancel,
    ) -> None:
        self.wait_for_ssh(host, comm, cancel)

        for i, p in enumerate(provisioners):
            cancel.raise_if_cancelled(f"running provisioner #{i + 1}")
            logger.info("Provisioner #%d (%s) on %s", i + 1, p.type, host)

            if p.type == "shell":
                self._run_shell(host, comm, p, i, cancel)
            elif p.type == "file":
                self._say(f"Uploading {p.source} => {p.destination}")
                self._exec(self.scp_command(host, comm, p.source, p.destination), comm, "file upload")
            else:
                raise ProvisionerError(f"Unsupported provisioner type: {p.type}")

    def wait_for_ssh(self, host: str, comm: CommConfig, cancel) -> None:
        self._say("Waiting for SSH to become available...")
        deadline = time.monotonic() + comm.ssh_timeout

        while True:
            cancel.raise_if_cancelled("waiting for SSH")
            try:
                with self._connect((host, comm.ssh_port), timeout=5):
                    logger.info("SSH port %s:%s is open", host, comm.ssh_port)
                    return
            except OSError as e:
                logger.debug("SSH not ready on %s:%s: %s", host, comm.ssh_port, e)
                if time.monotonic() >= deadline:
                    raise CommunicatorTimeoutError(
                        f"Timeout waiting for SSH on {host}:{comm.ssh_port}: {e}"
                    ) from e

            if cancel.wait(self.poll_interval):
                raise OperationCancelled("Cancelled while waiting for SSH")

    # --- shell ---

    def _run_shell(self, host: str, comm: CommConfig, p: ProvisionerConfig, index: int, cancel) -> None:
        if p.inline:
            script = "\n".join(["set -e", *p.inline])
            self._say("Running inline commands...")
            self._exec(self.ssh_command(host, comm, f"sh -c {shlex.quote(script)}"), comm, "inline shell")

        for n, local in enumerate(p.scripts):
            cancel.raise_if_cancelled(f"running script {local}")
            if not Path(local).is_file():
                raise ProvisionerError(f"Script not found: {local}")

            remote = f"{self.REMOTE_TMP}/vsphere-iso-{index}-{n}-{Path(local).name}"
            self._say(f"Running script {local}...")
            self._exec(self.scp_command(host, comm, local, remote), comm, f"upload of {local}")
            self._exec(
                self.ssh_command(
                    host, comm, f"chmod +x {shlex.quote(remote)} && {shlex.quote(remote)}"
                ),
                comm,
                f"script {local}",
            )

    # --- command construction ---

    def ssh_command(self, host: str, comm: CommConfig, remote_cmd: str) -> List[str]:
        return [
            *self._auth_prefix(comm),
            "ssh",
            *self._options(comm),
            "-p",
            str(comm.ssh_port),
            f"{comm.ssh_username}@{host}",
            remote_cmd,
        ]

    def scp_command(self, host: str, comm: CommConfig, source: str, destination: str) -> List[str]:
        return [
            *self._auth_prefix(comm),
            "scp",
            *self._options(comm),
            "-P",
            str(comm.ssh_port),
            source,
            f"{comm.ssh_username}@{host}:{destination}",
        ]

    def _uses_password(self, comm: CommConfig) -> bool:
        return bool(comm.ssh_password) and not comm.ssh_private_key_file

    def _auth_prefix(self, comm: CommConfig) -> List[str]:
        return ["sshpass", "-e"] if self._uses_password(comm) else []

    def _options(self, comm: CommConfig) -> List[str]:
        opts = [
            "-o", "StrictHostKeyChecking=no",
            "-o", "UserKnownHostsFile=/dev/null",
            "-o", "LogLevel=ERROR",
        ]
        if comm.ssh_private_key_file:
            opts += ["-i", comm.ssh_private_key_file, "-o", "BatchMode=yes"]
        return opts

    # --- execution ---

    def _exec(self, cmd: List[str], comm: CommConfig, what: str) -> None:
        env = None
        if self._uses_password(comm):
            env = {**os.environ, "SSHPASS": comm.ssh_password}

        logger.debug("Executing: %s", " ".join(cmd[:-1]))
        try:
            # Own session: terminal Ctrl-C only reaches our signal handler
            cp = self._run(
                cmd,
                text=True,
                capture_output=True,
                check=False,
                env=env,
                start_new_session=True,
            )
        except FileNotFoundError as e:
            raise ProvisionerError(f"{what}: command not found: {cmd[0]}") from e

        for line in (cp.stdout or "").splitlines():
            if self.ui:
                self.ui.message(line)
            else:
                logger.info("%s", line)

        if cp.returncode != 0:
            stderr = (cp.stderr or "").strip()
            raise ProvisionerError(f"{what} failed (exit={cp.returncode}): {stderr}")

    def _say(self, message: str) -> None:
        if self.ui:
            self.ui.say(message)
        else:
            logger.info("%s", message)
