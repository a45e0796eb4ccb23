import logging
from typing import List

from vsphere_iso.config.models import CommConfig, ProvisionerConfig
from vsphere_iso.core.pipeline.context import BuildContext
from vsphere_iso.core.pipeline.errors import OperationCancelled
from vsphere_iso.core.pipeline.steps.base import Step, StepAction

logger = logging.getLogger(__name__)


class ProvisionGuestStep(Step):
    """
    Hands the booted guest over to the provisioning collaborator.

    Core:
    - does not know how commands reach the guest
    - works ONLY through GuestProvisioner
    """

    name = "provision"

    def __init__(self, comm: CommConfig, provisioners: List[ProvisionerConfig]):
        self.comm = comm
        self.provisioners = provisioners

    def run(self, ctx: BuildContext) -> StepAction:
        host = self.comm.ssh_host or ctx.require_ip()

        ctx.ui.say(f"Provisioning guest at {host}...")
        try:
            ctx.services.provisioner.provision(
                host, self.comm, self.provisioners, ctx.cancel
            )
        except OperationCancelled:
            return StepAction.CANCEL
        except Exception as e:
            # An interrupted ssh child fails on its own, the token tells why
            if ctx.cancel.cancelled:
                logger.info("Provisioning stopped by cancellation: %s", e)
                return StepAction.CANCEL
            return self.fail(ctx, e)

        return StepAction.CONTINUE
