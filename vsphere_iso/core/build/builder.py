import logging
from typing import List, Optional

from vsphere_iso.config.models import BuildConfig
from vsphere_iso.core.build.artifact import Artifact
from vsphere_iso.core.pipeline.cancellation import CancellationToken
from vsphere_iso.core.pipeline.context import BuildContext
from vsphere_iso.core.pipeline.runner import StepRunner
from vsphere_iso.core.pipeline.services import Services
from vsphere_iso.core.pipeline.steps.base import Step
from vsphere_iso.core.pipeline.steps.connect import ConnectStep
from vsphere_iso.core.pipeline.steps.create_vm import CreateVMStep
from vsphere_iso.core.pipeline.steps.hardware import ConfigureHardwareStep
from vsphere_iso.core.pipeline.steps.power_on import PowerOnStep
from vsphere_iso.core.pipeline.steps.provision import ProvisionGuestStep
from vsphere_iso.core.pipeline.steps.shutdown import ShutdownStep
from vsphere_iso.core.pipeline.steps.snapshot import CreateSnapshotStep
from vsphere_iso.core.pipeline.steps.template import ConvertToTemplateStep

logger = logging.getLogger(__name__)


class Builder:
    """
    Assembles the step list from the build definition and runs it once.
    """

    def __init__(
        self,
        config: BuildConfig,
        services: Services,
        cancel: Optional[CancellationToken] = None,
    ):
        self.config = config
        self.services = services
        self.token = cancel or CancellationToken()
        self.runner: Optional[StepRunner] = None

    def steps(self) -> List[Step]:
        c = self.config

        steps: List[Step] = [
            ConnectStep(c.connect),
            CreateVMStep(c.create),
            ConfigureHardwareStep(c.hardware),
        ]

        # Without a communicator the guest is never booted
        if c.comm.enabled:
            steps += [
                PowerOnStep(),
                ProvisionGuestStep(c.comm, c.provisioners),
                ShutdownStep(timeout=c.shutdown_timeout),
            ]

        steps += [
            CreateSnapshotStep(c.create_snapshot, c.snapshot_name),
            ConvertToTemplateStep(c.convert_to_template),
        ]
        return steps

    def run(self, ctx: Optional[BuildContext] = None) -> Artifact:
        if ctx is None:
            ctx = BuildContext(config=self.config, services=self.services)

        self.runner = StepRunner(self.steps(), cancel=self.token)
        logger.info(
            "Build %s: %d steps for VM '%s'",
            ctx.build_id,
            len(self.runner.steps),
            self.config.create.vm_name,
        )
        return self.runner.run(ctx)

    def cancel(self) -> None:
        self.token.cancel()
