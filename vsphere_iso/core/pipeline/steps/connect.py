from vsphere_iso.config.models import ConnectConfig
from vsphere_iso.core.pipeline.context import BuildContext
from vsphere_iso.core.pipeline.steps.base import Step, StepAction


class ConnectStep(Step):
    name = "connect"

    def __init__(self, config: ConnectConfig):
        self.config = config

    def run(self, ctx: BuildContext) -> StepAction:
        ctx.ui.say(f"Connecting to {self.config.vcenter_server}...")

        try:
            driver = ctx.services.driver_factory(self.config)
        except Exception as e:
            return self.fail(ctx, e)

        ctx.driver = driver
        return StepAction.CONTINUE
