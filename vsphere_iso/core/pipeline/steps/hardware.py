from vsphere_iso.config.models import HardwareConfig
from vsphere_iso.core.pipeline.context import BuildContext
from vsphere_iso.core.pipeline.steps.base import Step, StepAction


class ConfigureHardwareStep(Step):
    name = "configure_hardware"

    def __init__(self, config: HardwareConfig):
        self.config = config

    def run(self, ctx: BuildContext) -> StepAction:
        driver = ctx.require_driver()
        vm = ctx.require_vm()

        if self.config.is_default():
            return StepAction.CONTINUE

        ctx.ui.say("Customizing hardware parameters...")
        try:
            driver.configure_vm(vm, self.config)
        except Exception as e:
            return self.fail(ctx, e)

        return StepAction.CONTINUE
