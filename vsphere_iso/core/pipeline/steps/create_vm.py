from vsphere_iso.config.models import CreateConfig
from vsphere_iso.core.pipeline.context import BuildContext
from vsphere_iso.core.pipeline.steps.base import Step, StepAction


class CreateVMStep(Step):
    name = "create_vm"

    def __init__(self, config: CreateConfig):
        self.config = config

    def run(self, ctx: BuildContext) -> StepAction:
        driver = ctx.require_driver()

        ctx.ui.say("Creating VM...")
        try:
            vm = driver.create_vm(self.config)
        except Exception as e:
            return self.fail(ctx, e)

        ctx.vm = vm
        return StepAction.CONTINUE

    def cleanup(self, ctx: BuildContext) -> None:
        # A finished build keeps its VM
        if not ctx.aborted or ctx.vm is None:
            return

        ctx.ui.say("Destroying VM...")
        try:
            ctx.require_driver().destroy_vm(ctx.vm)
        except Exception as e:
            ctx.ui.error(str(e))
