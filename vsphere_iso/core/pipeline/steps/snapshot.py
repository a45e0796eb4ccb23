from vsphere_iso.core.pipeline.context import BuildContext
from vsphere_iso.core.pipeline.steps.base import Step, StepAction


class CreateSnapshotStep(Step):
    name = "create_snapshot"

    def __init__(self, create_snapshot: bool, snapshot_name: str = "Created by vsphere-iso"):
        self.create_snapshot = create_snapshot
        self.snapshot_name = snapshot_name

    def run(self, ctx: BuildContext) -> StepAction:
        driver = ctx.require_driver()
        vm = ctx.require_vm()

        if self.create_snapshot:
            ctx.ui.say("Creating snapshot...")
            try:
                driver.create_snapshot(vm, self.snapshot_name)
            except Exception as e:
                return self.fail(ctx, e)

        return StepAction.CONTINUE
