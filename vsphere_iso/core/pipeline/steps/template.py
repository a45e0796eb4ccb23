from vsphere_iso.core.pipeline.context import BuildContext
from vsphere_iso.core.pipeline.steps.base import Step, StepAction


class ConvertToTemplateStep(Step):
    name = "convert_to_template"

    def __init__(self, convert_to_template: bool):
        self.convert_to_template = convert_to_template

    def run(self, ctx: BuildContext) -> StepAction:
        driver = ctx.require_driver()
        vm = ctx.require_vm()

        if self.convert_to_template:
            ctx.ui.say("Convert VM into template...")
            try:
                driver.convert_to_template(vm)
            except Exception as e:
                return self.fail(ctx, e)

        return StepAction.CONTINUE
