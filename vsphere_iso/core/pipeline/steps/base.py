from enum import Enum

from vsphere_iso.core.pipeline.context import BuildContext


class StepAction(str, Enum):
    CONTINUE = "continue"
    HALT = "halt"
    CANCEL = "cancel"


class Step:
    """
    Stateless provisioning step.
    MUST NOT store run state on the instance, only its own configuration.

    run():     forward effect, returns exactly one StepAction
    cleanup(): compensation, called only if run() returned CONTINUE
               and the build later ended abnormally
    """

    name: str

    def run(self, ctx: BuildContext) -> StepAction:
        raise NotImplementedError

    def cleanup(self, ctx: BuildContext) -> None:
        pass

    def fail(self, ctx: BuildContext, err: BaseException) -> StepAction:
        ctx.record_error(err)
        return StepAction.HALT
