import logging
import time

from vsphere_iso.core.driver.port import PowerState
from vsphere_iso.core.pipeline.context import BuildContext
from vsphere_iso.core.pipeline.errors import ShutdownTimeoutError, VsphereIsoError
from vsphere_iso.core.pipeline.steps.base import Step, StepAction

logger = logging.getLogger(__name__)


class ShutdownStep(Step):
    name = "shutdown"

    def __init__(self, timeout: float = 300.0, poll_interval: float = 1.0):
        self.timeout = timeout
        self.poll_interval = poll_interval

    def run(self, ctx: BuildContext) -> StepAction:
        driver = ctx.require_driver()
        vm = ctx.require_vm()

        if ctx.cancel.cancelled:
            return StepAction.CANCEL

        ctx.ui.say("Shut down VM...")
        try:
            driver.start_shutdown(vm)
        except Exception as e:
            return self.fail(ctx, VsphereIsoError(f"Cannot shut down VM: {e}"))

        logger.info("Waiting max %ss for shutdown to complete", self.timeout)
        deadline = time.monotonic() + self.timeout

        while True:
            try:
                state = driver.power_state(vm)
            except Exception as e:
                return self.fail(ctx, e)

            if state == PowerState.POWERED_OFF:
                break

            if time.monotonic() >= deadline:
                return self.fail(ctx, ShutdownTimeoutError())

            if ctx.cancel.wait(self.poll_interval):
                return StepAction.CANCEL

        ctx.ui.say("VM stopped")
        return StepAction.CONTINUE
