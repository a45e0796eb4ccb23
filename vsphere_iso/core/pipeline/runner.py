import logging
import time
from typing import List, Optional, Sequence

from vsphere_iso.core.build.artifact import Artifact
from vsphere_iso.core.pipeline.cancellation import CancellationToken
from vsphere_iso.core.pipeline.context import BuildContext, Termination
from vsphere_iso.core.pipeline.errors import (
    BuildCancelledError,
    BuildFailedError,
    BuildHaltedError,
)
from vsphere_iso.core.pipeline.steps.base import Step, StepAction

logger = logging.getLogger(__name__)


class StepRunner:
    """
    Runs an ordered list of steps once against one BuildContext.

    Only steps whose run() returned CONTINUE are compensated, in reverse
    order, and only if the build ended abnormally (error, cancel or halt).
    The first terminal cause is the one reported to the caller.
    """

    def __init__(self, steps: Sequence[Step], cancel: Optional[CancellationToken] = None):
        self.steps = list(steps)
        self.token = cancel or CancellationToken()

    def cancel(self) -> None:
        """
        Request cooperative cancellation. Safe to call from another thread
        or a signal handler; the running step is not interrupted.
        """
        self.token.cancel()

    def run(self, ctx: BuildContext) -> Artifact:
        ctx.cancel = self.token
        ran: List[Step] = []

        for step in self.steps:
            # 1. Cancelled between steps: never start the next one
            if self.token.cancelled:
                logger.info("Cancelled before step '%s'", step.name)
                ctx.terminate(Termination.CANCELLED)
                break

            # 2. Forward effect
            action = self._run_step(step, ctx)

            # 3. React to the outcome
            if action is StepAction.CONTINUE:
                ran.append(step)
                continue

            if action is StepAction.CANCEL:
                ctx.terminate(Termination.CANCELLED)
            elif ctx.error is not None:
                ctx.terminate(Termination.ERROR)
            else:
                ctx.terminate(Termination.HALTED)
            break

        if ctx.aborted:
            self._compensate(ran, ctx)

        return self._result(ctx)

    def _run_step(self, step: Step, ctx: BuildContext) -> StepAction:
        logger.info("Running step '%s'", step.name)
        start = time.monotonic()

        try:
            action = StepAction(step.run(ctx))
        except Exception as e:
            # A step that raises is treated as one that recorded the error and halted
            logger.exception("Step '%s' raised", step.name)
            ctx.record_error(e)
            action = StepAction.HALT

        if action is StepAction.CONTINUE and ctx.error is not None:
            logger.error(
                "Step '%s' returned continue with a recorded error, halting", step.name
            )
            action = StepAction.HALT

        logger.info(
            "Step '%s' finished: %s (%.1fs)",
            step.name,
            action.value,
            time.monotonic() - start,
        )
        return action

    def _compensate(self, ran: List[Step], ctx: BuildContext) -> None:
        logger.info(
            "Build %s, cleaning up %d step(s)", ctx.termination.value, len(ran)
        )

        for step in reversed(ran):
            try:
                step.cleanup(ctx)
            except Exception as e:
                # Reported, never promoted to the build result
                logger.exception("Cleanup of step '%s' failed", step.name)
                ctx.ui.error(f"Cleanup of step '{step.name}' failed: {e}")

    def _result(self, ctx: BuildContext) -> Artifact:
        if ctx.termination is Termination.ERROR:
            raise BuildFailedError(ctx.error)
        if ctx.termination is Termination.CANCELLED:
            raise BuildCancelledError()
        if ctx.termination is Termination.HALTED:
            raise BuildHaltedError()

        return Artifact(
            name=ctx.config.create.vm_name,
            vm=ctx.require_vm(),
            driver=ctx.require_driver(),
        )
