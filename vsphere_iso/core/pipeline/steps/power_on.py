from vsphere_iso.core.pipeline.context import BuildContext
from vsphere_iso.core.pipeline.errors import OperationCancelled
from vsphere_iso.core.pipeline.steps.base import Step, StepAction


class PowerOnStep(Step):
    """
    Boots the VM and waits for the guest tools to report an address.

    If anything fails after the power-on request this step powers the VM
    off again itself: cleanup() only runs for steps that completed.
    """

    name = "power_on"

    def run(self, ctx: BuildContext) -> StepAction:
        driver = ctx.require_driver()
        vm = ctx.require_vm()

        ctx.ui.say("Power on VM...")
        try:
            driver.power_on(vm)
        except Exception as e:
            self._power_off(ctx)
            return self.fail(ctx, e)

        try:
            ctx.cancel.raise_if_cancelled("powering on")
            ctx.ui.say("Waiting for IP...")
            ip = driver.wait_for_ip(vm, ctx.cancel)
        except OperationCancelled:
            self._power_off(ctx)
            return StepAction.CANCEL
        except Exception as e:
            self._power_off(ctx)
            return self.fail(ctx, e)

        ctx.ip = ip
        ctx.ui.say(f"IP address: {ip}")
        return StepAction.CONTINUE

    def cleanup(self, ctx: BuildContext) -> None:
        if not ctx.aborted:
            return
        self._power_off(ctx)

    def _power_off(self, ctx: BuildContext) -> None:
        ctx.ui.say("Power off VM...")
        try:
            ctx.require_driver().power_off(ctx.require_vm())
        except Exception as e:
            ctx.ui.error(str(e))
