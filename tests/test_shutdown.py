import time

from vsphere_iso.core.driver.port import PowerState
from vsphere_iso.core.pipeline.errors import ShutdownTimeoutError
from vsphere_iso.core.pipeline.steps.base import StepAction
from vsphere_iso.core.pipeline.steps.shutdown import ShutdownStep


def test_shutdown_waits_until_powered_off(ready_ctx, driver):
    driver.state = PowerState.POWERED_ON
    driver.shutdown_completes = False
    polls = {"n": 0}

    def power_off_on_third_poll():
        polls["n"] += 1
        if polls["n"] == 3:
            driver.state = PowerState.POWERED_OFF

    driver.hooks["power_state"] = power_off_on_third_poll

    action = ShutdownStep(timeout=5, poll_interval=0.01).run(ready_ctx)

    assert action is StepAction.CONTINUE
    assert driver.calls.count("power_state") == 3
    assert "VM stopped" in ready_ctx.ui.says


def test_shutdown_times_out(ready_ctx, driver):
    driver.state = PowerState.POWERED_ON
    driver.shutdown_completes = False

    start = time.monotonic()
    action = ShutdownStep(timeout=0.1, poll_interval=0.02).run(ready_ctx)
    elapsed = time.monotonic() - start

    assert action is StepAction.HALT
    assert isinstance(ready_ctx.error, ShutdownTimeoutError)
    assert str(ready_ctx.error) == "Timeout while waiting for machine to shut down."
    assert elapsed < 2
    assert not ready_ctx.cancel.cancelled


def test_shutdown_request_failure_is_wrapped(ready_ctx, driver):
    driver.fail_on["start_shutdown"] = RuntimeError("tools not running")

    action = ShutdownStep(timeout=1, poll_interval=0.01).run(ready_ctx)

    assert action is StepAction.HALT
    assert str(ready_ctx.error) == "Cannot shut down VM: tools not running"
    assert "power_state" not in driver.calls


def test_shutdown_observes_cancel_while_polling(ready_ctx, driver):
    driver.state = PowerState.POWERED_ON
    driver.shutdown_completes = False
    driver.hooks["power_state"] = ready_ctx.cancel.cancel

    action = ShutdownStep(timeout=60, poll_interval=30).run(ready_ctx)

    assert action is StepAction.CANCEL
    assert ready_ctx.error is None
