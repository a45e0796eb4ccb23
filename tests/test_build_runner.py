from dataclasses import replace

import pytest

from vsphere_iso.config.models import CommConfig
from vsphere_iso.core.build.models import Build, BuildStatus
from vsphere_iso.core.build.runner import BuildRunner
from vsphere_iso.core.pipeline.errors import MissingStateError
from vsphere_iso.core.pipeline.steps.base import StepAction
from vsphere_iso.worker import Worker


def test_completed_build_keeps_artifact(config, services):
    build = BuildRunner(services).run(Build(), config)

    assert build.status is BuildStatus.COMPLETED
    assert build.vm_name == "test-vm"
    assert build.artifact is not None
    assert build.error is None


def test_failed_build(config, services, driver):
    driver.fail_on["create_vm"] = RuntimeError("datastore not found")

    build = BuildRunner(services).run(Build(), config)

    assert build.status is BuildStatus.FAILED
    assert build.error == "datastore not found"
    assert build.artifact is None


def test_cancelled_build(config, services, driver):
    runner = BuildRunner(services)
    driver.hooks["configure_vm"] = runner.cancel

    build = runner.run(Build(), config)

    assert build.status is BuildStatus.CANCELLED
    assert build.error == "Build was cancelled."
    assert "destroy_vm" in driver.calls


def test_halted_build(config, services, monkeypatch):
    from vsphere_iso.core.pipeline.steps.snapshot import CreateSnapshotStep

    monkeypatch.setattr(CreateSnapshotStep, "run", lambda self, ctx: StepAction.HALT)

    build = BuildRunner(services).run(Build(), config)

    assert build.status is BuildStatus.HALTED
    assert build.error == "Build was halted."


def test_unexpected_error_marks_failed_and_propagates(config, services, monkeypatch):
    from vsphere_iso.core.pipeline import runner as step_runner

    def broken_result(self, ctx):
        raise MissingStateError("vm")

    monkeypatch.setattr(step_runner.StepRunner, "_result", broken_result)
    build = Build()

    with pytest.raises(MissingStateError):
        BuildRunner(services).run(build, config)

    assert build.status is BuildStatus.FAILED


def test_worker_wires_console_ui(config, driver, capsys):
    config = replace(config, comm=CommConfig(type="none"))

    build = Worker(driver_factory=lambda c: driver).submit(Build(), config)

    assert build.status is BuildStatus.COMPLETED
    out = capsys.readouterr().out
    assert "==> test-vm: Creating VM..." in out
    assert "==> test-vm: Creating snapshot..." in out


def test_cancel_before_submit_is_not_lost(config, driver):
    config = replace(config, comm=CommConfig(type="none"))
    worker = Worker(driver_factory=lambda c: driver)

    worker.cancel()
    build = worker.submit(Build(), config)

    assert build.status is BuildStatus.CANCELLED
    assert driver.calls == []
