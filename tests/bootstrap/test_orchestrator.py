import pytest

from firstboot.bootstrap.models import OK, SKIPPED
from firstboot.bootstrap.orchestrator import BootstrapOrchestrator
from firstboot.bootstrap.steps import default_steps
from firstboot.bootstrap.steps.base import BootstrapStep
from firstboot.errors import AlreadyBootstrappedError, ConfigurationError


class RecordingStep(BootstrapStep):
    def __init__(self, name, log, skip=None, fail=None):
        self.name = name
        self.log = log
        self.skip = skip
        self.fail = fail

    def skip_reason(self, ctx, state):
        return self.skip

    def run(self, ctx, tk, state):
        self.log.append(self.name)
        if self.fail:
            raise self.fail


def test_default_step_order():
    assert [s.name for s in default_steps()] == [
        "network-identity",
        "agent-lifecycle",
        "host-preparation",
        "container-runtime-detection",
        "storage-discovery",
        "storage-provisioning",
        "container-runtime-integration",
        "mount-table",
        "agent-configuration",
        "identity-tagging",
        "convergence",
    ]


def test_runs_steps_in_order_and_writes_marker(toolkit, ctx, capture):
    ran = []
    steps = [
        RecordingStep("one", ran),
        RecordingStep("two", ran, skip="nothing to do"),
        RecordingStep("three", ran),
    ]

    report = BootstrapOrchestrator(toolkit, steps).run(ctx)

    assert ran == ["one", "three"]
    assert [o.status for o in report.outcomes] == [OK, SKIPPED, OK]
    assert report.ok
    assert report.summary() == "OK=2 SKIPPED=1 FAILED=0"

    marker = toolkit.settings.lock_file
    assert marker.read_text().startswith("TIMESTAMP=1700000000\n")
    assert not toolkit.settings.completion_lock.exists()

    assert capture.kinds() == [
        "BootstrapStarted",
        "StepStarted", "StepSucceeded",
        "StepStarted", "StepSkipped",
        "StepStarted", "StepSucceeded",
        "BootstrapSummary",
    ]
    summary = capture.events[-1]
    assert (summary.ok, summary.skipped, summary.failed, summary.status) == (2, 1, 0, "OK")
    assert {e.run_id for e in capture.events} == {"test-run"}
    assert capture.events[0].host == ctx.fqdn


def test_failure_stops_the_run_without_marker(toolkit, ctx, capture):
    ran = []
    steps = [
        RecordingStep("one", ran),
        RecordingStep("two", ran, fail=ConfigurationError("no coordinator")),
        RecordingStep("three", ran),
    ]
    orchestrator = BootstrapOrchestrator(toolkit, steps)

    with pytest.raises(ConfigurationError):
        orchestrator.run(ctx)

    assert ran == ["one", "two"]
    assert not toolkit.settings.lock_file.exists()
    assert not toolkit.settings.completion_lock.exists()

    failed = [e for e in capture.events if e.__class__.__name__ == "StepFailed"]
    assert [e.step for e in failed] == ["two"]
    summary = capture.events[-1]
    assert summary.status == "FAILED"
    assert summary.failed == 1
    assert summary.error == "no coordinator"


def test_refuses_second_run_before_any_step(toolkit, ctx, capture):
    toolkit.settings.lock_file.parent.mkdir(parents=True, exist_ok=True)
    toolkit.settings.lock_file.write_text("TIMESTAMP=1\n")
    ran = []

    with pytest.raises(AlreadyBootstrappedError):
        BootstrapOrchestrator(toolkit, [RecordingStep("one", ran)]).run(ctx)

    assert ran == []
    assert capture.events == []


def test_second_run_is_refused_after_success(toolkit, ctx):
    ran = []
    BootstrapOrchestrator(toolkit, [RecordingStep("one", ran)]).run(ctx)

    with pytest.raises(AlreadyBootstrappedError):
        BootstrapOrchestrator(toolkit, [RecordingStep("one", ran)]).run(ctx)
    assert ran == ["one"]

