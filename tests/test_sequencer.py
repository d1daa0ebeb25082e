from unittest.mock import MagicMock, patch

import pytest

from stacklaunch.local.external import BinaryProvisioner, ProvisionError
from stacklaunch.local.supervisor import process_utils
from stacklaunch.local.supervisor.shutdown import ShutdownCoordinator
from stacklaunch.local.supervisor.startup import ServiceSequencer


@pytest.fixture
def exit_func():
    return MagicMock()


@pytest.fixture
def coordinator(registry, clock, exit_func):
    return ShutdownCoordinator(registry, clock, cooldown=2.0, exit_func=exit_func)


@pytest.fixture
def sequencer_factory(registry, coordinator, clock, base_dir):
    def _build(**kwargs):
        return ServiceSequencer(registry, coordinator, base_dir, clock=clock, **kwargs)
    return _build


def test_all_successful_launches_are_registered_in_order(sequencer_factory, registry, fake_popen, descriptor):
    descriptors = [descriptor(n) for n in ("Client", "Worker", "Verify")] + [descriptor("Frontend", role="frontend")]

    assert sequencer_factory().run_all(descriptors) is True

    assert registry.names() == ["Client", "Worker", "Verify", "Frontend"]
    assert len(fake_popen) == 4


def test_launch_times_respect_inter_launch_delay(sequencer_factory, registry, fake_popen, clock, descriptor):
    descriptors = [descriptor("A"), descriptor("B"), descriptor("Frontend", role="frontend")]

    sequencer_factory(inter_launch_delay=2.0).run_all(descriptors)

    t = {entry.name: entry.launched_at for entry in registry}
    assert t["B"] - t["A"] >= 2.0
    assert t["Frontend"] - t["B"] >= 2.0
    # No trailing delay after the frontend.
    assert clock.sleeps == [2.0, 2.0]


def test_descriptor_delay_overrides_default(sequencer_factory, fake_popen, clock, descriptor):
    sequencer_factory(inter_launch_delay=2.0).run_all([descriptor("A", delay=0.5), descriptor("B")])

    assert clock.sleeps == [0.5, 2.0]


def test_frontend_is_launched_after_all_agents(sequencer_factory, registry, fake_popen, descriptor):
    descriptors = [descriptor("Frontend", role="frontend"), descriptor("A"), descriptor("B")]

    sequencer_factory().run_all(descriptors)

    assert registry.names() == ["A", "B", "Frontend"]


def test_failed_launch_is_skipped_and_sequence_continues(sequencer_factory, registry, fake_popen, descriptor, coordinator):
    real_launch = process_utils.launch_process

    def _launch(desc, *args, **kwargs):
        if desc.name == "Broken":
            raise process_utils.LaunchError(desc.name, "spawn failed")
        return real_launch(desc, *args, **kwargs)

    sequencer = sequencer_factory()
    with patch.object(process_utils, "launch_process", side_effect=_launch):
        assert sequencer.run_all([descriptor("A"), descriptor("Broken"), descriptor("C")]) is True

    assert registry.names() == ["A", "C"]
    assert "Broken" not in registry.names()
    assert sequencer.failed == ["Broken"]
    assert not coordinator.state.triggered


def test_unexpected_error_triggers_shutdown_with_status_one(sequencer_factory, registry, fake_popen, clock, exit_func, descriptor, coordinator):
    real_launch = process_utils.launch_process

    def _launch(desc, *args, **kwargs):
        if desc.name == "B":
            raise RuntimeError("disk on fire")
        return real_launch(desc, *args, **kwargs)

    with patch.object(process_utils, "launch_process", side_effect=_launch), \
            patch("stacklaunch.local.supervisor.shutdown.request_termination") as terminate:
        assert sequencer_factory().run_all([descriptor("A"), descriptor("B"), descriptor("C")]) is False

    assert coordinator.state.triggered
    assert [c.args[0].name for c in terminate.call_args_list] == ["A"]
    # C was never attempted.
    assert [p.args for p in fake_popen] == ["node a.js"]
    clock.advance(2.0)
    exit_func.assert_called_once_with(1)


def test_shutdown_during_delay_aborts_remaining_launches(sequencer_factory, registry, fake_popen, clock, coordinator, descriptor):
    # Fire a shutdown while the sequencer is waiting after the first launch.
    original_sleep = clock.sleep

    def _sleep(seconds, interrupt=None):
        with patch("stacklaunch.local.supervisor.shutdown.request_termination"):
            coordinator.trigger()
        return original_sleep(seconds, interrupt)

    clock.sleep = _sleep
    result = sequencer_factory().run_all([descriptor("A"), descriptor("B"), descriptor("Frontend", role="frontend")])

    assert result is False
    assert [p.args for p in fake_popen] == ["node a.js"]


def test_provisioning_failure_is_skipped_when_broker_optional(sequencer_factory, registry, fake_popen, descriptor, base_dir, capsys):
    provisioner = MagicMock(spec=BinaryProvisioner)
    provisioner.ensure_binary.side_effect = ProvisionError("network down")
    sequencer = sequencer_factory(provisioner=provisioner, broker_path=base_dir / "bin" / "nats-server")

    assert sequencer.run_all([descriptor("A")]) is True

    provisioner.ensure_binary.assert_called_once_with(base_dir / "bin" / "nats-server")
    assert registry.names() == ["A"]
    assert "network down" in capsys.readouterr().out


def test_provisioning_failure_aborts_when_broker_required(sequencer_factory, registry, fake_popen, descriptor, base_dir, coordinator):
    provisioner = MagicMock(spec=BinaryProvisioner)
    provisioner.ensure_binary.side_effect = ProvisionError("network down")
    sequencer = sequencer_factory(
        provisioner=provisioner, broker_path=base_dir / "bin" / "nats-server", broker_required=True
    )

    assert sequencer.run_all([descriptor("A")]) is False

    assert fake_popen == []
    assert coordinator.state.triggered
    assert coordinator.exit_code == 1


def test_broker_is_launched_first_when_binary_present(sequencer_factory, registry, fake_popen, clock, descriptor, base_dir):
    broker_path = base_dir / "bin" / "nats-server"
    broker_path.parent.mkdir()
    broker_path.write_text("")
    broker = descriptor("NATS", role="broker")

    sequencer_factory(broker_path=broker_path, broker_startup_delay=3.0).run_all([descriptor("A"), broker])

    assert registry.names() == ["NATS", "A"]
    assert clock.sleeps == [3.0, 2.0]


def test_broker_launch_skipped_when_binary_missing(sequencer_factory, registry, fake_popen, descriptor, base_dir):
    sequencer = sequencer_factory(broker_path=base_dir / "bin" / "nats-server")

    assert sequencer.run_all([descriptor("NATS", role="broker"), descriptor("A")]) is True

    assert registry.names() == ["A"]


def test_summary_lists_urls_of_running_services(sequencer_factory, fake_popen, descriptor, capsys):
    sequencer_factory().run_all([descriptor("A", url="http://localhost:3001")])

    out = capsys.readouterr().out
    assert "All Services Started!" in out
    assert "http://localhost:3001" in out
