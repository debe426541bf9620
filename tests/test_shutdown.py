"""Tests for the shutdown coordinator."""

import threading

from webhook_relay.shutdown import ShutdownCoordinator, ShutdownState


class TestShutdownCoordinator:
    """Test cases for ShutdownCoordinator."""

    def test_starts_running(self):
        coordinator = ShutdownCoordinator()
        assert coordinator.state is ShutdownState.RUNNING
        assert coordinator.reason is None
        assert not coordinator.is_triggered()

    def test_trigger_moves_to_draining(self):
        coordinator = ShutdownCoordinator()

        assert coordinator.trigger("bye") is True
        assert coordinator.state is ShutdownState.DRAINING
        assert coordinator.stop_event.is_set()
        assert coordinator.wait(timeout=0) == "bye"

    def test_second_trigger_is_a_no_op(self):
        coordinator = ShutdownCoordinator()
        coordinator.trigger("first")

        assert coordinator.trigger("second") is False
        assert coordinator.reason == "first"
        assert coordinator.wait() == "first"

    def test_trigger_after_stop_is_a_no_op(self):
        coordinator = ShutdownCoordinator()
        coordinator.trigger("first")
        coordinator.mark_stopped()

        assert coordinator.trigger("late") is False
        assert coordinator.state is ShutdownState.STOPPED

    def test_wait_times_out_without_trigger(self):
        assert ShutdownCoordinator().wait(timeout=0.01) is None

    def test_wait_wakes_on_trigger_from_another_thread(self):
        coordinator = ShutdownCoordinator()
        timer = threading.Timer(0.05, coordinator.trigger, args=("from worker",))
        timer.start()

        assert coordinator.wait(timeout=5) == "from worker"
        timer.join()

    def test_concurrent_triggers_have_exactly_one_winner(self):
        coordinator = ShutdownCoordinator()
        barrier = threading.Barrier(8)
        results = []

        def fire(n):
            barrier.wait()
            results.append(coordinator.trigger(f"push {n}"))

        threads = [threading.Thread(target=fire, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert coordinator.reason.startswith("push ")
