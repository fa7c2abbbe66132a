"""Tests for the correlation-tagged command channel."""

import threading
import time

import pytest

from common.command_channel import (
    CommandChannel,
    CommandError,
    CommandKind,
    CommandPendingError,
    CommandTimeout,
)


class TestCommandChannel:
    def test_issue_and_deliver(self):
        channel = CommandChannel()
        command = channel.issue(CommandKind.SET_POSE, {"joints": [0.0] * 6})
        assert channel.deliver(command.id, {"success": True})
        assert channel.await_result(command.id, timeout=0.1) == {"success": True}
        assert channel.outstanding == 0

    def test_unique_correlation_ids(self):
        channel = CommandChannel(max_outstanding=10)
        ids = {channel.issue(CommandKind.SET_ENGAGEMENT, {"engaged": True}).id for _ in range(5)}
        assert len(ids) == 5

    def test_result_from_other_thread(self):
        channel = CommandChannel()
        command = channel.issue(CommandKind.SET_POSE, {})
        timer = threading.Timer(0.05, channel.deliver, args=(command.id, {"success": True}))
        timer.start()
        assert channel.await_result(command.id, timeout=1.0)["success"]
        timer.join()

    def test_second_issue_rejected_while_pending(self):
        channel = CommandChannel()
        channel.issue(CommandKind.SET_POSE, {})
        with pytest.raises(CommandPendingError):
            channel.issue(CommandKind.SET_POSE, {})

    def test_timeout_then_late_result_discarded(self):
        channel = CommandChannel()
        command = channel.issue(CommandKind.SET_POSE, {})
        with pytest.raises(CommandTimeout):
            channel.await_result(command.id, timeout=0.05)
        assert not channel.deliver(command.id, {"success": True})
        # Slot is free again
        channel.issue(CommandKind.SET_POSE, {})

    def test_unknown_id_discarded(self):
        channel = CommandChannel()
        assert not channel.deliver("not-a-command", {"success": True})

    def test_duplicate_delivery_discarded(self):
        channel = CommandChannel()
        command = channel.issue(CommandKind.SET_POSE, {})
        assert channel.deliver(command.id, {"success": True, "n": 1})
        assert not channel.deliver(command.id, {"success": True, "n": 2})
        assert channel.await_result(command.id, timeout=0.1)["n"] == 1

    def test_expiry(self):
        channel = CommandChannel(default_ttl=0.02)
        command = channel.issue(CommandKind.SET_POSE, {})
        time.sleep(0.05)
        assert channel.pending() is None
        assert not channel.deliver(command.id, {"success": True})

    def test_pending_for_polling_actuator(self):
        channel = CommandChannel()
        assert channel.pending() is None
        command = channel.issue(CommandKind.SET_ENGAGEMENT, {"engaged": False})
        assert channel.pending() is command
        # Polling twice returns the same command
        assert channel.pending() is command
        channel.deliver(command.id, {"success": True})
        assert channel.pending() is None

    def test_transport_receives_command(self):
        sent = []
        channel = CommandChannel(transport=sent.append)
        command = channel.issue(CommandKind.SET_POSE, {"joints": [1.0] * 6})
        assert sent == [command]
        assert command.to_dict()["kind"] == "set_pose"

    def test_transport_failure(self):
        def broken(command):
            raise ConnectionError("link down")

        channel = CommandChannel(transport=broken)
        with pytest.raises(CommandError):
            channel.issue(CommandKind.SET_POSE, {})
        assert channel.outstanding == 0
