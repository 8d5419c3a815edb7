"""Tests for lxinit.network module."""

from __future__ import annotations

import io
from unittest.mock import MagicMock

from conftest import FakeServer

from lxinit.exceptions import RemoteError
from lxinit.network import NO_NETWORK_ADVISORY, check_network, has_nic


class TestHasNic:
    def test_nic_present(self):
        assert has_nic({"root": {"type": "disk"}, "eth0": {"type": "nic"}}) is True

    def test_no_nic(self):
        assert has_nic({"root": {"type": "disk"}}) is False
        assert has_nic({}) is False


class TestCheckNetwork:
    def test_instance_with_nic_is_quiet(self):
        server = FakeServer(instances={"c1": {"expanded_devices": {"eth0": {"type": "nic"}}}})
        out = io.StringIO()
        assert check_network(server, "c1", stream=out) is True
        assert out.getvalue() == ""

    def test_instance_without_nic_prints_advisory(self):
        server = FakeServer(instances={"c1": {"expanded_devices": {"root": {"type": "disk"}}}})
        out = io.StringIO()
        assert check_network(server, "c1", stream=out) is False
        assert out.getvalue() == NO_NETWORK_ADVISORY
        assert "doesn't have any network attached" in out.getvalue()

    def test_missing_expanded_devices_prints_advisory(self):
        server = FakeServer(instances={"c1": {}})
        out = io.StringIO()
        assert check_network(server, "c1", stream=out) is False

    def test_advisory_defaults_to_stderr(self, capsys):
        server = FakeServer(instances={"c1": {"expanded_devices": {}}})
        check_network(server, "c1")
        captured = capsys.readouterr()
        assert "lxc network attach" in captured.err
        assert captured.out == ""

    def test_lookup_failure_is_swallowed(self):
        server = MagicMock()
        server.get_instance.side_effect = RemoteError("connection refused")
        out = io.StringIO()
        assert check_network(server, "c1", stream=out) is True
        assert out.getvalue() == ""

    def test_unknown_instance_is_swallowed(self):
        out = io.StringIO()
        assert check_network(FakeServer(), "ghost", stream=out) is True
        assert out.getvalue() == ""
