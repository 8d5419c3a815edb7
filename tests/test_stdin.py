"""Tests for lxinit.stdin module."""

from __future__ import annotations

import textwrap

import pytest

from lxinit.exceptions import InputError
from lxinit.models import StdinOverlay
from lxinit.stdin import load_stdin_overlay, parse_overlay


class TestParseOverlay:
    def test_full_document(self):
        overlay = parse_overlay(
            textwrap.dedent(
                """\
                config:
                  limits.cpu: 2
                  security.nesting: true
                devices:
                  root:
                    type: disk
                    path: /
                    pool: fast
                profiles:
                  - default
                  - gpu
                ephemeral: true
                description: ignored
                """
            )
        )
        assert overlay.config == {"limits.cpu": "2", "security.nesting": "true"}
        assert overlay.devices == {"root": {"type": "disk", "path": "/", "pool": "fast"}}
        assert overlay.profiles == ["default", "gpu"]
        assert not hasattr(overlay, "ephemeral")

    def test_empty_document(self):
        assert parse_overlay("") == StdinOverlay()

    def test_empty_profiles_list_kept_empty(self):
        assert parse_overlay("profiles: []\n").profiles == []

    def test_malformed_yaml_raises(self):
        with pytest.raises(InputError, match="Invalid YAML"):
            parse_overlay("config: {unterminated\n")

    def test_non_mapping_raises(self):
        with pytest.raises(InputError, match="must contain a YAML mapping"):
            parse_overlay("- a\n- b\n")

    def test_config_must_be_mapping(self):
        with pytest.raises(InputError, match="'config' must be a mapping"):
            parse_overlay("config: [a, b]\n")

    def test_device_must_be_mapping(self):
        with pytest.raises(InputError, match="Device 'eth0' must be a mapping"):
            parse_overlay("devices:\n  eth0: nic\n")

    def test_profiles_must_be_list(self):
        with pytest.raises(InputError, match="'profiles' must be a list"):
            parse_overlay("profiles: default\n")


class TestLoadStdinOverlay:
    def test_terminal_is_not_read(self, empty_stdin):
        empty_stdin.write("config: {a: b}\n")
        empty_stdin.seek(0)
        assert load_stdin_overlay(empty_stdin) == StdinOverlay()
        # Nothing consumed from an interactive stream
        assert empty_stdin.tell() == 0

    def test_pipe_is_parsed(self, piped_stdin):
        overlay = load_stdin_overlay(piped_stdin("config:\n  user.foo: bar\n"))
        assert overlay.config == {"user.foo": "bar"}

    def test_empty_pipe_yields_empty_overlay(self, piped_stdin):
        assert load_stdin_overlay(piped_stdin("")) == StdinOverlay()

    def test_pipe_parse_error_propagates(self, piped_stdin):
        with pytest.raises(InputError):
            load_stdin_overlay(piped_stdin("devices: [\n"))
