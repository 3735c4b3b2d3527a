"""Tests for external command helpers and adapter reconnection."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, call, patch

import pytest

from netfluss.__main__ import config_from_args, parse_args
from netfluss.commands import CommandError, run_command, run_quietly
from netfluss.models import AdapterType
from netfluss.reconnect import hardware_port_name, is_safe_interface_name, power_cycle


class TestRunCommand:
    """Test subprocess handling."""

    def test_returns_stdout(self):
        """Successful commands return their stdout."""
        completed = MagicMock(returncode=0, stdout="output\n", stderr="")
        with patch("subprocess.run", return_value=completed) as run:
            assert run_command(["netstat", "-n"], timeout=3.0) == "output\n"
        run.assert_called_once_with(
            ["netstat", "-n"], capture_output=True, text=True, timeout=3.0, check=False
        )

    def test_nonzero_exit(self):
        """A nonzero exit raises CommandError with the stderr reason."""
        completed = MagicMock(returncode=1, stdout="", stderr="warning\nnetstat: denied\n")
        with patch("subprocess.run", return_value=completed):
            with pytest.raises(CommandError, match="status 1: netstat: denied"):
                run_command(["netstat"])

    def test_missing_binary(self):
        """A missing executable raises CommandError."""
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(CommandError, match="not found"):
                run_command(["nosuchtool"])

    def test_timeout(self):
        """A command that runs too long raises CommandError."""
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("x", 2.0)):
            with pytest.raises(CommandError, match="timed out"):
                run_command(["slow"], timeout=2.0)

    def test_run_quietly_swallows_failures(self):
        """run_quietly reports failure as False."""
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            assert run_quietly(["nosuchtool"]) is False


class TestReconnect:
    """Test adapter power-cycling commands."""

    @pytest.mark.parametrize(
        ("name", "safe"),
        [("en0", True), ("bridge100", True), ("", False), ("en0;ls", False), ("ｅｎ0", False)],
    )
    def test_safe_names(self, name, safe):
        """Only plain interface names are accepted."""
        assert is_safe_interface_name(name) is safe

    def test_hardware_port_name(self):
        """The hardware port is looked up by device name, else the device is used."""
        output = "Hardware Port: Wi-Fi\nDevice: en0\n"
        with patch("netfluss.reconnect.run_command", return_value=output):
            assert hardware_port_name("en0") == "Wi-Fi"
            assert hardware_port_name("en9") == "en9"

    def test_hardware_port_name_failure(self):
        """A failed lookup falls back to the device name."""
        with patch("netfluss.reconnect.run_command", side_effect=CommandError(["x"], "not found")):
            assert hardware_port_name("en0") == "en0"

    def test_wifi_power_cycle(self):
        """Wi-Fi adapters are cycled through networksetup power commands."""
        sleep = MagicMock()
        with patch("netfluss.reconnect.hardware_port_name", return_value="Wi-Fi"), patch(
            "netfluss.reconnect.run_quietly"
        ) as run:
            power_cycle("en0", AdapterType.WIFI, sleep=sleep)

        assert run.call_args_list == [
            call(["/usr/sbin/networksetup", "-setairportpower", "Wi-Fi", "off"]),
            call(["/usr/sbin/networksetup", "-setairportpower", "Wi-Fi", "on"]),
        ]
        sleep.assert_called_once_with(1.5)

    def test_ethernet_power_cycle(self):
        """Ethernet adapters are cycled through an administrator script."""
        with patch("netfluss.reconnect.run_quietly") as run:
            power_cycle("en7", AdapterType.ETHERNET)

        args = run.call_args[0][0]
        assert args[0] == "/usr/bin/osascript"
        assert "ifconfig en7 down && sleep 1 && ifconfig en7 up" in args[2]

    def test_other_and_unsafe_do_nothing(self):
        """Other adapters and unsafe names run nothing."""
        with patch("netfluss.reconnect.run_quietly") as run:
            power_cycle("utun0", AdapterType.OTHER)
            power_cycle("en0 && reboot", AdapterType.ETHERNET)
        run.assert_not_called()


class TestCommandLine:
    """Test argument parsing."""

    def test_defaults(self):
        """No options gives the default configuration."""
        config = config_from_args(parse_args([]))
        assert config.refresh_interval == 1.0
        assert config.show_top_apps is False
        assert config.top_apps_limit == 5
        assert config.use_bits is False

    def test_options(self):
        """Command-line options override the defaults."""
        config = config_from_args(parse_args(["-r", "0.5", "-t", "-n", "8", "-b", "-a"]))
        assert config.refresh_interval == 0.5
        assert config.show_top_apps is True
        assert config.top_apps_limit == 8
        assert config.use_bits is True
        assert config.show_inactive is True
        assert config.show_other_adapters is True
