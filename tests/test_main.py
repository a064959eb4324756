"""End-to-end tests for the CLI entry point against the lamp simulator."""
from __future__ import annotations

import numpy as np

import main


class _RedScreen:
    def __init__(self, resize_width=None):
        self.width = 4
        self.height = 4

    def capture_frame(self):
        return np.full((4, 4, 3), (255, 0, 0), dtype=np.uint8)


class _StopAfterTwoTicks:
    def __init__(self):
        self.polls = 0

    def install(self):
        return self

    def __call__(self):
        self.polls += 1
        return self.polls > 2


def test_empty_lamp_list_is_config_error(tmp_path, capsys) -> None:
    lamps = tmp_path / "lamps.txt"
    lamps.write_text("\n")

    assert main.main(["--lamps", str(lamps)]) == main.EXIT_CONFIG_ERROR
    assert "Configuration error" in capsys.readouterr().out


def test_bad_setting_is_config_error(capsys) -> None:
    assert main.main(["127.0.0.1", "--stride", "0"]) == main.EXIT_CONFIG_ERROR


def test_host_list_without_addresses_is_config_error(capsys) -> None:
    assert main.main(["#"]) == main.EXIT_CONFIG_ERROR
    assert "No lamp addresses" in capsys.readouterr().out


def test_socket_failure_is_reported(monkeypatch, capsys) -> None:
    def no_socket(timeout):
        raise OSError("Address family not supported")

    monkeypatch.setattr(main, "LampConnection", no_socket)

    assert main.main(["127.0.0.1"]) == main.EXIT_LAMP_ERROR
    assert "Could not open a UDP socket" in capsys.readouterr().out


def test_unreachable_lamp_exits_with_hint(lamp, capsys) -> None:
    lamp.respond = False

    code = main.main([f"127.0.0.1:{lamp.port}", "--timeout", "0.1"])

    out = capsys.readouterr().out
    assert code == main.EXIT_LAMP_ERROR
    assert f"127.0.0.1:{lamp.port}" in out
    assert main.UNREACHABLE_HINT in out


def test_malformed_lamp_exits_with_hint(lamp, capsys) -> None:
    lamp.raw_reply = b"hello"

    code = main.main([f"127.0.0.1:{lamp.port}"])

    assert code == main.EXIT_LAMP_ERROR
    assert main.MALFORMED_HINT in capsys.readouterr().out


def test_full_run_drives_and_restores(lamp, monkeypatch, capsys) -> None:
    monkeypatch.setattr(main, "ScreenCapturer", _RedScreen)
    monkeypatch.setattr(main, "StopSignal", _StopAfterTwoTicks)

    code = main.main([f"127.0.0.1:{lamp.port}", "--fps", "0"])

    assert code == main.EXIT_OK
    assert lamp.methods == [
        "getPilot",
        "getUserConfig",
        "setPilot",  # red, sent once; second tick is unchanged
        "setPilot",  # restore
        "setUserConfig",
    ]
    assert lamp.received[2]["params"] == {
        "r": 255, "g": 0, "b": 0, "dimming": 100, "state": True,
    }
    assert lamp.pilot["temp"] == 2700
    assert "Lamps restored" in capsys.readouterr().out
