"""Tests for the inoctl CLI."""

import json
import shlex
from pathlib import Path
from unittest.mock import ANY, MagicMock, patch

import pytest
from click.testing import CliRunner

from inoctl.cli import main
from inoctl.errors import ExternalToolError
from inoctl.ports import PortInfo
from inoctl.runner import Runner

ONE_BOARD = json.dumps({
    "detected_ports": [{
        "matching_boards": [{"name": "Arduino Uno", "fqbn": "arduino:avr:uno"}],
        "port": {"address": "/dev/ttyACM0", "protocol": "serial"},
    }]
})
TWO_BOARDS = json.dumps([
    {"address": "/dev/ttyACM0", "boards": [{"name": "Arduino Uno", "FQBN": "arduino:avr:uno"}]},
    {"address": "/dev/ttyUSB0", "boards": [{"name": "Arduino Nano", "FQBN": "arduino:avr:nano"}]},
])


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tool():
    """Patch both execution modes of Runner; captured output keyed by subcommand."""
    outputs = {}
    job = MagicMock()
    job.wait.return_value = 0
    with patch.object(Runner, "run_captured", side_effect=lambda cmd: outputs[cmd]) as captured, \
            patch.object(Runner, "run_streamed", return_value=job) as streamed:
        yield MagicMock(outputs=outputs, captured=captured, streamed=streamed, job=job)


def _here():
    return shlex.quote(str(Path.cwd().resolve()))


class TestBoardCommands:
    def test_compile_single_board(self, runner, tool):
        tool.outputs["board list --format json"] = ONE_BOARD
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["compile"])
            assert result.exit_code == 0, result.output
            tool.streamed.assert_called_once_with(f"compile --fqbn arduino:avr:uno {_here()}", sink=ANY)
        tool.job.wait.assert_called_once()

    def test_upload_asks_which_board(self, runner, tool):
        tool.outputs["board list --format json"] = TWO_BOARDS
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["upload"], input="2\n")
            assert result.exit_code == 0, result.output
            assert "Arduino Nano @ /dev/ttyUSB0" in result.output
            tool.streamed.assert_called_once_with(
                f"upload --fqbn arduino:avr:nano --port /dev/ttyUSB0 {_here()}", sink=ANY
            )

    def test_compile_upload_with_flags_skips_detection(self, runner, tool):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["compile-upload", "--fqbn", "arduino:avr:mega", "--port", "COM4"])
            assert result.exit_code == 0, result.output
            tool.captured.assert_not_called()
            tool.streamed.assert_called_once_with(
                f"compile --fqbn arduino:avr:mega --port COM4 --upload {_here()}", sink=ANY
            )

    def test_board_from_inoctl_toml(self, runner, tool):
        with runner.isolated_filesystem():
            Path("inoctl.toml").write_text('[board]\nfqbn = "arduino:avr:uno"\nport = "/dev/ttyACM1"\n')
            result = runner.invoke(main, ["upload"])
            assert result.exit_code == 0, result.output
            tool.captured.assert_not_called()
            assert tool.streamed.call_args[0][0].startswith("upload --fqbn arduino:avr:uno --port /dev/ttyACM1 ")

    def test_no_board(self, runner, tool):
        tool.outputs["board list --format json"] = "[]"
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["compile"])
        assert result.exit_code == 2
        assert "No board connected" in result.output
        tool.streamed.assert_not_called()

    def test_tool_failure_exit_code_propagates(self, runner, tool):
        tool.outputs["board list --format json"] = ONE_BOARD
        tool.job.wait.return_value = 1
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["compile"])
        assert result.exit_code == 1

    def test_missing_arduino_cli(self, runner, tool):
        tool.captured.side_effect = ExternalToolError("arduino-cli not found.")
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["compile"])
        assert result.exit_code == 6
        assert "Error: arduino-cli not found." in result.output

    def test_board_list_streams(self, runner, tool):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["board", "list"])
        assert result.exit_code == 0
        tool.streamed.assert_called_once_with("board list", sink=ANY)

    def test_board_list_json(self, runner, tool):
        tool.outputs["board list --format json"] = ONE_BOARD
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["board", "list", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data == [{
            "name": "Arduino Uno",
            "address": "/dev/ttyACM0",
            "fqbn": "arduino:avr:uno",
            "extra": {"protocol": "serial"},
        }]


class TestCoreAndLibCommands:
    def test_core_uninstall(self, runner, tool):
        tool.outputs["core list --format json"] = json.dumps([{"ID": "arduino:avr"}, {"ID": "esp32:esp32"}])
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["core", "uninstall"], input="esp32:esp32\n")
        assert result.exit_code == 0, result.output
        tool.streamed.assert_called_once_with("core uninstall esp32:esp32", sink=ANY)

    def test_core_uninstall_nothing_installed(self, runner, tool):
        tool.outputs["core list --format json"] = "[]"
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["core", "uninstall"])
        assert result.exit_code == 4
        assert "No cores installed" in result.output

    def test_core_upgrade_all(self, runner, tool):
        tool.outputs["core update-index"] = ""
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["core", "upgrade-all"])
        assert result.exit_code == 0
        tool.captured.assert_called_once_with("core update-index")
        tool.streamed.assert_called_once_with("core upgrade", sink=ANY)

    def test_lib_install_with_query(self, runner, tool):
        tool.outputs["lib search neopixel --format json"] = json.dumps(
            {"libraries": [{"name": "Adafruit NeoPixel"}]}
        )
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["lib", "install", "neopixel"], input="1\n")
        assert result.exit_code == 0, result.output
        tool.streamed.assert_called_once_with("lib install 'Adafruit NeoPixel'", sink=ANY)

    def test_lib_install_nothing_found(self, runner, tool):
        tool.outputs["lib search zzz --format json"] = "{}"
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["lib", "install", "zzz"])
        assert result.exit_code == 4
        assert "Nothing to choose from" in result.output

    def test_lib_upgrade(self, runner, tool):
        tool.outputs["lib update-index"] = ""
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["lib", "upgrade"])
        assert result.exit_code == 0
        tool.streamed.assert_called_once_with("lib upgrade", sink=ANY)

    def test_unparseable_output(self, runner, tool):
        tool.outputs["lib list --format json"] = "Error: the library index is missing"
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["lib", "uninstall"])
        assert result.exit_code == 5
        assert "could not parse" in result.output.lower()


class TestNewSketch:
    def test_new(self, runner, tool):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["new", "Blink"])
        assert result.exit_code == 0
        tool.streamed.assert_called_once_with("sketch new Blink", sink=ANY)


class TestConfigCommands:
    def test_init_declined(self, runner, tool):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["config", "init"], input="n\n")
        assert result.exit_code == 0
        tool.streamed.assert_not_called()

    def test_init_confirmed(self, runner, tool):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["config", "init"], input="y\n")
        assert result.exit_code == 0
        tool.streamed.assert_called_once_with("config init --overwrite", sink=ANY)

    def test_init_yes_flag(self, runner, tool):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["config", "init", "--yes"])
        assert result.exit_code == 0
        tool.streamed.assert_called_once_with("config init --overwrite", sink=ANY)

    def test_dump(self, runner, tool):
        with runner.isolated_filesystem():
            runner.invoke(main, ["config", "dump"])
        tool.streamed.assert_called_once_with("config dump", sink=ANY)

    def test_set_then_get(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["config", "set", "board.port", "/dev/ttyACM0"])
            assert result.exit_code == 0
            assert "Set board.port = /dev/ttyACM0" in result.output
            result = runner.invoke(main, ["config", "get", "board.port"])
            assert "board.port = /dev/ttyACM0" in result.output

    def test_set_windows_cli_path_keeps_config_readable(self, runner):
        path = r"C:\Program Files\Arduino CLI\arduino-cli.exe"
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["config", "set", "cli.path", path])
            assert result.exit_code == 0
            result = runner.invoke(main, ["config", "list"])
            assert result.exit_code == 0, result.output
            assert f"cli.path = {path}" in result.output

    def test_get_unset(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["config", "get", "board.fqbn"])
        assert "board.fqbn is not set." in result.output

    def test_list(self, runner):
        with runner.isolated_filesystem():
            Path("inoctl.toml").write_text('[board]\nfqbn = "arduino:avr:uno"\n')
            result = runner.invoke(main, ["config", "list"])
        assert "board.fqbn = arduino:avr:uno" in result.output

    def test_list_empty(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["config", "list"])
        assert "No configuration found." in result.output

    def test_invalid_config_reported(self, runner, tool):
        with runner.isolated_filesystem():
            Path("inoctl.toml").write_text('[compile]\nwarnings = "loud"\n')
            result = runner.invoke(main, ["compile"])
        assert result.exit_code == 1
        assert "compile.warnings" in result.output


class TestGlobalOptions:
    def test_cli_and_timeout_reach_runner(self, runner):
        seen = {}

        def fake_stream(self, command, sink):
            seen["cli"] = self.cli
            seen["timeout"] = self.timeout
            job = MagicMock()
            job.wait.return_value = 0
            return job

        with patch.object(Runner, "run_streamed", fake_stream):
            with runner.isolated_filesystem():
                result = runner.invoke(main, ["--cli", "/opt/ac", "--timeout", "0", "core", "list"])
        assert result.exit_code == 0, result.output
        assert seen == {"cli": "/opt/ac", "timeout": None}

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "inoctl" in result.output


class TestDoctor:
    @patch("inoctl.cli.list_serial_ports", return_value=[])
    @patch("inoctl.cli.shutil.which", return_value=None)
    def test_missing_tool(self, mock_which, mock_ports, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["doctor"])
        assert "[!!] arduino-cli not found" in result.output
        assert "No serial ports detected" in result.output
        assert "Some checks failed" in result.output

    @patch("inoctl.cli.list_serial_ports",
           return_value=[PortInfo(device="/dev/ttyACM0", description="Arduino Uno", hwid="USB VID:PID=2341:0043")])
    @patch("inoctl.cli.shutil.which", return_value="/usr/local/bin/arduino-cli")
    def test_all_ok(self, mock_which, mock_ports, runner, tool):
        tool.outputs["version --format json"] = json.dumps({"Application": "arduino-cli", "VersionString": "1.1.1"})
        tool.outputs["board list --format json"] = ONE_BOARD
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["doctor"])
        assert "[OK] arduino-cli version 1.1.1" in result.output
        assert "/dev/ttyACM0" in result.output
        assert "Arduino Uno @ /dev/ttyACM0  (arduino:avr:uno)" in result.output
        assert "All checks passed." in result.output
