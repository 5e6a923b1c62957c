from __future__ import annotations

import pytest

from camille.ai.tools import command as command_module
from camille.ai.tools.base import ToolContext, ToolInputError
from camille.ai.tools.command import CommandTool, check_osascript, extract_osascript
from conftest import osascript_result

CONTEXT = ToolContext(session_id="s1", agent_home="ollama")
REMINDERS_SCRIPT = 'tell application "Reminders" to get name of every list'


class TestOsascriptValidation:
    def test_extracts_script_lines(self):
        assert extract_osascript(["-e", "a", "-e", "b", "--", "arg"]) == "a\nb"

    @pytest.mark.parametrize(
        "args, message",
        [
            (["-l", "JavaScript"], "Unsupported osascript flag: -l"),
            (["-e"], "Missing script line after -e"),
            (["-e", ""], "Missing script line after -e"),
            ([], "requires at least one -e"),
            (["--", "x"], "requires at least one -e"),
        ],
    )
    def test_malformed_args(self, args, message):
        with pytest.raises(ValueError, match=message):
            extract_osascript(args)

    def test_rejects_shell_escape(self):
        with pytest.raises(ValueError, match="do shell script"):
            check_osascript(["-e", 'tell application "Reminders"', "-e", 'do shell script "ls"'])

    def test_requires_reminders_target(self):
        with pytest.raises(ValueError, match="must target the Reminders app"):
            check_osascript(["-e", 'tell application "Finder" to get name of every disk'])

    def test_length_cap(self):
        with pytest.raises(ValueError, match="exceeds 4000 characters"):
            check_osascript(["-e", REMINDERS_SCRIPT] + ["-e", "x" * 1000] * 4)

    def test_accepts_app_shorthand(self):
        check_osascript(["-e", 'tell app "reminders" to count lists'])


class TestCommandTool:
    async def test_only_osascript_is_allowed(self):
        with pytest.raises(ToolInputError, match="command"):
            await CommandTool().execute({"command": "rm", "args": ["-rf", "/"]}, CONTEXT)

    async def test_timeout_limit(self):
        with pytest.raises(ToolInputError, match="timeoutMs"):
            await CommandTool().execute(
                {"command": "osascript", "args": ["-e", REMINDERS_SCRIPT], "timeoutMs": 6000},
                CONTEXT,
            )

    async def test_unknown_field_rejected(self):
        with pytest.raises(ToolInputError):
            await CommandTool().execute({"command": "osascript", "shell": True}, CONTEXT)

    async def test_runs_allowlisted_binary(self, monkeypatch):
        calls = []

        async def fake_run_command(command, args, timeout):
            calls.append((command, list(args), timeout))
            return osascript_result(stdout="Work, Home\n")

        monkeypatch.setattr(command_module, "run_command", fake_run_command)

        result = await CommandTool().execute(
            {"command": "osascript", "args": ["-e", REMINDERS_SCRIPT], "timeoutMs": 2500},
            CONTEXT,
        )

        assert calls == [("/usr/bin/osascript", ["-e", REMINDERS_SCRIPT], 2.5)]
        assert result == {
            "command": "osascript",
            "args": ["-e", REMINDERS_SCRIPT],
            "exitCode": 0,
            "stdout": "Work, Home",
            "stderr": "",
            "timedOut": False,
            "truncated": False,
            "success": True,
        }

    async def test_validation_happens_before_spawn(self, monkeypatch):
        async def fail(*args, **kwargs):
            raise AssertionError("should not run")

        monkeypatch.setattr(command_module, "run_command", fail)

        with pytest.raises(ValueError, match="Unsupported osascript flag"):
            await CommandTool().execute({"command": "osascript", "args": ["-x"]}, CONTEXT)
