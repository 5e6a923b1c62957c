"""Allow-listed command execution without a shell."""

from __future__ import annotations

import re
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from camille.ai.tools.base import Tool, ToolContext
from camille.ai.tools.process import DEFAULT_TIMEOUT, run_command

ALLOWED_COMMANDS = {
    "osascript": "/usr/bin/osascript",
}

MAX_SCRIPT_LENGTH = 4_000
_REMINDERS_TARGET = re.compile(r'tell\s+(application|app)\s+"reminders"', re.IGNORECASE)


class CommandInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    command: Literal["osascript"] = Field(description="Allowlisted command name")
    args: list[Annotated[str, Field(max_length=2_000)]] = Field(
        default_factory=list, max_length=50, description="Command arguments"
    )
    timeout_ms: Optional[int] = Field(
        default=None,
        gt=0,
        le=5_000,
        alias="timeoutMs",
        description="Timeout in milliseconds (max 5000)",
    )


def extract_osascript(args: list[str]) -> str:
    """Return the script formed by the ``-e`` lines before ``--``.

    Raises ``ValueError`` on any other flag or a dangling ``-e``.
    """
    lines: list[str] = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--":
            break
        if arg != "-e":
            raise ValueError(f"Unsupported osascript flag: {arg}")
        if i + 1 >= len(args) or not args[i + 1]:
            raise ValueError("Missing script line after -e")
        lines.append(args[i + 1])
        i += 2

    if not lines:
        raise ValueError("osascript requires at least one -e script line")
    return "\n".join(lines)


def check_osascript(args: list[str]) -> None:
    script = extract_osascript(args)
    if len(script) > MAX_SCRIPT_LENGTH:
        raise ValueError(f"osascript script exceeds {MAX_SCRIPT_LENGTH} characters")
    if "do shell script" in script.lower():
        raise ValueError("osascript scripts cannot use 'do shell script' in safe mode")
    if not _REMINDERS_TARGET.search(script):
        raise ValueError("osascript scripts must target the Reminders app in safe mode")


class CommandTool(Tool[CommandInput]):
    @property
    def name(self) -> str:
        return "command"

    @property
    def description(self) -> str:
        return (
            "Run a tightly allowlisted command without a shell "
            "(safe mode; currently only osascript for Reminders)"
        )

    @property
    def input_model(self) -> type[CommandInput]:
        return CommandInput

    async def run(self, params: CommandInput, context: ToolContext) -> Any:
        if params.command == "osascript":
            check_osascript(params.args)

        timeout = params.timeout_ms / 1000 if params.timeout_ms else DEFAULT_TIMEOUT
        result = await run_command(ALLOWED_COMMANDS[params.command], params.args, timeout=timeout)

        return {
            "command": params.command,
            "args": params.args,
            "exitCode": result.exit_code,
            "stdout": result.stdout.strip(),
            "stderr": result.stderr.strip(),
            "timedOut": result.timed_out,
            "truncated": result.truncated,
            "success": result.exit_code == 0 and not result.timed_out,
        }
