"""Bounded subprocess execution (no shell) used by the OS-scripting tools."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from camille.log import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 5.0
DEFAULT_MAX_OUTPUT_BYTES = 100_000

OSASCRIPT_PATH = "/usr/bin/osascript"
OSASCRIPT_TIMEOUT = 20.0
OSASCRIPT_MAX_OUTPUT_BYTES = 500_000

RECORD_SEPARATOR = chr(30)
FIELD_SEPARATOR = chr(31)


@dataclass
class CommandResult:
    command: str
    args: list[str]
    exit_code: Optional[int]
    stdout: str
    stderr: str
    timed_out: bool = False
    truncated: bool = False


class OsascriptError(RuntimeError):
    pass


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass


async def run_command(
    command: str,
    args: Sequence[str],
    timeout: float = DEFAULT_TIMEOUT,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> CommandResult:
    """Run *command* with *args*, killing it on timeout or oversized output.

    Timeouts and truncation are reported as flags, not raised. Failure to
    spawn the process (e.g. missing binary) raises.
    """
    process = await asyncio.create_subprocess_exec(
        command,
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout = bytearray()
    stderr = bytearray()
    truncated = False
    timed_out = False

    async def _drain(stream: asyncio.StreamReader, sink: bytearray) -> None:
        nonlocal truncated
        while True:
            chunk = await stream.read(65536)
            if not chunk:
                return
            remaining = max_output_bytes - len(sink)
            if len(chunk) > remaining:
                sink.extend(chunk[: max(0, remaining)])
                truncated = True
                _kill(process)
                return
            sink.extend(chunk)

    try:
        await asyncio.wait_for(
            asyncio.gather(
                _drain(process.stdout, stdout),  # type: ignore[arg-type]
                _drain(process.stderr, stderr),  # type: ignore[arg-type]
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        timed_out = True
        _kill(process)

    exit_code = await process.wait()
    if timed_out or truncated:
        logger.warning(
            "command_killed",
            command=command,
            timed_out=timed_out,
            truncated=truncated,
        )

    return CommandResult(
        command=command,
        args=list(args),
        exit_code=exit_code,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        timed_out=timed_out,
        truncated=truncated,
    )


OsascriptRunner = Callable[[Sequence[str], Sequence[str]], Awaitable[CommandResult]]


def script_args(lines: Sequence[str], argv: Sequence[str] = ()) -> list[str]:
    """Build ``-e line`` pairs, followed by ``-- argv...`` when argv is given."""
    args: list[str] = []
    for line in lines:
        args.extend(["-e", line])
    if argv:
        args.append("--")
        args.extend(argv)
    return args


async def run_osascript(lines: Sequence[str], argv: Sequence[str] = ()) -> CommandResult:
    """Run an AppleScript program under the AppleScript timeout and output cap."""
    return await run_command(
        OSASCRIPT_PATH,
        script_args(lines, argv),
        timeout=OSASCRIPT_TIMEOUT,
        max_output_bytes=OSASCRIPT_MAX_OUTPUT_BYTES,
    )


def ensure_success(result: CommandResult, failure_message: str) -> CommandResult:
    """Raise ``OsascriptError`` if *result* timed out or exited non-zero."""
    if result.timed_out:
        raise OsascriptError(f"osascript timed out after {int(OSASCRIPT_TIMEOUT * 1000)}ms")
    if result.exit_code != 0:
        raise OsascriptError(result.stderr.strip() or result.stdout.strip() or failure_message)
    return result
