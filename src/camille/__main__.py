"""CLI entry point for camille."""

from __future__ import annotations

import argparse
import asyncio
import shutil
import signal
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

from camille import daemon, paths
from camille.ai.client import check_credentials
from camille.app import CamilleApp
from camille.client import IPCClient, IPCError
from camille.config import (
    AppConfig,
    ConfigurationError,
    LLMConfig,
    TelegramConfig,
    load_config,
    write_config,
)
from camille.core.crypto import generate_pairing_code, hash_code
from camille.log import setup_logging
from camille.storage.allowed_path_repo import AllowedPathRepository, DuplicatePathError
from camille.storage.auth_repo import PairingCodeRepository
from camille.storage.database import Database
from camille.storage.models import now_ms

T = TypeVar("T")

PAIRING_CODE_TTL_MS = 5 * 60 * 1000

RESET_FILES = [
    "camille.db",
    "camille.db-wal",
    "camille.db-shm",
    "camille.sock",
    "camille.pid",
]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="camille",
        description="A tools-enabled, local-first AI personal assistant",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    start_parser = subparsers.add_parser("start", help="Start the Camille daemon")
    start_parser.add_argument(
        "-f", "--foreground", action="store_true", help="Run in foreground (don't daemonize)"
    )
    start_parser.add_argument("--log-file", help=argparse.SUPPRESS)

    subparsers.add_parser("stop", help="Stop the Camille daemon")
    subparsers.add_parser("status", help="Check if Camille is running")
    subparsers.add_parser("chat", help="Start an interactive chat session")
    subparsers.add_parser("pair", help="Generate a pairing code for Telegram")

    allow_parser = subparsers.add_parser("allow", help="Whitelist a directory for read access")
    allow_parser.add_argument("path")

    disallow_parser = subparsers.add_parser(
        "disallow", help="Remove a directory from the whitelist"
    )
    disallow_parser.add_argument("path")

    subparsers.add_parser("paths", help="List all whitelisted paths")

    reset_parser = subparsers.add_parser(
        "reset", help="Wipe agent memory and data (keeps config by default)"
    )
    reset_parser.add_argument("--all", action="store_true", help="Also delete config file")
    reset_parser.add_argument(
        "-y", "--yes", action="store_true", help="Skip confirmation prompt"
    )

    subparsers.add_parser("configure", help="Interactively edit the configuration")
    subparsers.add_parser("config-check", help="Validate configuration")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    handlers: dict[str, Callable[[argparse.Namespace], None]] = {
        "start": _start,
        "stop": _stop,
        "status": _status,
        "chat": _chat,
        "pair": _pair,
        "allow": _allow,
        "disallow": _disallow,
        "paths": _paths,
        "reset": _reset,
        "configure": _configure,
        "config-check": _check_config,
    }
    handlers[args.command](args)


async def _with_db(action: Callable[[Database], Awaitable[T]]) -> T:
    db = Database(paths.db())
    await db.initialize()
    try:
        return await action(db)
    finally:
        await db.close()


def _start(args: argparse.Namespace) -> None:
    if daemon.is_running():
        print(f"Camille is already running (PID: {daemon.read_pid()})", file=sys.stderr)
        sys.exit(1)

    if not args.foreground:
        pid = daemon.spawn_detached()
        print(f"Camille started (PID: {pid})")
        return

    config = load_config()
    setup_logging(config.log_level, args.log_file)
    try:
        asyncio.run(_run_daemon(config))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


async def _run_daemon(config: AppConfig) -> None:
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    app = CamilleApp(config)
    daemon.write_pid()
    try:
        await app.start()
        await stop_event.wait()
    finally:
        await app.stop()
        daemon.remove_pid()


def _stop(args: argparse.Namespace) -> None:
    pid = daemon.read_pid()
    if pid is None:
        print("Camille is not running", file=sys.stderr)
        sys.exit(1)
    try:
        daemon.terminate(pid)
    except OSError as e:
        print(f"Failed to stop Camille: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Sent shutdown signal to Camille (PID: {pid})")


def _status(args: argparse.Namespace) -> None:
    pid = daemon.read_pid()
    if pid is None:
        print("Camille is not running")
        sys.exit(1)
    if not daemon.process_alive(pid):
        print("Camille is not running (stale PID file)")
        sys.exit(1)

    async def _query() -> str:
        async with IPCClient() as client:
            return await client.get_status()

    try:
        asyncio.run(_query())
    except (ConnectionError, IPCError):
        print(f"Camille process exists (PID: {pid}) but socket not responding")
        sys.exit(1)
    print(f"Camille is running (PID: {pid})")


def _chat(args: argparse.Namespace) -> None:
    try:
        asyncio.run(_chat_loop())
    except ConnectionError:
        print("Failed to connect to Camille. Is it running?", file=sys.stderr)
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        print()


async def _chat_loop() -> None:
    async with IPCClient() as client:
        print("Connected to Camille. Type 'exit' to quit.\n")
        while True:
            line = (await asyncio.to_thread(input, "you> ")).strip()
            if line in ("exit", "quit"):
                return
            if not line:
                continue

            print("camille> ", end="", flush=True)
            try:
                await client.send_message(line, lambda chunk: print(chunk, end="", flush=True))
            except IPCError as e:
                print("\nSorry, something went wrong. Please try again.", file=sys.stderr)
                print(f"  ({e})", file=sys.stderr)
            print("\n")


def _pair(args: argparse.Namespace) -> None:
    code = generate_pairing_code()

    async def _store(db: Database) -> None:
        await PairingCodeRepository(db).insert(hash_code(code), now_ms() + PAIRING_CODE_TTL_MS)

    asyncio.run(_with_db(_store))
    print(f"Your pairing code: {code}")
    print(f"Send /pair {code} to the Telegram bot within 5 minutes.")


def _allow(args: argparse.Namespace) -> None:
    absolute = str(Path(paths.expand_tilde(args.path)).resolve())

    async def _insert(db: Database) -> None:
        await AllowedPathRepository(db).insert(absolute)

    try:
        asyncio.run(_with_db(_insert))
    except DuplicatePathError:
        print(f"Path already whitelisted: {absolute}")
        return
    print(f"Allowed read access to: {absolute}")


def _disallow(args: argparse.Namespace) -> None:
    absolute = str(Path(paths.expand_tilde(args.path)).resolve())

    async def _delete(db: Database) -> bool:
        return await AllowedPathRepository(db).delete(absolute)

    if asyncio.run(_with_db(_delete)):
        print(f"Removed from whitelist: {absolute}")
    else:
        print(f"Path was not in whitelist: {absolute}")


def _paths(args: argparse.Namespace) -> None:
    async def _list(db: Database):
        return await AllowedPathRepository(db).find_all()

    rows = asyncio.run(_with_db(_list))
    if not rows:
        print("No paths whitelisted.")
        print("Use 'camille allow <path>' to whitelist a directory.")
        return

    print("Whitelisted paths:\n")
    for row in rows:
        added = datetime.fromtimestamp(row.added_at / 1000).strftime("%Y-%m-%d %H:%M:%S")
        print(f"  {row.path}")
        print(f"    permissions: {row.permissions}, added: {added}\n")


def reset_data(data_dir: Path, include_config: bool = False) -> list[str]:
    """Delete daemon state under *data_dir*; return the names removed."""
    names = list(RESET_FILES)
    if include_config:
        names.append(paths.config().name)

    deleted: list[str] = []
    for name in names:
        target = data_dir / name
        if target.exists() or target.is_symlink():
            target.unlink()
            deleted.append(name)

    logs_dir = data_dir / "logs"
    if logs_dir.is_dir():
        shutil.rmtree(logs_dir)
        deleted.append("logs/")
    return deleted


def _reset(args: argparse.Namespace) -> None:
    data_dir = paths.data()

    pid = daemon.read_pid()
    if pid is not None and daemon.process_alive(pid):
        print(f"Stopping Camille daemon (PID: {pid})...")
        daemon.terminate(pid)
        time.sleep(1)

    if not args.yes:
        scope = " including config" if args.all else " (keeping config)"
        answer = input(f"This will delete all data in {data_dir}{scope}. Continue? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted")
            return

    deleted = reset_data(data_dir, include_config=args.all)
    for name in deleted:
        print(f"  Deleted: {name}")

    if not deleted:
        print("Nothing to delete")
        return
    print(f"\nReset complete. Deleted {len(deleted)} item(s).")
    if not args.all and paths.config().exists():
        print(f"Config preserved at: {paths.config()}")


def _prompt(label: str, current: Optional[str]) -> Optional[str]:
    suffix = f" [{current}]" if current else ""
    answer = input(f"{label}{suffix}: ").strip()
    return answer or current


def _configure(args: argparse.Namespace) -> None:
    config = load_config()

    provider = _prompt("Provider (openai, ollama, anthropic)", config.llm.provider)
    model = _prompt("Model", config.llm.model)
    api_key = _prompt("API key (leave blank to use the environment)", config.llm.api_key)
    base_url = _prompt("Base URL (optional)", config.llm.base_url)
    current_token = config.telegram.bot_token if config.telegram else None
    bot_token = _prompt("Telegram bot token (optional)", current_token)

    try:
        updated = config.model_copy(
            update={
                "llm": LLMConfig(
                    provider=provider, model=model, api_key=api_key, base_url=base_url
                ),
                "telegram": TelegramConfig(bot_token=bot_token) if bot_token else None,
            }
        )
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    path = write_config(updated)
    print(f"Configuration saved to {path}")


def _check_config(args: argparse.Namespace) -> None:
    """Validate configuration and print summary."""
    config = load_config()
    print(f"Configuration file: {paths.config()}")
    print(f"  Data directory: {paths.data()}")
    print(f"  Provider: {config.llm.provider}")
    print(f"  Model: {config.llm.model}")
    print(f"  Max tool calls: {config.effective_max_tool_calls}")
    print(f"  Telegram: {'configured' if config.telegram else 'disabled'}")
    try:
        check_credentials(config.llm)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    print("Configuration valid.")


if __name__ == "__main__":
    main()
