import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path

from voice_assistant.config import VoiceAssistantConfig
from voice_assistant.domain.errors import VoiceAssistantError
from voice_assistant.domain.session import SessionOrchestrator
from voice_assistant.log_format import ColoredFormatter
from voice_assistant.ports.control import ControlCommand

ENV_FILE_PATH = Path.home() / ".config" / "voice-assistant" / "env"

CLIENT_COMMANDS = ("start", "stop", "toggle", "status")


def _load_env_file(path: Path = ENV_FILE_PATH) -> None:
    if not path.exists():
        return
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key not in os.environ:
                os.environ[key] = value


def _configure_logging(verbose: bool, log_file: str) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    datefmt = "%H:%M:%S"
    plain = logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s", datefmt=datefmt)

    console = logging.StreamHandler()
    console.setFormatter(ColoredFormatter(datefmt=datefmt) if sys.stderr.isatty() else plain)
    handlers: list[logging.Handler] = [console]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(plain)
        handlers.append(file_handler)
    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    if verbose:
        logging.getLogger("websockets").setLevel(logging.INFO)
        logging.getLogger("httpcore").setLevel(logging.INFO)
        logging.getLogger("httpx").setLevel(logging.INFO)


def main() -> None:
    _load_env_file()
    parser = argparse.ArgumentParser(description="Live voice assistant")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    parser.add_argument("--listen", action="store_true", help="Start listening as soon as the daemon is up")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("start", help="Start listening")
    subparsers.add_parser("stop", help="Stop listening")
    subparsers.add_parser("toggle", help="Toggle listening on/off")
    subparsers.add_parser("status", help="Query session status")

    args = parser.parse_args()

    config = VoiceAssistantConfig()
    _configure_logging(args.verbose, config.log_file)

    if args.command in CLIENT_COMMANDS:
        asyncio.run(_run_client_command(args, config))
    else:
        asyncio.run(_run_daemon(config, listen=args.listen))


async def _run_client_command(args: argparse.Namespace, config: VoiceAssistantConfig) -> None:
    from voice_assistant.adapters.unix_control import UnixSocketControlClient

    client = UnixSocketControlClient(socket_path=config.socket_path)

    try:
        result = await client.send_command(args.command)
    except (ConnectionRefusedError, FileNotFoundError):
        print("Voice assistant is not running", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(result, indent=2))
    if result.get("status") != "ok":
        sys.exit(1)


async def handle_command(session: SessionOrchestrator, command: ControlCommand) -> dict:
    response: dict = {"status": "ok", "action": command.action}
    try:
        if command.action == "start":
            await session.start()
        elif command.action == "stop":
            await session.stop()
        elif command.action == "toggle":
            await session.toggle()
        elif command.action != "status":
            return {"status": "error", "action": command.action, "error": f"Unknown command: {command.action}"}
    except VoiceAssistantError as exc:
        logging.error("Command %s failed: %s", command.action, exc)
        response = {"status": "error", "action": command.action, "error": str(exc)}

    response["session"] = session.view.to_dict()
    return response


async def _run_daemon(config: VoiceAssistantConfig, listen: bool = False) -> None:
    from voice_assistant.health import run_startup_checks, has_critical_failures
    from voice_assistant.factory import create_daemon

    results = run_startup_checks(config)
    if has_critical_failures(results):
        logging.error("Critical health check failures, aborting startup")
        sys.exit(1)

    try:
        session, control = create_daemon(config)
    except VoiceAssistantError as exc:
        logging.error("Cannot start voice assistant: %s", exc)
        sys.exit(1)

    shutdown_event = asyncio.Event()
    shutdown_triggered = False

    def handle_signal() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            logging.warning("Forced exit")
            sys.exit(1)
        shutdown_triggered = True
        logging.info("Shutting down...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    await control.start()

    async def control_loop() -> None:
        async for cmd in control.commands():
            cmd.respond(await handle_command(session, cmd))

    control_task = asyncio.create_task(control_loop())

    try:
        if listen:
            try:
                await session.start()
            except VoiceAssistantError as exc:
                logging.error("Failed to start listening: %s", exc)
        await shutdown_event.wait()
    finally:
        control_task.cancel()
        try:
            await asyncio.wait_for(control_task, timeout=1.0)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            pass
        try:
            await asyncio.wait_for(session.aclose(), timeout=3.0)
        except asyncio.TimeoutError:
            logging.warning("Session did not stop within 3s")
        await control.stop()
