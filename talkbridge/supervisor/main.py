"""talkbridge desktop supervisor entry point"""

import argparse
import logging
import queue
import sys
from pathlib import Path
from typing import NoReturn, Optional

from talkbridge import __version__
from talkbridge.client.client_logging import logging_setup
from talkbridge.client.console import stdinReader_start
from talkbridge.common.config import Config, ConfigLoader
from talkbridge.common.settings import settings
from talkbridge.common.types import ServerStatus
from talkbridge.server.server_cli import coreArgs_populate, logLevelArgs_populate
from talkbridge.supervisor.detection import MarkerStartupDetector
from talkbridge.supervisor.launch import launchSpec_resolve, runMode_resolve
from talkbridge.supervisor.log_buffer import ServerLogBuffer
from talkbridge.supervisor.process import ProcessSupervisor

logger = logging.getLogger(__name__)

COMMAND_HELP = "Commands: start, stop, restart, status, logs, links, quit"


def arguments_parse(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """
    Parse supervisor command-line arguments

    Args:
        argv: Optional argument list (defaults to sys.argv[1:])

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="talkbridge supervisor - runs and watches the sync relay"
    )
    parser.add_argument("--version", action="version", version=f"talkbridge {__version__}")
    coreArgs_populate(parser)
    runModeArgs_populate(parser)
    logLevelArgs_populate(parser)
    return parser.parse_args(argv)


def runModeArgs_populate(parser: argparse.ArgumentParser) -> None:
    """
    Populate run-mode selection

    Args:
        parser: Target argument parser
    """
    parser.add_argument(
        "--run-mode",
        type=str,
        default=None,
        dest="run_mode",
        choices=["auto", "development", "packaged"],
        help="How to launch the relay (overrides config)",
    )


def configPath_resolve(configured: Optional[str]) -> Optional[Path]:
    """
    Pick the config file shared by the supervisor and the relay child

    Args:
        configured: Value of --config, if given

    Returns:
        Absolute path of the explicit or discovered config file, or None
        when defaults are used
    """
    if configured:
        return Path(configured).expanduser().resolve()
    return ConfigLoader.configFile_find()


def supervisor_create(config: Config, config_path: Optional[Path] = None) -> ProcessSupervisor:
    """
    Build a supervisor from config

    Args:
        config: Loaded config
        config_path: Config file to hand to the relay child

    Returns:
        Supervisor in the stopped state
    """
    run_mode = runMode_resolve(config.supervisor.run_mode)
    launch_spec = launchSpec_resolve(
        run_mode,
        port=config.server.port,
        config_path=config_path,
        host=config.server.host,
    )
    logger.info(f"Relay run mode: {run_mode.value} ({' '.join(launch_spec.argv)})")
    return ProcessSupervisor(
        launch_spec,
        port=config.server.port,
        detector=MarkerStartupDetector(config.supervisor.startup_marker),
        fallback_delay=config.supervisor.fallback_delay_ms / 1000.0,
        kill_timeout=config.supervisor.stop_kill_timeout_seconds,
        log_buffer=ServerLogBuffer(config.supervisor.log_capacity),
    )


def supervisorCommand_apply(line: str, supervisor: ProcessSupervisor) -> Optional[str]:
    """
    Apply one console command to the supervisor

    Args:
        line: Raw command line
        supervisor: Relay supervisor

    Returns:
        Text to show the user, or None
    """
    command = line.strip().lower()
    if not command:
        return None
    if command == "start":
        result = supervisor.server_start()
        return None if result.ok else result.message
    if command == "stop":
        result = supervisor.server_stop()
        return None if result.ok else result.message
    if command == "restart":
        if supervisor.isProcessAlive():
            supervisor.server_stop()
            supervisor.exit_wait(supervisor.kill_timeout + 1.0)
        result = supervisor.server_start()
        return None if result.ok else result.message
    if command == "status":
        return f"Relay status: {supervisor.status_get().value}"
    if command == "logs":
        return "\n".join(supervisor.logs_get())
    if command == "links":
        links = supervisor.lanLinks_get()
        return "\n".join(links) if links else "No LAN address found"
    return COMMAND_HELP


def statusLine_print(status: ServerStatus) -> None:
    """Print a status change for the console user"""
    print(f"[status] {status.value}", flush=True)


def logLine_print(line: str) -> None:
    """Echo one relay log line"""
    print(line, flush=True)


def supervise_run(args: argparse.Namespace) -> NoReturn:
    """
    Start the relay and supervise it until the console closes

    Args:
        args: Parsed supervisor args
    """
    # The relay child must read the same file from its own working directory
    config_path = configPath_resolve(getattr(args, "config", None))
    try:
        config = ConfigLoader.configWithOverrides_load(
            file_path=config_path,
            host=getattr(args, "host", None),
            port=getattr(args, "port", None),
            run_mode=getattr(args, "run_mode", None),
        )
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)
    settings.initialize(config)

    log_level = getattr(args, "log_level", None) or config.logging.level
    logging_setup(log_level, config.logging.format, config.logging.file)

    supervisor = supervisor_create(config, config_path)
    supervisor.statusListener_add(statusLine_print)
    supervisor.logListener_add(logLine_print)

    result = supervisor.server_start()
    if not result.ok:
        logger.error(result.message)
        sys.exit(1)

    print(COMMAND_HELP, flush=True)
    lines = stdinReader_start()
    try:
        while True:
            try:
                line = lines.get(timeout=0.5)
            except queue.Empty:
                continue
            if line is None or line.strip().lower() == "quit":
                break
            output = supervisorCommand_apply(line, supervisor)
            if output:
                print(output, flush=True)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        supervisor.shutdown(timeout=supervisor.kill_timeout + 1.0)

    sys.exit(0)


def main() -> NoReturn:
    """Entry point for running the supervisor module directly"""
    supervise_run(arguments_parse())


if __name__ == "__main__":
    main()
