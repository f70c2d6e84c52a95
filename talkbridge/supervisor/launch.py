"""
Relay launch policy for the desktop supervisor.

Resolves how the relay child is started: interpreter or installed script,
working directory and environment, depending on whether talkbridge runs from
a source checkout (development) or an installed/frozen build (packaged).
"""

from __future__ import annotations

import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from talkbridge.common.types import RunMode

__all__ = [
    "LaunchSpec",
    "runMode_resolve",
    "workspaceRoot_get",
    "launchSpec_resolve",
]

ENVIRONMENT_VARIABLE = "TALKBRIDGE_ENV"
RELAY_SCRIPT = "talkbridge-relay"
RELAY_MODULE = "talkbridge.server.main"


@dataclass(frozen=True)
class LaunchSpec:
    """Everything needed to spawn the relay child process."""

    argv: tuple[str, ...]
    cwd: Path
    env: Mapping[str, str]


def runMode_resolve(configured: str = "auto", environ: Mapping[str, str] | None = None) -> RunMode:
    """
    Decide the run mode.

    Args:
        configured:
            `development`, `packaged`, or `auto`.
        environ:
            Environment mapping (defaults to `os.environ`).

    Returns:
        Explicit mode when configured, else packaged for frozen builds or
        `TALKBRIDGE_ENV=production`, development otherwise.
    """
    if configured and configured != "auto":
        return RunMode(configured)
    env: Mapping[str, str] = os.environ if environ is None else environ
    if getattr(sys, "frozen", False) or env.get(ENVIRONMENT_VARIABLE) == "production":
        return RunMode.PACKAGED
    return RunMode.DEVELOPMENT


def workspaceRoot_get() -> Path:
    """Return the source checkout root containing the talkbridge package."""
    return Path(__file__).resolve().parents[2]


def launchSpec_resolve(
    run_mode: RunMode,
    port: int | None = None,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    host: str | None = None,
) -> LaunchSpec:
    """
    Build the relay LaunchSpec.

    Development runs the relay module with the current interpreter from the
    checkout root and turns STT adapter debug output on unless the caller
    already set it. Packaged runs the installed relay script from the user's
    home directory.

    Args:
        run_mode:
            Resolved run mode.
        port:
            Relay port, exported as `PORT`.
        config_path:
            Optional config file handed to the relay. Passed as an absolute
            path since the child runs from a different directory.
        environ:
            Base environment (defaults to `os.environ`).
        host:
            Optional bind address handed to the relay.

    Returns:
        Command, working directory and environment for the child.
    """
    env: dict[str, str] = dict(os.environ if environ is None else environ)
    # Line-buffered child output so status detection sees lines as they happen
    env["PYTHONUNBUFFERED"] = "1"
    env.setdefault("PYTHONIOENCODING", "utf-8")
    if port is not None:
        env["PORT"] = str(port)

    argv: tuple[str, ...]
    if run_mode == RunMode.DEVELOPMENT:
        env.setdefault("STT_DEBUG", "1")
        argv = (sys.executable, "-m", RELAY_MODULE)
        cwd: Path = workspaceRoot_get()
    else:
        script: str | None = shutil.which(RELAY_SCRIPT)
        argv = (script,) if script else (sys.executable, "-m", RELAY_MODULE)
        cwd = Path.home()

    if config_path is not None:
        argv = argv + ("--config", str(Path(config_path).expanduser().resolve()))
    if host:
        argv = argv + ("--host", host)

    return LaunchSpec(argv=argv, cwd=cwd, env=env)
