import sys
import shlex
import subprocess
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

ROLES = ("broker", "agent", "frontend")


@dataclass(frozen=True)
class ServiceDescriptor:
    """
    Static description of one launchable service.

    :param name: Display name used in every console line about the service.
    :param command: Program to run; interpreted by the shell.
    :param args: Ordered arguments appended to the command.
    :param cwd: Working directory. None means the supervisor's root directory.
    :param color: Palette key used when reporting about this service.
    :param role: One of 'broker', 'agent' or 'frontend'; decides where it is launched in the sequence.
    :param delay: Optional post-launch delay in seconds, overriding the sequencer default.
    :param url: Optional address shown in the post-start summary.
    """
    name: str
    command: str
    args: Tuple[str, ...] = field(default_factory=tuple)
    cwd: Optional[Path] = None
    color: str = "cyan"
    role: str = "agent"
    delay: Optional[float] = None
    url: Optional[str] = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown role '{self.role}' for service '{self.name}'. Expected one of {ROLES}.")
        # Accept any sequence for args but store it immutably.
        object.__setattr__(self, "args", tuple(str(a) for a in self.args))
        if self.cwd is not None:
            object.__setattr__(self, "cwd", Path(self.cwd))

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Path) -> "ServiceDescriptor":
        """
        Builds a descriptor from a plain mapping (as found in services.json).

        :param data: The mapping. 'name' and 'command' are required.
        :param base_dir: Directory relative 'cwd' values are resolved against.
        :return ServiceDescriptor: The new descriptor.
        :raises ValueError: If a required key is missing.
        """
        missing = [key for key in ("name", "command") if not data.get(key)]
        if missing:
            raise ValueError(f"Service definition {data!r} is missing required keys: {', '.join(missing)}")

        cwd = data.get("cwd")
        delay = data.get("delay")
        return cls(
            name=data["name"],
            command=data["command"],
            args=tuple(data.get("args", ())),
            cwd=(base_dir / cwd) if cwd else None,
            color=data.get("color", "cyan"),
            role=data.get("role", "agent"),
            delay=float(delay) if delay is not None else None,
            url=data.get("url"),
        )


def get_executable_path(base_path: Path) -> Path:
    """
    Returns the platform-specific full path for an executable.

    It appends ".exe" on Windows systems.

    :param base_path: The base path of the executable (e.g., '.../bin/nats-server').
    :return pathlib.Path: The full, platform-aware Path object for the executable.
    """
    return base_path.with_suffix(".exe") if sys.platform == "win32" else base_path


def build_command_line(descriptor: ServiceDescriptor) -> str:
    """
    Joins a descriptor's command and arguments into one shell command line.

    The command is passed through verbatim so it may carry its own flags;
    only the arguments are quoted.

    :param descriptor: The service to build the command line for.
    :return str: A command line suitable for `subprocess.Popen(..., shell=True)`.
    """
    if not descriptor.args:
        return descriptor.command
    if sys.platform == "win32":
        return f"{descriptor.command} {subprocess.list2cmdline(descriptor.args)}"
    return f"{descriptor.command} {shlex.join(descriptor.args)}"


def resolve_cwd(descriptor: ServiceDescriptor, base_dir: Path) -> Path:
    """Returns the working directory for a service, defaulting to the supervisor root."""
    return descriptor.cwd if descriptor.cwd is not None else base_dir
