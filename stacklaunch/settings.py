"""
This module contains the configuration settings for the stacklaunch supervisor.
It defines paths, launch timings, broker provisioning details and the default
service stack. Every other module reads these values through
`stacklaunch.local.config.effective_settings`.
"""

import os
import sys
import pathlib
import platform
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(os.getenv("STACK_ROOT", pathlib.Path.cwd())).resolve()  # Project Root
BIN_DIR = BASE_DIR / "bin"
LOGS_DIR = BASE_DIR / "logs"

#* --- Application File Paths ---
LOG_FILE_PATH = LOGS_DIR / "supervisor.log"
OVERRIDES_JSON_PATH = BASE_DIR / "overrides.json"
SERVICES_JSON_PATH = BASE_DIR / "services.json"

#* --- Process Settings ---
PROCESS_TITLE = "stacklaunch - Supervisor"
AGENT_COMMAND = os.getenv("AGENT_COMMAND", "node")
FRONTEND_COMMAND = os.getenv("FRONTEND_COMMAND", "npm")

#* --- Timing (seconds) ---
INTER_LAUNCH_DELAY = 2.0    # lets an agent bind its port before the next one starts
BROKER_STARTUP_DELAY = 3.0
SHUTDOWN_COOLDOWN = 2.0     # grace period before the supervisor exits

#* --- Broker (NATS) ---
BROKER_PROVISION = os.getenv("BROKER_PROVISION", "True").lower() in ('true', '1', 't')
# When False a failed download is reported and the broker is assumed to be external.
BROKER_REQUIRED = os.getenv("BROKER_REQUIRED", "False").lower() in ('true', '1', 't')
BROKER_LAUNCH = os.getenv("BROKER_LAUNCH", "True").lower() in ('true', '1', 't')
BROKER_PORT = int(os.getenv("NATS_PORT", "4222"))
NATS_VERSION = os.getenv("NATS_VERSION", "v2.10.7")
NATS_URL_TEMPLATE = (
    "https://github.com/nats-io/nats-server/releases/download/"
    "{version}/nats-server-{version}-{platform}.zip"
)
NATS_EXECUTABLE_PATH = BIN_DIR / "nats-server"
DOWNLOAD_TIMEOUT = 30
DOWNLOAD_CHUNK_SIZE = 8192
USER_AGENT = "stacklaunch/1.0"


def _release_platform() -> str:
    """Maps the host OS and machine to the release asset suffix used by nats-server."""
    system = {"win32": "windows", "darwin": "darwin"}.get(sys.platform, "linux")
    machine = platform.machine().lower()
    arch = {
        "x86_64": "amd64", "amd64": "amd64",
        "arm64": "arm64", "aarch64": "arm64",
        "i386": "386", "i686": "386", "x86": "386",
    }.get(machine, "amd64")
    return f"{system}-{arch}"


NATS_PLATFORM = os.getenv("NATS_PLATFORM", _release_platform())

#* --- Logging ---
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "False").lower() in ('true', '1', 't')

#* --- MODIFIABLE SETTINGS (may be overridden from overrides.json) ---
MODIFIABLE_SETTINGS = {
    "INTER_LAUNCH_DELAY", "BROKER_STARTUP_DELAY", "SHUTDOWN_COOLDOWN",
    "BROKER_PROVISION", "BROKER_REQUIRED", "BROKER_LAUNCH",
    "NATS_VERSION", "NATS_PLATFORM", "VERBOSE_LOGGING",
}

#* --- Default Service Stack ---
# Each entry mirrors the fields of ServiceDescriptor. "cwd" is relative to BASE_DIR.
# The broker entry has no command: it runs the provisioned NATS executable.
DEFAULT_SERVICES = [
    {"name": "NATS Server", "args": ["-p", str(BROKER_PORT)],
     "role": "broker", "color": "blue", "url": f"nats://localhost:{BROKER_PORT}"},
    # Phase 1 agents
    {"name": "Client Agent", "command": AGENT_COMMAND, "args": ["agent-sdk/agents/clientAgent.js"],
     "color": "blue", "url": "http://localhost:3001"},
    {"name": "Worker Agent", "command": AGENT_COMMAND, "args": ["agent-sdk/agents/workerAgent.js"],
     "color": "blue", "url": "http://localhost:3002"},
    {"name": "Verification Agent", "command": AGENT_COMMAND, "args": ["agent-sdk/agents/verificationAgent.js"],
     "color": "blue", "url": "http://localhost:3003"},
    # Phase 2 (A2A) agents
    {"name": "Repute Agent", "command": AGENT_COMMAND, "args": ["agent-sdk/agents/reputeAgent.js"],
     "color": "magenta", "url": "http://localhost:3004"},
    {"name": "Dispute Agent", "command": AGENT_COMMAND, "args": ["agent-sdk/agents/disputeAgent.js"],
     "color": "magenta", "url": "http://localhost:3005"},
    {"name": "Data Agent", "command": AGENT_COMMAND, "args": ["agent-sdk/agents/dataAgent.js"],
     "color": "magenta", "url": "http://localhost:3006"},
    {"name": "Escrow Agent", "command": AGENT_COMMAND, "args": ["agent-sdk/agents/escrowAgent.js"],
     "color": "magenta", "url": "http://localhost:3007"},
    {"name": "Frontend", "command": FRONTEND_COMMAND, "args": ["run", "dev"], "cwd": "frontend",
     "role": "frontend", "color": "magenta", "url": "http://localhost:3000"},
]
