from __future__ import annotations

from pathlib import Path

# Repository root (used for the default config directory)
REPO_ROOT = Path(__file__).resolve().parent.parent

# Server executable and its config file name inside the config directory
DEFAULT_SERVER_BIN = "tcmg"
SERVER_CONFIG_FILE = "config.cfg"
DEFAULT_CONFIG_DIR = (REPO_ROOT / "data").as_posix()

# WebIF defaults when config.cfg omits the [webif] keys
DEFAULT_WEBIF_PORT = 8080
DEFAULT_WEBIF_ENABLED = True

# Debug verbosity accepted by the server (-d <level>)
DEBUG_LEVEL_MIN = 0
DEBUG_LEVEL_MAX = 9

# Server log ring: lines retained for late observers
LOG_RING_MAX = 2000

# Log pull sizing
LOG_PULL_MAX_LINES = 200
LOG_PULL_HARD_LIMIT = 500

# Client-side display retention (characters); trimmed to half on overflow
LOG_BUFFER_MAX_CHARS = 60_000

# Poll cadences (seconds)
LOG_POLL_INTERVAL_S = 1.0
CONTROL_POLL_INTERVAL_S = 1.2

# Grace period between SIGTERM and SIGKILL when stopping the server
STOP_GRACE_S = 5.0

# Interface naming heuristics (lower-cased prefix match)
PRIMARY_IFACE_PREFIXES: tuple[str, ...] = ("wlan", "eth")
ACCESS_POINT_IFACE_PREFIXES: tuple[str, ...] = ("ap", "swlan", "p2p")
ACCESS_POINT_IFACE_NAMES: tuple[str, ...] = ("wlan1",)

# Keep-alive inhibitor identity
KEEPALIVE_NAME = "tcmg:server"
