"""
Project constants definitions
"""

# ============================================================
# Remote Authority
# ============================================================

# Magic string prepended to SSH hosts handled by this tool
AUTHORITY_PREFIX = "coder-vscode"
SSH_REMOTE_SCHEME = "ssh-remote+"
DEV_CONTAINER_SCHEME = "attached-container+"

# ============================================================
# SSH Config Block Markers
# ============================================================

BLOCK_START_TEMPLATE = "# --- START CODER VSCODE{label} ---"
BLOCK_END_TEMPLATE = "# --- END CODER VSCODE{label} ---"

# ============================================================
# SSH Config
# ============================================================

SSH_CONFIG_PATH = "~/.ssh/config"
SSH_CONFIG_MODE = 0o600
SSH_CONFIG_DIR_MODE = 0o700
SSH_BLOCK_INDENT = "  "

# Keys compared after writing the managed block
SSH_VERIFIED_KEYS = ("ProxyCommand", "UserKnownHostsFile", "StrictHostKeyChecking")

SSH_SESSION_TYPE_ENV = "CODER_SSH_SESSION_TYPE=vscode"

# ============================================================
# Versions
# ============================================================

MIN_VSCODESSH_VERSION = (0, 14, 1)
MIN_PROXY_LOG_DIR_VERSION = (2, 3, 3)
MIN_WILDCARD_SSH_VERSION = (2, 19, 0)
MIN_SETENV_OPENSSH_VERSION = (7, 8)

# ============================================================
# Default Values
# ============================================================

DEFAULT_DATA_DIR = "~/.config/coder-remote"
DEFAULT_SETTINGS_FILE = "~/.config/Code/User/settings.json"
DEFAULT_WATCH_INTERVAL = 1.0
DEFAULT_API_TIMEOUT = 30.0

# Matches the write interval of the CLI's network info files
NETWORK_INFO_INTERVAL = 3.0

# The remote transport ignores ConnectTimeout in the SSH config
MIN_CONNECT_TIMEOUT = 1800

REMOTE_PLATFORM_SETTING = "remote.SSH.remotePlatform"
CONNECT_TIMEOUT_SETTING = "remote.SSH.connectTimeout"

SESSION_TOKEN_HEADER = "Coder-Session-Token"
