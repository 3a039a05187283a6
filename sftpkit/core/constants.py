"""
Project constants definitions
"""

# ============================================================
# Connection Defaults
# ============================================================

DEFAULT_SSH_PORT = 22
DEFAULT_SSH_TIMEOUT = 30.0
URL_SCHEMES = ("sftp", "ssh")

# ============================================================
# SFTP Protocol
# ============================================================

SFTP_PROTOCOL_VERSION = 3
SFTP_SUBSYSTEM = "sftp"

# Largest payload moved by a single READ/WRITE request
MAX_REQUEST_SIZE = 32 * 1024

# Packets above this size are treated as corrupt framing
MAX_PACKET_SIZE = 256 * 1024

# ============================================================
# Transfer Defaults
# ============================================================

DEFAULT_CHUNK_SIZE = 32 * 1024
PART_SUFFIX = ".part"

# ============================================================
# Configuration
# ============================================================

ENV_PREFIX = "SFTPKIT_"
ENV_URL = "SFTPKIT_URL"
# Variable used by the SFTP To Go examples
ENV_URL_FALLBACK = "SFTPTOGO_URL"

# ============================================================
# Telemetry
# ============================================================

# Oldest metrics and events are dropped beyond this many of each
TELEMETRY_MAX_RECORDS = 1000
