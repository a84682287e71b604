"""Centralized constants for the dialectic utils package.

Single source of truth for file names and directories shared by the
mutator, the recovery coordinator and the CLI.
"""

from pathlib import Path

# ============================================================================
# OUTPUT DIRECTORIES
# ============================================================================

# Working directory for dialectic's own artifacts (logs, config)
STATE_DIR = Path("./.dialectic")

ERROR_LOG_FILE = STATE_DIR / "error.log"
CONFIG_FILE_NAME = "config.json"

# Backup area inside the target project; never pruned
BACKUP_DIR_NAME = ".dialectic-backup"
BACKUP_SUFFIX = ".bak"
BACKUP_META_SUFFIX = ".meta.json"

# ============================================================================
# PROJECT FILES
# ============================================================================

MANIFEST_FILE = "package.json"

# Lockfiles in detection priority order
LOCKFILES = ("pnpm-lock.yaml", "package-lock.json", "yarn.lock")

# Manifest sections searched when rewriting a version (first match wins)
MANIFEST_SECTIONS = ("dependencies", "devDependencies")

# ============================================================================
# ENVIRONMENT VARIABLES
# ============================================================================

ENV_PREFIX = "DIALECTIC_"
ENV_RISK_API_KEY = "ZHIPU_API_KEY"
