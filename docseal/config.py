"""
DocSeal Configuration
=====================

Algorithm constants and the on-disk location of the persistent vault.
Environment variables:

* ``DOCSEAL_HOME``: overrides the configuration directory.
* ``DOCSEAL_PBKDF2_ITERATIONS``: raises the PBKDF2 work factor.  Values
  below :data:`PBKDF2_ITERATIONS` or above
  :data:`PBKDF2_MAX_ITERATIONS` are ignored.
"""

from __future__ import annotations

import logging
import os
import platform
from pathlib import Path

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

KEY_SIZE: int = 32     # AES-256 = 32 bytes
NONCE_SIZE: int = 12   # AES-GCM recommended nonce
TAG_SIZE: int = 16     # GCM authentication tag
SALT_SIZE: int = 32    # PBKDF2 salt (256-bit)
MIN_SALT_SIZE: int = 16

PBKDF2_ITERATIONS: int = 100_000  # floor, never lowered
PBKDF2_MAX_ITERATIONS: int = 10_000_000  # ceiling for stored or configured counts

RSA_KEY_SIZES: tuple = (2048, 4096, 8192)
DEFAULT_RSA_KEY_SIZE: int = 4096
RSA_PUBLIC_EXPONENT: int = 65537

FINGERPRINT_LENGTH: int = 40  # hex chars = 160 bits
STRONG_PASSWORD_SCORE: int = 70

DEFAULT_CHUNK: int = 64 * 1024  # 64 KiB streaming chunk

APP_NAME: str = "DocSeal"


# ---------------------------------------------------------------------------
# Config directory
# ---------------------------------------------------------------------------


def config_dir() -> Path:
    """Return the OS-appropriate config directory for DocSeal."""
    override = os.environ.get("DOCSEAL_HOME")
    if override:
        config = Path(override)
    else:
        if platform.system() == "Windows":
            base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        elif platform.system() == "Darwin":
            base = Path.home() / "Library" / "Application Support"
        else:
            base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
        config = base / APP_NAME
    config.mkdir(parents=True, exist_ok=True)
    return config


def pbkdf2_iterations() -> int:
    """PBKDF2 iteration count, honouring ``DOCSEAL_PBKDF2_ITERATIONS``."""
    raw = os.environ.get("DOCSEAL_PBKDF2_ITERATIONS")
    if not raw:
        return PBKDF2_ITERATIONS
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric DOCSEAL_PBKDF2_ITERATIONS=%r", raw)
        return PBKDF2_ITERATIONS
    if value < PBKDF2_ITERATIONS:
        logger.warning(
            "Ignoring DOCSEAL_PBKDF2_ITERATIONS=%d below the floor of %d",
            value,
            PBKDF2_ITERATIONS,
        )
        return PBKDF2_ITERATIONS
    if value > PBKDF2_MAX_ITERATIONS:
        logger.warning(
            "Ignoring DOCSEAL_PBKDF2_ITERATIONS=%d above the ceiling of %d",
            value,
            PBKDF2_MAX_ITERATIONS,
        )
        return PBKDF2_ITERATIONS
    return value
