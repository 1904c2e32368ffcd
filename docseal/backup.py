"""
DocSeal Backup Format
=====================

Versioned JSON export of a :class:`~docseal.models.KeyPair`::

    {
      "version": "1.0",
      "exportedAt": "2024-05-01T12:00:00+00:00",
      "keys": { ...KeyPair record... }
    }

Readers are registered per exact version string.  Anything else is
rejected with :class:`~docseal.errors.UnsupportedBackupVersionError`
before any field is interpreted.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from docseal.errors import FormatError, UnsupportedBackupVersionError
from docseal.models import KeyPair, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"


def export_backup(keys: KeyPair, exported_at: Optional[datetime] = None) -> str:
    """Serialize *keys* as a version 1.0 backup document."""
    exported_at = exported_at or datetime.now(timezone.utc)
    backup = {
        "version": BACKUP_VERSION,
        "exportedAt": format_timestamp(exported_at),
        "keys": keys.to_dict(),
    }
    logger.info("Exported backup for key %s", keys.fingerprint)
    return json.dumps(backup, indent=2)


def _read_v1(backup: dict) -> KeyPair:
    if "exportedAt" in backup:
        parse_timestamp(backup["exportedAt"])
    if "keys" not in backup:
        raise FormatError("Backup is missing 'keys'.")
    keys = KeyPair.from_dict(backup["keys"])
    if not keys.verify_fingerprint():
        raise FormatError("Backup fingerprint does not match its public key.")
    return keys


_READERS: Dict[str, Callable[[dict], KeyPair]] = {
    BACKUP_VERSION: _read_v1,
}


def import_backup(backup_json: str) -> KeyPair:
    """
    Parse a backup produced by :func:`export_backup`.

    Raises
    ------
    UnsupportedBackupVersionError
        If ``version`` is not exactly a supported tag.
    FormatError
        If the document is not valid JSON or the record is malformed.
    """
    try:
        backup = json.loads(backup_json)
    except (TypeError, ValueError) as exc:
        raise FormatError("Backup is not valid JSON.") from exc
    if not isinstance(backup, dict):
        raise FormatError("Backup must be a JSON object.")

    version = backup.get("version")
    reader = _READERS.get(version) if isinstance(version, str) else None
    if reader is None:
        raise UnsupportedBackupVersionError(version)

    keys = reader(backup)
    logger.info("Imported backup (version %s) for key %s", version, keys.fingerprint)
    return keys
