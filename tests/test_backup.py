import json
from datetime import datetime, timezone

import pytest

from docseal import backup
from docseal.errors import FormatError, UnsupportedBackupVersionError


def test_export_layout(user_keys):
    exported_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    doc = json.loads(backup.export_backup(user_keys, exported_at))
    assert doc["version"] == "1.0"
    assert doc["exportedAt"] == "2024-05-01T12:00:00+00:00"
    assert doc["keys"] == user_keys.to_dict()


def test_import_export(user_keys):
    assert backup.import_backup(backup.export_backup(user_keys)) == user_keys


@pytest.mark.parametrize("version", ["2.0", "1", "1.0.0", 1.0, None])
def test_unknown_versions_are_rejected(user_keys, version):
    doc = json.loads(backup.export_backup(user_keys))
    doc["version"] = version
    with pytest.raises(UnsupportedBackupVersionError) as info:
        backup.import_backup(json.dumps(doc))
    assert info.value.version == version


def test_missing_version_is_rejected(user_keys):
    doc = json.loads(backup.export_backup(user_keys))
    del doc["version"]
    with pytest.raises(UnsupportedBackupVersionError):
        backup.import_backup(json.dumps(doc))


@pytest.mark.parametrize("text", ["", "not json", "[1, 2]", '{"version": "1.0"}'])
def test_malformed_backups(text):
    with pytest.raises(FormatError):
        backup.import_backup(text)


def test_tampered_fingerprint_is_rejected(user_keys):
    doc = json.loads(backup.export_backup(user_keys))
    doc["keys"]["keyFingerprint"] = "0" * 40
    with pytest.raises(FormatError):
        backup.import_backup(json.dumps(doc))


def test_unsupported_version_is_a_format_error():
    assert issubclass(UnsupportedBackupVersionError, FormatError)


def test_huge_iteration_count_is_rejected(user_keys):
    doc = json.loads(backup.export_backup(user_keys))
    sealed = json.loads(doc["keys"]["privateKeyEncrypted"])
    sealed["iterations"] = 2**40
    doc["keys"]["privateKeyEncrypted"] = json.dumps(sealed)
    with pytest.raises(FormatError):
        backup.import_backup(json.dumps(doc))
