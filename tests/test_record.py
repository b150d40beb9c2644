# Tests for the stored Quick Unlock record
# Covers: wire layout, field encodings, malformed input handling

import json
import os

import pytest

from freedom_hub.vault.encryption import EncryptionService
from freedom_hub.vault.record import STORAGE_KEY, MalformedRecord, VaultRecord


def _record():
    return VaultRecord(
        credential_id=bytes([0xfb, 0xff]) + os.urandom(30),
        iv=os.urandom(12),
        ciphertext=os.urandom(40),
    )


def test_storage_key():
    assert STORAGE_KEY == "biometric.vault.v1"


def test_wire_layout():
    record = _record()
    data = json.loads(record.to_json())

    assert set(data) == {"credId", "iv", "ct"}
    assert "=" not in data["credId"]
    assert "+" not in data["credId"] and "/" not in data["credId"]
    assert EncryptionService.decode_b64url(data["credId"]) == record.credential_id
    assert EncryptionService.decode_from_storage(data["iv"]) == record.iv
    assert EncryptionService.decode_from_storage(data["ct"]) == record.ciphertext


def test_parse_roundtrip():
    record = _record()
    assert VaultRecord.from_json(record.to_json()) == record


def test_extra_fields_ignored():
    data = json.loads(_record().to_json())
    data["v"] = 1
    assert VaultRecord.from_json(json.dumps(data)).iv == EncryptionService.decode_from_storage(data["iv"])


@pytest.mark.parametrize("raw", [
    "",
    "not json",
    "[]",
    '"string"',
    '{"iv": "AAAAAAAAAAAAAAAA", "ct": "AAAAAAAAAAAAAAAAAAAAAA=="}',
    '{"credId": "", "iv": "AAAAAAAAAAAAAAAA", "ct": "AAAAAAAAAAAAAAAAAAAAAA=="}',
    '{"credId": 5, "iv": "AAAAAAAAAAAAAAAA", "ct": "AAAAAAAAAAAAAAAAAAAAAA=="}',
])
def test_malformed_structure(raw):
    with pytest.raises(MalformedRecord):
        VaultRecord.from_json(raw)


def test_wrong_iv_length():
    data = json.loads(_record().to_json())
    data["iv"] = EncryptionService.encode_for_storage(os.urandom(16))
    with pytest.raises(MalformedRecord, match="iv must be 12 bytes"):
        VaultRecord.from_json(json.dumps(data))


def test_ciphertext_shorter_than_tag():
    data = json.loads(_record().to_json())
    data["ct"] = EncryptionService.encode_for_storage(b"short")
    with pytest.raises(MalformedRecord):
        VaultRecord.from_json(json.dumps(data))


def test_bad_base64():
    data = json.loads(_record().to_json())
    data["iv"] = "!!!!"
    with pytest.raises(MalformedRecord):
        VaultRecord.from_json(json.dumps(data))


def test_malformed_record_is_value_error():
    assert issubclass(MalformedRecord, ValueError)
