# Quick Unlock Vault - Stored Record
#
# The only persisted entity. Wire layout under the fixed storage key:
#
#   {"credId": <base64url, no padding>, "iv": <base64>, "ct": <base64>}
#
# `ct` is AES-256-GCM output (ciphertext || 16-byte tag).

import json
from dataclasses import dataclass

from .encryption import NONCE_LENGTH, TAG_LENGTH, EncryptionService

STORAGE_KEY = "biometric.vault.v1"


class MalformedRecord(ValueError):
    """Stored value is not a valid vault record."""


@dataclass(frozen=True)
class VaultRecord:
    credential_id: bytes
    iv: bytes
    ciphertext: bytes

    def to_json(self) -> str:
        return json.dumps({
            "credId": EncryptionService.encode_b64url(self.credential_id),
            "iv": EncryptionService.encode_for_storage(self.iv),
            "ct": EncryptionService.encode_for_storage(self.ciphertext),
        }, separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> "VaultRecord":
        """
        Parse a stored record.

        Raises:
            MalformedRecord: If the JSON, a field, or a field's encoding is invalid
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedRecord(f"record is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise MalformedRecord("record must be a JSON object")

        fields = {}
        for name in ("credId", "iv", "ct"):
            value = data.get(name)
            if not isinstance(value, str) or not value:
                raise MalformedRecord(f"record field {name!r} is missing")
            fields[name] = value

        try:
            credential_id = EncryptionService.decode_b64url(fields["credId"])
            iv = EncryptionService.decode_from_storage(fields["iv"])
            ciphertext = EncryptionService.decode_from_storage(fields["ct"])
        except ValueError as e:
            raise MalformedRecord(str(e)) from e

        if len(iv) != NONCE_LENGTH:
            raise MalformedRecord(f"iv must be {NONCE_LENGTH} bytes, got {len(iv)}")
        if len(ciphertext) < TAG_LENGTH:
            raise MalformedRecord("ciphertext is shorter than the authentication tag")

        return cls(credential_id=credential_id, iv=iv, ciphertext=ciphertext)
