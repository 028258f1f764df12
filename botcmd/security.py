from __future__ import annotations

from cryptography.fernet import Fernet, InvalidToken

from botcmd.errors import StoreFailure


class DocumentCipher:
    """Symmetric encryption for documents persisted by the key-value store."""

    def __init__(self, key: str) -> None:
        self._fernet = Fernet(key)

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("utf-8")

    def encrypt(self, document: str) -> str:
        return self._fernet.encrypt(document.encode("utf-8")).decode("utf-8")

    def decrypt(self, encrypted_document: str) -> str:
        try:
            return self._fernet.decrypt(encrypted_document.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise StoreFailure("stored document cannot be decrypted with the configured key") from exc
