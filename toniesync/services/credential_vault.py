"""Symmetric encryption for Tonie Cloud passwords at rest."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from toniesync.core.errors import CorruptCiphertext, InvalidArgument


class CredentialVault:
    """Encrypt and decrypt stored passwords using a derived Fernet key.

    Fernet draws a fresh IV per call and authenticates the ciphertext, so the
    same password never encrypts to the same string twice and any tampering
    is detected on the way back.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise InvalidArgument("Credential encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        key = base64.urlsafe_b64encode(digest)
        self._fernet = Fernet(key)

    def protect(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the ciphertext."""
        if not plaintext:
            raise InvalidArgument("Plaintext to protect must be a non-empty string.")
        token = self._fernet.encrypt(plaintext.encode("utf-8"))
        return token.decode("ascii")

    def unprotect(self, ciphertext: str) -> str:
        """Decrypt a ciphertext string and return the plaintext."""
        if not ciphertext:
            raise InvalidArgument("Ciphertext to unprotect must be a non-empty string.")
        # Fernet decodes base64 leniently; a changed pad bit would still decrypt.
        try:
            raw = base64.urlsafe_b64decode(ciphertext.encode("ascii"))
        except ValueError as exc:
            raise CorruptCiphertext("Credential ciphertext is not valid base64.") from exc
        if base64.urlsafe_b64encode(raw).decode("ascii") != ciphertext:
            raise CorruptCiphertext("Credential ciphertext is not canonically encoded.")
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("ascii"))
        except InvalidToken as exc:
            raise CorruptCiphertext(
                "Failed to decrypt credential; ciphertext is malformed or was tampered with."
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["CredentialVault"]
