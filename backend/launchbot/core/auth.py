"""Password hashing and credential verification.

Single authentication capability shared by the web login and the WhatsApp
chatbot. Hashes are salted scrypt digests stored as ``<hex digest>.<salt>``.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from launchbot.services.project_directory import ProjectDirectory, UserRecord

logger = logging.getLogger(__name__)

SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_DKLEN = 64

AuthStatus = Literal["ok", "user_not_found", "wrong_password"]


def _derive(password: str, salt: str) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=SCRYPT_DKLEN,
    )


def hash_password(password: str, *, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    return f"{_derive(password, salt).hex()}.{salt}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Constant-time check of a password against a stored scrypt hash.

    Stored values without a salt are rejected.
    """
    stored_hash, _, salt = hashed_password.partition(".")
    if not stored_hash or not salt:
        logger.warning("Rejecting password check against unsalted stored hash")
        return False
    try:
        expected = bytes.fromhex(stored_hash)
    except ValueError:
        logger.warning("Rejecting password check against malformed stored hash")
        return False
    return hmac.compare_digest(expected, _derive(plain_password, salt))


@dataclass(frozen=True, slots=True)
class AuthResult:
    status: AuthStatus
    user: UserRecord | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class CredentialVerifier(Protocol):
    async def verify_credentials(self, username: str, password: str) -> AuthResult: ...


class DirectoryCredentialVerifier:
    """Verify credentials against users held in the project directory."""

    def __init__(self, directory: ProjectDirectory) -> None:
        self._directory = directory

    async def verify_credentials(self, username: str, password: str) -> AuthResult:
        user = await self._directory.get_user_by_username(username)
        if user is None:
            logger.info("Login attempt for unknown username")
            return AuthResult(status="user_not_found")
        # scrypt is CPU-bound; keep it off the event loop
        valid = await asyncio.to_thread(verify_password, password, user.password_hash)
        if not valid:
            logger.info("Login attempt with wrong password for user %s", user.id)
            return AuthResult(status="wrong_password")
        return AuthResult(status="ok", user=user)
