from __future__ import annotations

import base64
import hashlib
import re
import secrets
import string
from dataclasses import dataclass

from access_tokens_client import ValidationError

DEFAULT_TOKEN_PREFIX = "pat_"
MAX_TOKEN_LENGTH = 200

TOKEN_ID_LENGTH = 21
KEY_LENGTH = 32
SALT_LENGTH = 16

SCRYPT_ID = "scrypt"
SCRYPT_LOG_COST = 14
SCRYPT_BLOCK_SIZE = 8
SCRYPT_PARALLELIZATION = 1
SCRYPT_MAXMEM = 32 * 1024 * 1024

_ID_ALPHABET = string.ascii_letters + string.digits
_TOKEN_ID_RE = re.compile(rf"^[A-Za-z0-9]{{{TOKEN_ID_LENGTH}}}$")


@dataclass
class GeneratedToken:
    token: str
    token_id: str
    secret_phc: str

    def to_api(self) -> dict[str, str]:
        return {"token": self.token, "tokenId": self.token_id, "secretPhc": self.secret_phc}


def _b64(data: bytes) -> str:
    # PHC strings use unpadded standard base64
    return base64.b64encode(data).decode("ascii").rstrip("=")


def new_token_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(TOKEN_ID_LENGTH))


def scrypt_hash(secret: bytes, salt: bytes, *, log_cost: int = SCRYPT_LOG_COST,
                block_size: int = SCRYPT_BLOCK_SIZE, parallelization: int = SCRYPT_PARALLELIZATION,
                length: int = KEY_LENGTH) -> bytes:
    return hashlib.scrypt(
        secret,
        salt=salt,
        n=1 << log_cost,
        r=block_size,
        p=parallelization,
        maxmem=SCRYPT_MAXMEM,
        dklen=length,
    )


def secret_phc(secret: bytes, salt: bytes) -> str:
    digest = scrypt_hash(secret, salt)
    params = f"ln={SCRYPT_LOG_COST},r={SCRYPT_BLOCK_SIZE},p={SCRYPT_PARALLELIZATION}"
    return f"${SCRYPT_ID}${params}${_b64(salt)}${_b64(digest)}"


def generate(*, token_id: str | None = None, token_prefix: str | None = None) -> GeneratedToken:
    """Mint a token locally: the token is shown to its owner, the PHC hash goes to `register`."""
    prefix = DEFAULT_TOKEN_PREFIX if token_prefix is None else token_prefix
    if token_id is None:
        token_id = new_token_id()
    elif not _TOKEN_ID_RE.match(token_id):
        raise ValidationError(
            None, f"Invalid token ID: {token_id}. Expected {TOKEN_ID_LENGTH} letters or digits"
        )

    secret = secrets.token_bytes(KEY_LENGTH)
    salt = secrets.token_bytes(SALT_LENGTH)
    token = f"{prefix}{token_id}.{base64.b64encode(secret).decode('ascii')}"
    if len(token) > MAX_TOKEN_LENGTH:
        raise ValidationError(None, f"Token prefix too long: tokens are limited to {MAX_TOKEN_LENGTH} characters")
    return GeneratedToken(token=token, token_id=token_id, secret_phc=secret_phc(secret, salt))
