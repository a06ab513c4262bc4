# Path and File Name : /home/bitblock/rebuild/bitblock_installer/crypto/secret_generator.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Generates the RPC credential secret from the OS CSPRNG, fail-closed when no strong source exists

"""
RPC Secret Generator

- 32 characters from a password-safe alphabet (letters and digits only,
  so '=', '+' and '/' can never appear)
- Drawn from the OS cryptographically strong random source
- NO time-seeded or pseudo-random fallback: missing entropy is FATAL
"""

import string
import secrets
from dataclasses import dataclass

from ..errors import SecretGenerationError

SECRET_LENGTH = 32
SECRET_ALPHABET = string.ascii_letters + string.digits


@dataclass(frozen=True)
class Credential:
    user: str
    secret: str

    def __repr__(self) -> str:
        return f"Credential(user={self.user!r}, secret='[REDACTED]')"


def generate_secret(length: int = SECRET_LENGTH) -> str:
    """
    Generate a high-entropy secret.

    Raises:
        SecretGenerationError: If the OS random source is unavailable
        ValueError: If length is below the minimum
    """
    if length < SECRET_LENGTH:
        raise ValueError(f"Secret length must be >= {SECRET_LENGTH}, got {length}")

    try:
        return ''.join(secrets.choice(SECRET_ALPHABET) for _ in range(length))
    except NotImplementedError as e:
        raise SecretGenerationError(
            "No cryptographically strong random source available; refusing to generate a weak RPC secret"
        ) from e


def generate_credential(user: str) -> Credential:
    return Credential(user=user, secret=generate_secret())
