# Path and File Name : /home/bitblock/rebuild/bitblock_installer/crypto/signature_verifier.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Advisory OpenPGP verification of SHA256SUMS against its detached signature using release signing keys

"""
Signature Verifier: Best-effort authenticity check of the checksum manifest.

Trust model:
- Checksum is necessary and sufficient to proceed
- Signature is ADVISORY: any failure is reported as a degraded-trust status
- Keys are imported into an isolated, throwaway GnuPG home next to the
  signature in the download directory (never the operator keyring)

Verification Order:
1. Signature file present
2. gpg available
3. Import release signing keys from key server
4. Verify detached signature over SHA256SUMS
"""

import shutil
import logging
import tempfile
from enum import Enum
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

import gnupg

logger = logging.getLogger(__name__)


class SignatureStatus(Enum):
    """Outcome of signature verification. Only VERIFIED carries full trust."""
    VERIFIED = "verified"
    NO_SIGNATURE = "no_signature"
    TOOL_UNAVAILABLE = "tool_unavailable"
    KEYS_UNAVAILABLE = "keys_unavailable"
    INVALID = "invalid"


@dataclass
class SignatureResult:
    status: SignatureStatus
    message: str
    fingerprint: Optional[str] = None

    @property
    def trusted(self) -> bool:
        return self.status is SignatureStatus.VERIFIED


class SignatureVerifier:
    """Advisory detached-signature verifier backed by python-gnupg."""

    def __init__(self, keyserver: str, key_ids: Sequence[str],
                 gnupg_home: Optional[Path] = None,
                 gpg_factory: Callable[..., gnupg.GPG] = gnupg.GPG):
        self.keyserver = keyserver
        self.key_ids = list(key_ids)
        self.gnupg_home = Path(gnupg_home) if gnupg_home else None
        self.gpg_factory = gpg_factory

    def verify(self, manifest_path: Path, signature_path: Optional[Path]) -> SignatureResult:
        """
        Verify manifest_path against signature_path.

        Never raises for verification problems; every failure is a
        non-VERIFIED SignatureResult logged as a WARNING.
        """
        logger.info("Attempting GPG signature verification...")

        if signature_path is None or not Path(signature_path).exists():
            return self._degraded(
                SignatureStatus.NO_SIGNATURE,
                "No detached signature available, continuing with checksum verification only",
            )

        if self.gnupg_home is not None:
            self.gnupg_home.mkdir(mode=0o700, parents=True, exist_ok=True)
            return self._verify_with_home(self.gnupg_home, Path(manifest_path), Path(signature_path))

        home = Path(tempfile.mkdtemp(prefix="gnupg-", dir=Path(signature_path).parent))
        try:
            return self._verify_with_home(home, Path(manifest_path), Path(signature_path))
        finally:
            shutil.rmtree(home, ignore_errors=True)

    def _verify_with_home(self, home: Path, manifest_path: Path, signature_path: Path) -> SignatureResult:
        try:
            gpg = self.gpg_factory(gnupghome=str(home))
        except (OSError, ValueError) as e:
            return self._degraded(
                SignatureStatus.TOOL_UNAVAILABLE,
                f"gpg is not available ({e}), continuing without signature verification",
            )

        try:
            imported = gpg.recv_keys(self.keyserver, *self.key_ids)
        except (OSError, ValueError) as e:
            imported = None
            logger.debug("Key import raised: %s", e)

        imported_count = getattr(imported, 'count', 0) or 0
        if imported_count == 0:
            return self._degraded(
                SignatureStatus.KEYS_UNAVAILABLE,
                f"Could not import GPG keys from {self.keyserver}, continuing without signature verification",
            )
        if imported_count < len(self.key_ids):
            logger.warning("WARNING: Imported %d of %d release signing keys",
                           imported_count, len(self.key_ids))

        try:
            with open(signature_path, 'rb') as sig_file:
                verified = gpg.verify_file(sig_file, str(manifest_path))
        except OSError as e:
            return self._degraded(
                SignatureStatus.INVALID,
                f"GPG signature verification could not run ({e}), continuing with checksum verification",
            )

        if verified and verified.valid:
            logger.info("✓ GPG signature verification passed (key %s)", verified.fingerprint)
            return SignatureResult(
                status=SignatureStatus.VERIFIED,
                message="Signature valid",
                fingerprint=verified.fingerprint,
            )

        detail = getattr(verified, 'status', None) or 'unknown status'
        return self._degraded(
            SignatureStatus.INVALID,
            f"GPG signature verification failed ({detail}), but continuing with checksum verification",
        )

    @staticmethod
    def _degraded(status: SignatureStatus, message: str) -> SignatureResult:
        logger.warning("WARNING: %s", message)
        return SignatureResult(status=status, message=message)
