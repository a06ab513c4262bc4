# Path and File Name : /home/bitblock/rebuild/bitblock_installer/crypto/checksum_verifier.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: SHA256 verification of the release artifact against the pinned digest and the SHA256SUMS manifest

"""
Checksum Verifier: Verifies the release artifact before anything is extracted.

Security Properties:
- FAIL-CLOSED on ANY mismatch
- The pinned digest is the ONLY authority
- The downloaded SHA256SUMS manifest corroborates, it never substitutes
- Integrity failures are NEVER retried

Verification Order (MANDATORY):
1. Hash artifact (streamed SHA256)
2. Compare against pinned digest
3. Parse SHA256SUMS
4. Require artifact entry with exactly the pinned digest
"""

import re
import hashlib
import logging
from pathlib import Path
from typing import Dict

from ..errors import IntegrityError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# "<64 hex>  name" (text mode) or "<64 hex> *name" (binary mode)
_MANIFEST_LINE = re.compile(r'^([0-9a-fA-F]{64}) [ *](.+)$')


def sha256_of_file(path: Path) -> str:
    """Compute hex SHA256 of a file, streaming in 1 MiB chunks."""
    h = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
            h.update(chunk)
    return h.hexdigest()


def digests_match(actual: str, expected: str) -> bool:
    """Case-insensitive full-length hex comparison."""
    return actual.strip().lower() == expected.strip().lower()


def parse_checksum_manifest(manifest_path: Path) -> Dict[str, str]:
    """
    Parse a sha256sum-style manifest into {file name: lowercase digest}.

    Raises:
        IntegrityError: If the manifest is unreadable or lists one name with conflicting digests
    """
    entries: Dict[str, str] = {}
    try:
        content = Path(manifest_path).read_text(encoding='utf-8', errors='replace')
    except OSError as e:
        raise IntegrityError(f"Failed to read checksum manifest {manifest_path}: {e}") from e

    for line in content.splitlines():
        match = _MANIFEST_LINE.match(line.strip())
        if not match:
            continue
        digest, name = match.group(1).lower(), match.group(2).strip()
        previous = entries.get(name)
        if previous is not None and previous != digest:
            raise IntegrityError(f"Checksum manifest lists conflicting digests for {name}")
        entries[name] = digest

    return entries


class ChecksumVerifier:
    """Verifies artifact integrity against a pinned SHA256 digest."""

    def __init__(self, expected_sha256: str):
        self.expected_sha256 = expected_sha256.strip().lower()

    def verify_artifact(self, artifact_path: Path) -> str:
        """
        Hash the artifact and compare with the pinned digest.

        Returns:
            The computed digest

        Raises:
            IntegrityError: If the artifact is missing or the digest differs
        """
        artifact_path = Path(artifact_path)
        logger.info("Verifying SHA256 checksum of %s...", artifact_path.name)

        try:
            actual = sha256_of_file(artifact_path)
        except OSError as e:
            raise IntegrityError(f"Failed to hash {artifact_path}: {e}") from e

        if not digests_match(actual, self.expected_sha256):
            raise IntegrityError(
                f"SHA256 checksum mismatch! Expected: {self.expected_sha256}, Got: {actual}"
            )

        logger.info("✓ SHA256 checksum verification passed")
        return actual

    def verify_manifest_entry(self, manifest_path: Path, artifact_name: str) -> None:
        """
        Require the manifest to list artifact_name with the pinned digest.

        Raises:
            IntegrityError: If the entry is absent or diverges
        """
        entries = parse_checksum_manifest(manifest_path)
        listed = entries.get(artifact_name)

        if listed is None:
            raise IntegrityError(f"Checksum for {artifact_name} not found in official manifest")

        if not digests_match(listed, self.expected_sha256):
            raise IntegrityError(
                f"Official manifest diverges from pinned digest for {artifact_name}: "
                f"manifest={listed}, pinned={self.expected_sha256}"
            )

        logger.info("✓ Checksum matches official %s file", Path(manifest_path).name)

    def verify(self, artifact_path: Path, manifest_path: Path) -> str:
        """Run both checks; both MUST pass. Returns the verified digest."""
        digest = self.verify_artifact(artifact_path)
        self.verify_manifest_entry(manifest_path, Path(artifact_path).name)
        return digest
