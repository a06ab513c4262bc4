# Path and File Name : /home/bitblock/rebuild/bitblock_installer/state_manager.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Loads, re-validates and persists the download/verification cache markers

"""
Install Cache State

Markers (installation root):
- .bit-block_downloaded : presence means the release was fetched
- .bit-block_verified   : "SHA256:<artifact digest>" followed by one
                          "<sha256>  <binary>" line per installed binary

SECURITY MODEL:
- Markers are loaded once at pipeline start and written once after a
  successful acquisition
- A verified marker is NEVER trusted blindly: the recorded digest must equal
  the pinned digest and every installed binary must still hash to its
  recorded value
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from .crypto.checksum_verifier import digests_match, parse_checksum_manifest, sha256_of_file
from .errors import IntegrityError, ProvisioningEnvironmentError

logger = logging.getLogger(__name__)

DIGEST_PREFIX = 'SHA256:'


@dataclass
class CacheState:
    downloaded: bool = False
    verified: bool = False
    verified_digest: Optional[str] = None
    binary_digests: Dict[str, str] = field(default_factory=dict)


class StateManager:
    """Owns the cache marker files for one installation root."""

    def __init__(self, download_marker: Path, verification_marker: Path):
        self.download_marker = Path(download_marker)
        self.verification_marker = Path(verification_marker)

    def load(self) -> CacheState:
        state = CacheState(downloaded=self.download_marker.exists())

        if not self.verification_marker.exists():
            return state

        try:
            first_line = self.verification_marker.read_text(encoding='utf-8').splitlines()[:1]
            binary_digests = parse_checksum_manifest(self.verification_marker)
        except (OSError, IntegrityError) as e:
            logger.warning("WARNING: Verification marker unreadable, ignoring it: %s", e)
            return state

        if not first_line or not first_line[0].startswith(DIGEST_PREFIX):
            logger.warning("WARNING: Verification marker %s is malformed, ignoring it",
                           self.verification_marker)
            return state

        state.verified = True
        state.verified_digest = first_line[0][len(DIGEST_PREFIX):].strip().lower()
        state.binary_digests = binary_digests
        return state

    @staticmethod
    def revalidate(state: CacheState, expected_sha256: str, bin_dir: Path,
                   binaries: Sequence[str]) -> Tuple[bool, str]:
        """
        Re-check a claimed cache hit.

        Returns:
            (True, reason) if the installed release is still the verified one,
            (False, reason) otherwise
        """
        if not (state.downloaded and state.verified):
            return False, "no download/verification markers"

        if not state.verified_digest or not digests_match(state.verified_digest, expected_sha256):
            return False, f"recorded digest {state.verified_digest} does not match pinned release"

        for name in binaries:
            path = Path(bin_dir) / name
            if not path.is_file():
                return False, f"installed binary missing: {name}"
            recorded = state.binary_digests.get(name)
            if recorded is None:
                return False, f"no recorded digest for {name}"
            try:
                actual = sha256_of_file(path)
            except OSError as e:
                return False, f"cannot hash {name}: {e}"
            if not digests_match(actual, recorded):
                return False, f"{name} changed since verification"

        return True, "installed binaries match verified release"

    def save(self, verified_digest: str, binary_digests: Dict[str, str]) -> CacheState:
        """
        Persist both markers.

        Raises:
            ProvisioningEnvironmentError: If a marker cannot be written
        """
        lines = [f"{DIGEST_PREFIX}{verified_digest.lower()}"]
        lines += [f"{digest}  {name}" for name, digest in binary_digests.items()]

        tmp = self.verification_marker.with_name(self.verification_marker.name + '.tmp')
        try:
            self.download_marker.parent.mkdir(parents=True, exist_ok=True)
            self.download_marker.touch()
            tmp.write_text('\n'.join(lines) + '\n', encoding='utf-8')
            os.replace(tmp, self.verification_marker)
        except OSError as e:
            raise ProvisioningEnvironmentError(f"Failed to write cache markers: {e}") from e

        return CacheState(
            downloaded=True,
            verified=True,
            verified_digest=verified_digest.lower(),
            binary_digests=dict(binary_digests),
        )

    def clear(self) -> None:
        """Drop markers that no longer describe the installation."""
        for marker in (self.verification_marker, self.download_marker):
            try:
                marker.unlink(missing_ok=True)
            except OSError as e:
                raise ProvisioningEnvironmentError(f"Failed to remove stale marker {marker}: {e}") from e
