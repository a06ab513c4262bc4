# Path and File Name : /home/bitblock/rebuild/bitblock_installer/fetch/artifact_fetcher.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Downloads the release tarball, SHA256SUMS and SHA256SUMS.asc over HTTPS with bounded fixed-delay retry

"""
Artifact Fetcher: Retrieves release files into a caller-owned download directory.

Rules:
- Each resource is retried independently (bounded attempts, fixed delay)
- Only transient failures are retried (connection errors, timeouts, 408/429/5xx)
- Tarball or SHA256SUMS failure after retries: FATAL
- SHA256SUMS.asc failure: NON-FATAL (degraded trust, checksum-only)
- Writes ONLY inside the download directory (.part file renamed on success)
"""

import time
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests

from ..errors import FetchError
from ..release_config import FetchPolicy, ReleaseDescriptor

logger = logging.getLogger(__name__)

TRANSIENT_HTTP_STATUS = frozenset({408, 429, 500, 502, 503, 504})
DOWNLOAD_CHUNK_SIZE = 64 * 1024


@dataclass
class FetchResult:
    artifact_path: Path
    manifest_path: Path
    signature_path: Optional[Path] = None

    @property
    def signature_available(self) -> bool:
        return self.signature_path is not None


class _TransientFailure(Exception):
    """A failure worth retrying."""


class ArtifactFetcher:
    """Fetches release files with bounded retry."""

    def __init__(self, policy: FetchPolicy,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.policy = policy
        self.session = session or requests.Session()
        self.sleep = sleep

    def download(self, url: str, dest: Path) -> Path:
        """
        Download url to dest with retry.

        Raises:
            FetchError: If all attempts fail or the failure is not transient
        """
        dest = Path(dest)
        last_error = "no attempt made"

        for attempt in range(1, self.policy.attempts + 1):
            try:
                self._download_once(url, dest)
                return dest
            except _TransientFailure as e:
                last_error = str(e)
                if attempt < self.policy.attempts:
                    logger.warning(
                        "WARNING: Attempt %d/%d for %s failed (%s), retrying in %ss",
                        attempt, self.policy.attempts, url, last_error, self.policy.retry_delay_seconds,
                    )
                    self.sleep(self.policy.retry_delay_seconds)

        raise FetchError(f"Failed to download {url} after {self.policy.attempts} attempts: {last_error}")

    def _download_once(self, url: str, dest: Path) -> None:
        part = dest.with_name(dest.name + '.part')
        try:
            response = self.session.get(url, stream=True, timeout=self.policy.timeout_seconds)
            try:
                if response.status_code in TRANSIENT_HTTP_STATUS:
                    raise _TransientFailure(f"HTTP {response.status_code}")
                try:
                    response.raise_for_status()
                except requests.HTTPError as e:
                    raise FetchError(f"Failed to download {url}: HTTP {response.status_code}") from e

                with open(part, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
            finally:
                response.close()
            part.replace(dest)
        except (requests.ConnectionError, requests.Timeout, requests.exceptions.ChunkedEncodingError) as e:
            raise _TransientFailure(f"{type(e).__name__}: {e}") from e
        except requests.RequestException as e:
            raise FetchError(f"Failed to download {url}: {type(e).__name__}: {e}") from e
        except OSError as e:
            raise FetchError(f"Failed to write {dest}: {e}") from e
        finally:
            part.unlink(missing_ok=True)

    def fetch_release(self, release: ReleaseDescriptor, download_dir: Path) -> FetchResult:
        """
        Fetch tarball, checksum manifest and (optionally) detached signature.

        Raises:
            FetchError: If the tarball or the checksum manifest cannot be fetched
        """
        download_dir = Path(download_dir)
        logger.info("Downloading %s %s and verification files...", release.name, release.version)

        artifact_path = self.download(release.artifact_url, download_dir / release.artifact_name)
        manifest_path = self.download(release.checksum_manifest_url,
                                      download_dir / release.checksum_manifest_name)

        signature_path = None
        if release.signature_url:
            try:
                signature_path = self.download(release.signature_url, download_dir / release.signature_name)
            except FetchError as e:
                logger.warning("WARNING: Could not download GPG signatures, "
                               "continuing with checksum verification only (%s)", e)

        logger.info("✓ Downloaded %s", release.artifact_name)
        return FetchResult(
            artifact_path=artifact_path,
            manifest_path=manifest_path,
            signature_path=signature_path,
        )
