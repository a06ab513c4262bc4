# Path and File Name : /home/bitblock/rebuild/bitblock_installer/tests/test_artifact_fetcher.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Tests for release download with bounded retry and non-fatal signature fetch

"""
Artifact Fetcher Tests

Validates that:
1. Transient failures (5xx, connection errors) are retried up to the budget
2. Non-transient failures (404) are not retried
3. Exhausted retries on tarball/SHA256SUMS are FATAL (FetchError)
4. SHA256SUMS.asc failure is NON-FATAL
5. No partial files are left behind
6. Other request errors (redirect loops, bad URLs) fail at once as download errors
"""

import unittest
import tempfile
import shutil
from pathlib import Path
import sys

import requests

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from bitblock_installer.errors import FetchError
from bitblock_installer.fetch.artifact_fetcher import ArtifactFetcher
from bitblock_installer.release_config import FetchPolicy
from bitblock_installer.tests.support import (
    ARTIFACT_NAME,
    BASE_URL,
    FakeSession,
    make_release_config,
    release_routes,
)

ARTIFACT_URL = f"{BASE_URL}/{ARTIFACT_NAME}"
MANIFEST_URL = f"{BASE_URL}/SHA256SUMS"
SIGNATURE_URL = f"{BASE_URL}/SHA256SUMS.asc"


class TestArtifactFetcher(unittest.TestCase):
    """Test bounded-retry fetching."""

    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp(prefix="fetch_test_"))
        self.release = make_release_config().release
        self.sleeps = []
        self.policy = FetchPolicy(attempts=3, retry_delay_seconds=5, timeout_seconds=1)

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _fetcher(self, routes):
        self.session = FakeSession(routes)
        return ArtifactFetcher(self.policy, session=self.session, sleep=self.sleeps.append)

    def test_fetch_release_all_files(self):
        result = self._fetcher(release_routes(b'tarball')).fetch_release(self.release, self.test_dir)
        self.assertEqual(result.artifact_path.read_bytes(), b'tarball')
        self.assertTrue(result.manifest_path.exists())
        self.assertTrue(result.signature_available)
        self.assertEqual(self.sleeps, [])

    def test_transient_status_retried(self):
        fetcher = self._fetcher({ARTIFACT_URL: [503, 503, b'tarball']})
        dest = fetcher.download(ARTIFACT_URL, self.test_dir / ARTIFACT_NAME)
        self.assertEqual(dest.read_bytes(), b'tarball')
        self.assertEqual(self.session.count(ARTIFACT_URL), 3)
        self.assertEqual(self.sleeps, [5, 5])

    def test_connection_error_retried(self):
        fetcher = self._fetcher({ARTIFACT_URL: [requests.ConnectionError("reset"), b'tarball']})
        fetcher.download(ARTIFACT_URL, self.test_dir / ARTIFACT_NAME)
        self.assertEqual(self.session.count(ARTIFACT_URL), 2)

    def test_retry_budget_exhausted_fatal(self):
        fetcher = self._fetcher({ARTIFACT_URL: requests.Timeout("timed out")})
        with self.assertRaises(FetchError) as ctx:
            fetcher.download(ARTIFACT_URL, self.test_dir / ARTIFACT_NAME)
        self.assertIn('after 3 attempts', str(ctx.exception))
        self.assertEqual(self.session.count(ARTIFACT_URL), 3)
        self.assertEqual(len(self.sleeps), 2)
        self.assertEqual(list(self.test_dir.iterdir()), [])

    def test_not_found_not_retried(self):
        fetcher = self._fetcher({ARTIFACT_URL: 404})
        with self.assertRaises(FetchError):
            fetcher.download(ARTIFACT_URL, self.test_dir / ARTIFACT_NAME)
        self.assertEqual(self.session.count(ARTIFACT_URL), 1)
        self.assertEqual(self.sleeps, [])

    def test_request_error_reported_as_download_failure(self):
        fetcher = self._fetcher({ARTIFACT_URL: requests.TooManyRedirects("Exceeded 30 redirects.")})
        with self.assertRaises(FetchError) as ctx:
            fetcher.download(ARTIFACT_URL, self.test_dir / ARTIFACT_NAME)
        self.assertIn(f"Failed to download {ARTIFACT_URL}: TooManyRedirects", str(ctx.exception))
        self.assertNotIn('Failed to write', str(ctx.exception))
        self.assertEqual(self.session.count(ARTIFACT_URL), 1)
        self.assertEqual(self.sleeps, [])
        self.assertEqual(list(self.test_dir.iterdir()), [])

    def test_manifest_failure_fatal(self):
        routes = release_routes(b'tarball')
        routes[MANIFEST_URL] = 500
        with self.assertRaises(FetchError):
            self._fetcher(routes).fetch_release(self.release, self.test_dir)

    def test_signature_failure_non_fatal(self):
        routes = release_routes(b'tarball')
        routes[SIGNATURE_URL] = 404
        result = self._fetcher(routes).fetch_release(self.release, self.test_dir)
        self.assertFalse(result.signature_available)
        self.assertTrue(result.artifact_path.exists())

    def test_no_signature_configured(self):
        release = make_release_config(signature=None).release
        result = self._fetcher(release_routes(b'tarball')).fetch_release(release, self.test_dir)
        self.assertFalse(result.signature_available)
        self.assertEqual(self.session.count(SIGNATURE_URL), 0)


if __name__ == '__main__':
    unittest.main()
