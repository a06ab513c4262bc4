# Path and File Name : /home/bitblock/rebuild/bitblock_installer/tests/test_crypto.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Tests for checksum verification, advisory signature verification and RPC secret generation

"""
Crypto Test Suite

CRITICAL TESTS:
1. Artifact digest mismatch is FATAL (IntegrityError)
2. Manifest without the artifact entry is FATAL
3. Manifest diverging from the pinned digest is FATAL
4. Every signature failure is a degraded status, never an exception
5. RPC secrets are >= 32 chars and never contain '=', '+' or '/'
"""

import unittest
import tempfile
import shutil
from pathlib import Path
from unittest.mock import MagicMock, patch
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from bitblock_installer.crypto.checksum_verifier import (
    ChecksumVerifier,
    digests_match,
    parse_checksum_manifest,
    sha256_of_file,
)
from bitblock_installer.crypto.secret_generator import (
    SECRET_LENGTH,
    generate_credential,
    generate_secret,
)
from bitblock_installer.crypto.signature_verifier import SignatureStatus, SignatureVerifier
from bitblock_installer.errors import IntegrityError, SecretGenerationError
from bitblock_installer.tests.support import manifest_for, sha256_hex, write_bytes


class TestChecksumVerifier(unittest.TestCase):
    """Test pinned-digest verification."""

    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp(prefix="checksum_test_"))
        self.payload = b"release payload\n" * 1000
        self.digest = sha256_hex(self.payload)
        self.artifact = write_bytes(self.test_dir / 'bitcoin.tar.gz', self.payload)
        self.manifest = write_bytes(
            self.test_dir / 'SHA256SUMS',
            manifest_for({'other.zip': 'f' * 64, 'bitcoin.tar.gz': self.digest}),
        )

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_sha256_streamed(self):
        self.assertEqual(sha256_of_file(self.artifact), self.digest)

    def test_digest_comparison_case_insensitive(self):
        self.assertTrue(digests_match(self.digest.upper(), self.digest))
        self.assertFalse(digests_match(self.digest[:-1] + '0', self.digest[:-1] + '1'))

    def test_verify_passes(self):
        verifier = ChecksumVerifier(self.digest.upper())
        self.assertEqual(verifier.verify(self.artifact, self.manifest), self.digest)

    def test_artifact_mismatch_fatal(self):
        verifier = ChecksumVerifier('a' * 64)
        with self.assertRaises(IntegrityError) as ctx:
            verifier.verify(self.artifact, self.manifest)
        self.assertIn('SHA256 checksum mismatch', str(ctx.exception))
        self.assertIn(self.digest, str(ctx.exception))

    def test_missing_artifact_fatal(self):
        with self.assertRaises(IntegrityError):
            ChecksumVerifier(self.digest).verify_artifact(self.test_dir / 'absent.tar.gz')

    def test_manifest_without_entry_fatal(self):
        write_bytes(self.manifest, manifest_for({'other.zip': 'f' * 64}))
        with self.assertRaises(IntegrityError) as ctx:
            ChecksumVerifier(self.digest).verify(self.artifact, self.manifest)
        self.assertIn('not found in official manifest', str(ctx.exception))

    def test_manifest_divergent_entry_fatal(self):
        write_bytes(self.manifest, manifest_for({'bitcoin.tar.gz': 'e' * 64}))
        with self.assertRaises(IntegrityError):
            ChecksumVerifier(self.digest).verify(self.artifact, self.manifest)

    def test_manifest_parsing(self):
        write_bytes(self.manifest, (
            "# comment line\n"
            f"{'A' * 64}  text-mode.tar.gz\n"
            f"{'b' * 64} *binary-mode.zip\n"
            "garbage line\n"
        ).encode())
        entries = parse_checksum_manifest(self.manifest)
        self.assertEqual(entries, {'text-mode.tar.gz': 'a' * 64, 'binary-mode.zip': 'b' * 64})

    def test_manifest_conflicting_duplicates_fatal(self):
        write_bytes(self.manifest, manifest_for({'x': 'a' * 64}) + manifest_for({'x': 'b' * 64}))
        with self.assertRaises(IntegrityError):
            parse_checksum_manifest(self.manifest)


class TestSignatureVerifier(unittest.TestCase):
    """Test advisory signature verification (gpg mocked)."""

    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp(prefix="signature_test_"))
        self.manifest = write_bytes(self.test_dir / 'SHA256SUMS', b"deadbeef  x\n")
        self.signature = write_bytes(self.test_dir / 'SHA256SUMS.asc', b"-----BEGIN PGP SIGNATURE-----\n")
        self.gpg = MagicMock()
        self.gpg.recv_keys.return_value = MagicMock(count=2)
        self.gpg.verify_file.return_value = MagicMock(valid=True, fingerprint='ABCDEF', status='signature valid')

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _verifier(self, factory=None):
        return SignatureVerifier(
            'hkps://keys.example.org',
            ['0x57A1BC5C4CA6D34D', '0x1A4FE32615E9D5C6'],
            gpg_factory=factory or (lambda **kwargs: self.gpg),
        )

    def test_valid_signature(self):
        result = self._verifier().verify(self.manifest, self.signature)
        self.assertEqual(result.status, SignatureStatus.VERIFIED)
        self.assertTrue(result.trusted)
        self.assertEqual(result.fingerprint, 'ABCDEF')
        self.gpg.recv_keys.assert_called_once_with(
            'hkps://keys.example.org', '0x57A1BC5C4CA6D34D', '0x1A4FE32615E9D5C6',
        )

    def test_isolated_home_removed(self):
        homes = []

        def factory(gnupghome):
            homes.append(Path(gnupghome))
            self.assertTrue(Path(gnupghome).is_dir())
            return self.gpg

        self._verifier(factory).verify(self.manifest, self.signature)
        self.assertEqual(len(homes), 1)
        self.assertFalse(homes[0].exists())

    def test_no_signature(self):
        result = self._verifier().verify(self.manifest, None)
        self.assertEqual(result.status, SignatureStatus.NO_SIGNATURE)
        self.assertFalse(result.trusted)

    def test_tool_unavailable(self):
        def factory(**kwargs):
            raise OSError("Unable to run gpg - it may not be available.")

        result = self._verifier(factory).verify(self.manifest, self.signature)
        self.assertEqual(result.status, SignatureStatus.TOOL_UNAVAILABLE)

    def test_keys_unavailable(self):
        self.gpg.recv_keys.return_value = MagicMock(count=0)
        result = self._verifier().verify(self.manifest, self.signature)
        self.assertEqual(result.status, SignatureStatus.KEYS_UNAVAILABLE)
        self.gpg.verify_file.assert_not_called()

    def test_invalid_signature(self):
        self.gpg.verify_file.return_value = MagicMock(valid=False, fingerprint=None, status='signature bad')
        result = self._verifier().verify(self.manifest, self.signature)
        self.assertEqual(result.status, SignatureStatus.INVALID)
        self.assertIn('signature bad', result.message)


class TestSecretGenerator(unittest.TestCase):
    """Test RPC secret generation."""

    def test_secret_length_and_alphabet(self):
        for _ in range(50):
            secret = generate_secret()
            self.assertGreaterEqual(len(secret), SECRET_LENGTH)
            for forbidden in '=+/':
                self.assertNotIn(forbidden, secret)
            self.assertTrue(secret.isalnum())

    def test_secrets_differ(self):
        self.assertNotEqual(generate_secret(), generate_secret())

    def test_short_length_rejected(self):
        with self.assertRaises(ValueError):
            generate_secret(16)

    def test_no_entropy_is_fatal(self):
        with patch('bitblock_installer.crypto.secret_generator.secrets.choice',
                   side_effect=NotImplementedError("no urandom")):
            with self.assertRaises(SecretGenerationError):
                generate_secret()

    def test_credential_repr_redacted(self):
        credential = generate_credential('bitblock')
        self.assertEqual(credential.user, 'bitblock')
        self.assertNotIn(credential.secret, repr(credential))


if __name__ == '__main__':
    unittest.main()
