# Path and File Name : /home/bitblock/rebuild/bitblock_installer/crypto/__init__.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Crypto package initialization - checksum, signature and secret primitives

"""
Crypto Package: Integrity, authenticity and secret generation for the installer.
"""

from .checksum_verifier import ChecksumVerifier, sha256_of_file, parse_checksum_manifest
from .signature_verifier import SignatureVerifier, SignatureStatus, SignatureResult
from .secret_generator import Credential, generate_credential, generate_secret

__all__ = [
    'ChecksumVerifier',
    'sha256_of_file',
    'parse_checksum_manifest',
    'SignatureVerifier',
    'SignatureStatus',
    'SignatureResult',
    'Credential',
    'generate_credential',
    'generate_secret',
]
