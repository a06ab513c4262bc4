# Path and File Name : /home/bitblock/rebuild/bitblock_installer/tests/support.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Shared test fixtures - fake release tarballs, release configs and an in-memory HTTP session

"""
Test fixtures shared by the installer test suites.

- build_release_tarball: tarball laid out like an upstream release
  (bitcoin-<version>/bin/<binary>) with shell-script stand-ins
- release_data / make_release_config: schema-valid release configuration
- FakeSession: requests.Session stand-in serving bytes or status codes per URL
"""

import io
import copy
import hashlib
import tarfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import requests

from bitblock_installer.release_config import parse_release_config, ReleaseConfig

BINARIES = ['bitcoind', 'bitcoin-cli', 'bitcoin-tx', 'bitcoin-wallet']
ARTIFACT_NAME = 'bitcoin-29.1.knots20250903-x86_64-linux-gnu.tar.gz'
BASE_URL = 'https://bitcoinknots.example/files/29.x/29.1.knots20250903'
TOP_DIR = 'bitcoin-29.1.knots20250903'

# Behaves like the daemon for -version, -h and an unknown option.
FAKE_BINARY = b"""#!/bin/sh
case "$1" in
  -fakearg)
    echo "Error: Error parsing command line arguments: Invalid parameter -fakearg" >&2
    exit 1
    ;;
  -h)
    echo "Bitcoin Knots daemon version v29.1.knots20250903"
    echo "Usage:  bitcoind [options]"
    exit 0
    ;;
esac
echo "Bitcoin Knots version v29.1.knots20250903"
exit 0
"""

FAILING_BINARY = b"#!/bin/sh\necho 'cannot start' >&2\nexit 3\n"


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def build_release_tarball(binaries: Iterable[str] = BINARIES,
                          contents: Optional[Dict[str, bytes]] = None,
                          mode: int = 0o755,
                          extra_members: Optional[List[tarfile.TarInfo]] = None) -> bytes:
    """Return gzip tarball bytes shaped like an upstream release."""
    contents = contents or {}
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode='w:gz') as tf:
        for dirname in (TOP_DIR, f"{TOP_DIR}/bin", f"{TOP_DIR}/share"):
            info = tarfile.TarInfo(dirname)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tf.addfile(info)

        readme = b"Bitcoin Knots\n"
        info = tarfile.TarInfo(f"{TOP_DIR}/share/README.md")
        info.size = len(readme)
        info.mode = 0o644
        tf.addfile(info, io.BytesIO(readme))

        for name in binaries:
            data = contents.get(name, FAKE_BINARY)
            info = tarfile.TarInfo(f"{TOP_DIR}/bin/{name}")
            info.size = len(data)
            info.mode = mode
            tf.addfile(info, io.BytesIO(data))

        for member in extra_members or []:
            tf.addfile(member, io.BytesIO(b'x' * member.size) if member.isfile() else None)
    return buf.getvalue()


def manifest_for(entries: Dict[str, str]) -> bytes:
    return ''.join(f"{digest}  {name}\n" for name, digest in entries.items()).encode()


BASE_RELEASE_DATA = {
    'release': {
        'name': 'bit-block',
        'version': '29.1.knots20250903',
        'base_url': BASE_URL,
        'artifact': ARTIFACT_NAME,
        'checksum_manifest': 'SHA256SUMS',
        'signature': 'SHA256SUMS.asc',
        'expected_sha256': '0' * 64,
    },
    'binaries': list(BINARIES),
    'daemon': 'bitcoind',
    'client': 'bitcoin-cli',
    'signing': {
        'keyserver': 'hkps://keys.example.org',
        'key_ids': ['0x57A1BC5C4CA6D34D', '0x1A4FE32615E9D5C6'],
    },
    'fetch': {
        'attempts': 3,
        'retry_delay_seconds': 0,
        'timeout_seconds': 5,
    },
    'layout': {
        'install_dir': 'bin/bit-block',
        'binary_subdir': 'bin',
        'data_dir': '.bitcoin-regtest',
        'config_name': 'bitcoin.conf',
        'credential_file': '.rpc_credentials',
        'download_marker': '.bit-block_downloaded',
        'verification_marker': '.bit-block_verified',
    },
    'rpc': {'default_user': 'bitblock'},
}


def release_data(expected_sha256: str = '0' * 64, **release_overrides) -> Dict:
    data = copy.deepcopy(BASE_RELEASE_DATA)
    data['release']['expected_sha256'] = expected_sha256
    data['release'].update(release_overrides)
    return data


def make_release_config(expected_sha256: str = '0' * 64, **release_overrides) -> ReleaseConfig:
    return parse_release_config(release_data(expected_sha256, **release_overrides))


class FakeResponse:
    """Minimal streaming response."""

    def __init__(self, status_code: int = 200, body: bytes = b''):
        self.status_code = status_code
        self.body = body
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size: int = 1024):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]

    def close(self) -> None:
        self.closed = True


Route = Union[bytes, int, Exception, List[Union[bytes, int, Exception]]]


class FakeSession:
    """
    Serves URL -> route. A route is body bytes, an HTTP status code, an
    exception to raise, or a list consumed one entry per request (the last
    entry repeats).
    """

    def __init__(self, routes: Dict[str, Route]):
        self.routes = dict(routes)
        self.requests: List[str] = []

    def get(self, url, stream=False, timeout=None):
        self.requests.append(url)
        route = self.routes.get(url, 404)
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, Exception):
            raise route
        if isinstance(route, int):
            return FakeResponse(status_code=route)
        return FakeResponse(body=route)

    def count(self, url: str) -> int:
        return self.requests.count(url)


def release_routes(tarball: bytes, manifest: Optional[bytes] = None,
                   signature: Route = b'-----BEGIN PGP SIGNATURE-----\n') -> Dict[str, Route]:
    if manifest is None:
        manifest = manifest_for({ARTIFACT_NAME: sha256_hex(tarball)})
    return {
        f"{BASE_URL}/{ARTIFACT_NAME}": tarball,
        f"{BASE_URL}/SHA256SUMS": manifest,
        f"{BASE_URL}/SHA256SUMS.asc": signature,
    }


def write_bytes(path: Path, data: bytes, mode: Optional[int] = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    if mode is not None:
        path.chmod(mode)
    return path
