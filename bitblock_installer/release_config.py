# Path and File Name : /home/bitblock/rebuild/bitblock_installer/release_config.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Loads and schema-validates release.yaml, applies environment overrides and resolves on-disk layout

"""
Release Configuration: Loads the pinned release descriptor from release.yaml.

Load Order (MANDATORY):
1. Read YAML (safe_load only)
2. Validate against release_schema.json
3. Cross-check daemon/client are members of the binary set
4. ONLY THEN: build immutable ReleaseDescriptor

Environment overrides:
- BITBLOCK_RELEASE_CONFIG: alternate release.yaml
- BITCOIN_DATADIR: data directory (default <root>/.bitcoin-regtest)
- BITCOIN_RPC_USER: RPC credential user (default from release.yaml)
"""

import os
import re
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml
import jsonschema

from .errors import ReleaseConfigError

CONFIG_DIR = Path(__file__).parent / "config"
DEFAULT_RELEASE_CONFIG_PATH = CONFIG_DIR / "release.yaml"
RELEASE_SCHEMA_PATH = CONFIG_DIR / "release_schema.json"

ENV_RELEASE_CONFIG = 'BITBLOCK_RELEASE_CONFIG'
ENV_DATADIR = 'BITCOIN_DATADIR'
ENV_RPC_USER = 'BITCOIN_RPC_USER'

RPC_USER_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+$')


@dataclass(frozen=True)
class ReleaseDescriptor:
    """Immutable description of the one release this installer manages."""
    name: str
    version: str
    artifact_url: str
    checksum_manifest_url: str
    signature_url: Optional[str]
    expected_sha256: str

    @property
    def artifact_name(self) -> str:
        return self.artifact_url.rsplit('/', 1)[-1]

    @property
    def checksum_manifest_name(self) -> str:
        return self.checksum_manifest_url.rsplit('/', 1)[-1]

    @property
    def signature_name(self) -> Optional[str]:
        if not self.signature_url:
            return None
        return self.signature_url.rsplit('/', 1)[-1]


@dataclass(frozen=True)
class FetchPolicy:
    attempts: int = 3
    retry_delay_seconds: float = 5.0
    timeout_seconds: float = 60.0


@dataclass(frozen=True)
class SigningPolicy:
    keyserver: str
    key_ids: Tuple[str, ...]


@dataclass(frozen=True)
class ReleaseConfig:
    """Validated contents of release.yaml."""
    release: ReleaseDescriptor
    binaries: Tuple[str, ...]
    daemon: str
    client: str
    signing: SigningPolicy
    fetch: FetchPolicy
    layout: Dict[str, str]
    default_rpc_user: str


@dataclass(frozen=True)
class InstallerSettings:
    """Concrete filesystem layout for one installation root."""
    root_dir: Path
    install_dir: Path
    bin_dir: Path
    data_dir: Path
    config_file: Path
    credential_file: Path
    download_marker: Path
    verification_marker: Path
    rpc_user: str

    @classmethod
    def resolve(cls, config: ReleaseConfig, root_dir: Path,
                environ: Optional[Mapping[str, str]] = None) -> 'InstallerSettings':
        """
        Resolve every path relative to the installation root.

        Raises:
            ReleaseConfigError: If an environment override is unusable
        """
        environ = os.environ if environ is None else environ
        root_dir = Path(root_dir).resolve()
        layout = config.layout

        datadir_override = environ.get(ENV_DATADIR, '').strip()
        if datadir_override:
            data_dir = Path(datadir_override).expanduser()
            if not data_dir.is_absolute():
                data_dir = root_dir / data_dir
        else:
            data_dir = root_dir / layout['data_dir']

        rpc_user = environ.get(ENV_RPC_USER, '').strip() or config.default_rpc_user
        if not RPC_USER_PATTERN.match(rpc_user):
            raise ReleaseConfigError(
                f"{ENV_RPC_USER}='{rpc_user}' is invalid "
                "(allowed: letters, digits, '.', '_', '-')"
            )

        install_dir = root_dir / layout['install_dir']
        return cls(
            root_dir=root_dir,
            install_dir=install_dir,
            bin_dir=install_dir / layout['binary_subdir'],
            data_dir=data_dir,
            config_file=data_dir / layout['config_name'],
            credential_file=data_dir / layout['credential_file'],
            download_marker=root_dir / layout['download_marker'],
            verification_marker=root_dir / layout['verification_marker'],
            rpc_user=rpc_user,
        )

    def binary_path(self, name: str) -> Path:
        return self.bin_dir / name


def load_schema() -> Dict:
    """Load the release configuration JSON schema."""
    try:
        with open(RELEASE_SCHEMA_PATH, 'r') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ReleaseConfigError(f"Failed to load schema {RELEASE_SCHEMA_PATH}: {e}") from e


def _join_url(base_url: str, name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    return f"{base_url.rstrip('/')}/{name}"


def parse_release_config(data: Dict) -> ReleaseConfig:
    """
    Validate raw release data and build a ReleaseConfig.

    Raises:
        ReleaseConfigError: If validation fails
    """
    try:
        jsonschema.validate(instance=data, schema=load_schema())
    except jsonschema.ValidationError as e:
        location = '.'.join(str(p) for p in e.absolute_path) or '<root>'
        raise ReleaseConfigError(f"Invalid release configuration at {location}: {e.message}") from e

    binaries = tuple(data['binaries'])
    for role in ('daemon', 'client'):
        if data[role] not in binaries:
            raise ReleaseConfigError(f"{role} '{data[role]}' is not listed in binaries {list(binaries)}")

    rel = data['release']
    base_url = rel['base_url']
    release = ReleaseDescriptor(
        name=rel['name'],
        version=rel['version'],
        artifact_url=_join_url(base_url, rel['artifact']),
        checksum_manifest_url=_join_url(base_url, rel['checksum_manifest']),
        signature_url=_join_url(base_url, rel.get('signature')),
        expected_sha256=rel['expected_sha256'].lower(),
    )

    fetch = data['fetch']
    return ReleaseConfig(
        release=release,
        binaries=binaries,
        daemon=data['daemon'],
        client=data['client'],
        signing=SigningPolicy(
            keyserver=data['signing']['keyserver'],
            key_ids=tuple(data['signing']['key_ids']),
        ),
        fetch=FetchPolicy(
            attempts=int(fetch['attempts']),
            retry_delay_seconds=float(fetch['retry_delay_seconds']),
            timeout_seconds=float(fetch['timeout_seconds']),
        ),
        layout=dict(data['layout']),
        default_rpc_user=data['rpc']['default_user'],
    )


def load_release_config(path: Optional[Path] = None,
                        environ: Optional[Mapping[str, str]] = None) -> ReleaseConfig:
    """
    Load release.yaml (explicit path, then BITBLOCK_RELEASE_CONFIG, then packaged default).

    Raises:
        ReleaseConfigError: If the file is missing, unreadable or invalid
    """
    environ = os.environ if environ is None else environ
    if path is None:
        override = environ.get(ENV_RELEASE_CONFIG, '').strip()
        path = Path(override) if override else DEFAULT_RELEASE_CONFIG_PATH
    path = Path(path)

    if not path.exists():
        raise ReleaseConfigError(f"Release configuration not found: {path}")

    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ReleaseConfigError(f"Release configuration is corrupted: {path}: {e}") from e
    except OSError as e:
        raise ReleaseConfigError(f"Failed to read release configuration {path}: {e}") from e

    if not isinstance(data, dict):
        raise ReleaseConfigError(f"Release configuration must be a mapping: {path}")

    return parse_release_config(data)
