# Path and File Name : /home/bitblock/rebuild/bitblock_installer/provisioning/config_provisioner.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Idempotently creates or upgrades the hardened bitcoin.conf, the owner-only data directory and the RPC credential file

"""
Config Provisioner: Generates (or upgrades in place) the hardened runtime configuration.

First run:
- Create data directory (0700)
- Generate RPC credential (CSPRNG, 32 chars)
- Write complete bitcoin.conf (0600) with every hardening key
- Persist credential in .rpc_credentials (0600)

Subsequent runs:
- NEVER regenerate the secret, NEVER overwrite operator content
- Add only the hardening entries missing from the top-level section,
  placed before the first [section] header
- A conflicting datacarriersize value is left untouched (first value wins;
  the auditor refuses it)
- Idempotent: a second upgrade adds nothing

FAIL-CLOSED: any directory/file operation failure raises ProvisioningEnvironmentError.
"""

import os
import stat
import logging
from datetime import datetime
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..crypto.secret_generator import Credential, generate_credential
from ..errors import ProvisioningEnvironmentError

logger = logging.getLogger(__name__)

DATA_DIR_MODE = 0o700
PRIVATE_FILE_MODE = 0o600

# Matched by key: an operator-chosen value is preserved and left to the auditor.
HARDENING_KEYS: Tuple[Tuple[str, str], ...] = (
    ('listen', '0'),
    ('dnsseed', '0'),
    ('upnp', '0'),
    ('natpmp', '0'),
    ('rpcbind', '127.0.0.1'),
    ('rpcallowip', '127.0.0.1'),
    ('bind', '127.0.0.1'),
    ('whitelist', '127.0.0.1'),
)

# Matched by exact line: the daemon must never run without it.
POLICY_FLAG: Tuple[str, str] = ('datacarriersize', '0')

UPGRADE_HEADER = '# Security hardening (added by secure startup)'

CONFIG_TEMPLATE = """\
# Bit-block Security-Hardened Configuration
# Generated on {generated}

# Network settings
regtest=1
server=1
listen=0
dnsseed=0
upnp=0
natpmp=0

# RPC Security
rpcuser={rpc_user}
rpcpassword={rpc_password}
rpcbind=127.0.0.1
rpcallowip=127.0.0.1
rpcserialversion=1

# Network restrictions
bind=127.0.0.1
whitelist=127.0.0.1

# Performance and limits
maxconnections=8
maxuploadtarget=100

# Logging
printtoconsole=1
shrinkdebugfile=1

# Fees
fallbackfee=0.001

# Transaction policy
datacarriersize=0

# Security
disablewallet=0
"""


def _section_name(line: str) -> Optional[str]:
    if line.startswith('[') and line.endswith(']'):
        return line[1:-1].strip()
    return None


def parse_config_entries(text: str, section: Optional[str] = None) -> List[Tuple[str, str]]:
    """
    Parse the key=value lines of one section, skipping blanks and comments.

    section=None selects the top-level entries before the first [section]
    header; entries under a header only apply to that network.
    """
    entries = []
    current = None
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith('#'):
            continue
        header = _section_name(line)
        if header is not None:
            current = header
            continue
        if current != section or '=' not in line:
            continue
        key, value = line.split('=', 1)
        entries.append((key.strip(), value.strip()))
    return entries


def first_section_line(text: str) -> Optional[int]:
    """Index of the first [section] header line, or None."""
    for index, raw in enumerate(text.splitlines()):
        if _section_name(raw.strip()) is not None:
            return index
    return None


class RuntimeConfig:
    """Read-only ordered key/value view of the top-level section of bitcoin.conf."""

    def __init__(self, entries: Iterable[Tuple[str, str]]):
        self.entries = list(entries)

    @classmethod
    def from_file(cls, path: Path) -> 'RuntimeConfig':
        return cls(parse_config_entries(Path(path).read_text(encoding='utf-8')))

    def get(self, key: str) -> Optional[str]:
        """Effective value of a single-valued option."""
        return self.as_dict().get(key)

    def get_all(self, key: str) -> List[str]:
        return [v for k, v in self.entries if k == key]

    def has_key(self, key: str) -> bool:
        return any(k == key for k, _ in self.entries)

    def as_dict(self) -> Dict[str, str]:
        """First value wins, matching how the daemon reads single-valued options."""
        result: Dict[str, str] = {}
        for k, v in self.entries:
            result.setdefault(k, v)
        return result


def policy_flag_conflict(config: RuntimeConfig) -> Optional[str]:
    """Effective policy value when it is set to anything but the required one."""
    policy_key, policy_value = POLICY_FLAG
    effective = config.get(policy_key)
    if effective is not None and effective != policy_value:
        return effective
    return None


def missing_hardening_lines(config: RuntimeConfig) -> List[str]:
    """
    Lines that an upgrade must add to restore the hardening posture.

    A conflicting policy value is never "fixed" by adding a line: the first
    value wins, so the auditor refuses it instead.
    """
    missing = [f"{key}={value}" for key, value in HARDENING_KEYS if not config.has_key(key)]
    policy_key, policy_value = POLICY_FLAG
    if not config.has_key(policy_key):
        missing.append(f"{policy_key}={policy_value}")
    return missing


@dataclass
class ProvisionResult:
    config_file: Path
    credential_file: Path
    created: bool
    appended: List[str] = field(default_factory=list)
    rpc_user: Optional[str] = None


class ConfigProvisioner:
    """Creates or upgrades the hardened daemon configuration."""

    def __init__(self, data_dir: Path, config_file: Path, credential_file: Path, rpc_user: str,
                 credential_factory: Callable[[str], Credential] = generate_credential,
                 clock: Callable[[], datetime] = datetime.now):
        self.data_dir = Path(data_dir)
        self.config_file = Path(config_file)
        self.credential_file = Path(credential_file)
        self.rpc_user = rpc_user
        self.credential_factory = credential_factory
        self.clock = clock

    def provision(self) -> ProvisionResult:
        """
        Raises:
            ProvisioningEnvironmentError: If the data dir or files cannot be written
            SecretGenerationError: If no strong random source is available
        """
        logger.info("Setting up secure configuration in %s...", self.data_dir)
        self.ensure_data_dir()

        if not self.config_file.exists():
            return self._create_config()

        logger.info("Using existing configuration at %s", self.config_file)
        self._tighten_mode(self.config_file)
        stored_user = self.load_credential_user()
        if stored_user:
            logger.info("RPC User: %s", stored_user)
            logger.info("RPC Password: [REDACTED]")

        appended = self.upgrade_config()
        return ProvisionResult(
            config_file=self.config_file,
            credential_file=self.credential_file,
            created=False,
            appended=appended,
            rpc_user=stored_user,
        )

    def ensure_data_dir(self) -> None:
        try:
            self.data_dir.mkdir(mode=DATA_DIR_MODE, parents=True, exist_ok=True)
            os.chmod(self.data_dir, DATA_DIR_MODE)
        except OSError as e:
            raise ProvisioningEnvironmentError(f"Failed to prepare data directory {self.data_dir}: {e}") from e

    def _create_config(self) -> ProvisionResult:
        credential = self.credential_factory(self.rpc_user)
        logger.info("Creating secure %s configuration...", self.config_file.name)

        content = CONFIG_TEMPLATE.format(
            generated=self.clock().strftime('%a %b %d %H:%M:%S %Y'),
            rpc_user=credential.user,
            rpc_password=credential.secret,
        )
        _write_private(self.config_file, content, exclusive=True)
        _write_private(
            self.credential_file,
            f"RPC_USER={credential.user}\nRPC_PASSWORD={credential.secret}\n",
        )

        logger.info("✓ Secure configuration created")
        logger.info("RPC User: %s", credential.user)
        logger.info("RPC Password: [REDACTED - check %s for password]", self.config_file)

        return ProvisionResult(
            config_file=self.config_file,
            credential_file=self.credential_file,
            created=True,
            rpc_user=credential.user,
        )

    def upgrade_config(self) -> List[str]:
        """
        Add missing hardening entries to the top-level section, preserving all
        existing content. Entries go before the first [section] header, since
        lines under a header never reach the top-level section.

        Returns:
            The lines added (empty when already compliant)
        """
        try:
            existing = self.config_file.read_text(encoding='utf-8')
        except OSError as e:
            raise ProvisioningEnvironmentError(f"Failed to read {self.config_file}: {e}") from e

        config = RuntimeConfig(parse_config_entries(existing))
        conflict = policy_flag_conflict(config)
        if conflict is not None:
            policy_key, policy_value = POLICY_FLAG
            logger.error("ERROR: %s=%s in %s overrides the required %s=%s; refusing to edit operator setting",
                         policy_key, conflict, self.config_file, policy_key, policy_value)

        missing = missing_hardening_lines(config)
        if not missing:
            return []

        for line in missing:
            logger.info("Adding %s to existing configuration...", line)

        block = UPGRADE_HEADER + '\n' + '\n'.join(missing) + '\n'
        header_at = first_section_line(existing)

        if header_at is None:
            prefix = '' if existing.endswith('\n') or not existing else '\n'
            try:
                with open(self.config_file, 'a', encoding='utf-8') as f:
                    f.write(prefix + '\n' + block)
            except OSError as e:
                raise ProvisioningEnvironmentError(f"Failed to upgrade {self.config_file}: {e}") from e
            return missing

        lines = existing.splitlines(keepends=True)
        head = ''.join(lines[:header_at])
        if head and not head.endswith('\n'):
            head += '\n'
        upgraded = head + block + '\n' + ''.join(lines[header_at:])

        tmp = self.config_file.with_name(self.config_file.name + '.tmp')
        _write_private(tmp, upgraded)
        try:
            os.replace(tmp, self.config_file)
        except OSError as e:
            raise ProvisioningEnvironmentError(f"Failed to upgrade {self.config_file}: {e}") from e

        return missing

    def load_credential_user(self) -> Optional[str]:
        """Read RPC_USER back from the credential file, if present."""
        if not self.credential_file.exists():
            return None
        self._tighten_mode(self.credential_file)
        try:
            content = self.credential_file.read_text(encoding='utf-8')
        except OSError as e:
            raise ProvisioningEnvironmentError(f"Failed to read {self.credential_file}: {e}") from e
        for line in content.splitlines():
            if line.startswith('RPC_USER='):
                return line.split('=', 1)[1].strip()
        return None

    @staticmethod
    def _tighten_mode(path: Path) -> None:
        try:
            mode = stat.S_IMODE(path.stat().st_mode)
            if mode & 0o077:
                os.chmod(path, PRIVATE_FILE_MODE)
                logger.info("Restricted permissions on %s (%s -> 600)", path, oct(mode)[2:])
        except OSError as e:
            raise ProvisioningEnvironmentError(f"Failed to set permissions on {path}: {e}") from e


def _write_private(path: Path, content: str, exclusive: bool = False) -> None:
    """Write content to a file created owner read/write only."""
    flags = os.O_WRONLY | os.O_CREAT | (os.O_EXCL if exclusive else os.O_TRUNC)
    try:
        fd = os.open(path, flags, PRIVATE_FILE_MODE)
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
        os.chmod(path, PRIVATE_FILE_MODE)
    except OSError as e:
        raise ProvisioningEnvironmentError(f"Failed to write {path}: {e}") from e
