# Path and File Name : /home/bitblock/rebuild/bitblock_installer/provisioning/security_auditor.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Read-only security policy audit of the data directory, config file, RPC scope and content-policy flag

"""
Security Auditor

Checks (read-only):
1. Data directory mode is 0700            -> WARNING if violated
2. Config file mode is 0600               -> WARNING if violated
3. Credential file mode is 0600           -> WARNING if violated
4. rpcbind/rpcallowip loopback only       -> WARNING if violated
5. datacarriersize=0 effective            -> CRITICAL if violated

Only top-level entries (before any [section] header) are considered, and
for single-valued options the first value is the effective one.

Only CRITICAL violations fail the audit. Permission problems may be
environment specific and are advisory.
"""

import stat
import logging
from enum import Enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple

from .config_provisioner import RuntimeConfig, POLICY_FLAG

logger = logging.getLogger(__name__)


class ViolationSeverity(Enum):
    """Violation severity levels."""
    CRITICAL = "critical"  # Refuse to run
    WARNING = "warning"    # Advisory
    INFO = "info"          # Informational


@dataclass
class Violation:
    """A single policy deviation."""
    check: str
    severity: ViolationSeverity
    message: str
    details: Dict = field(default_factory=dict)


@dataclass
class AuditResult:
    """Audit result with violations."""
    passed: bool
    violations: List[Violation] = field(default_factory=list)

    @property
    def critical(self) -> List[Violation]:
        return [v for v in self.violations if v.severity is ViolationSeverity.CRITICAL]

    @property
    def warnings(self) -> List[Violation]:
        return [v for v in self.violations if v.severity is ViolationSeverity.WARNING]


@dataclass(frozen=True)
class SecurityPolicy:
    """Fixed security policy the provisioned installation must meet."""
    data_dir_mode: int = 0o700
    config_file_mode: int = 0o600
    credential_file_mode: int = 0o600
    loopback_addresses: FrozenSet[str] = frozenset({'127.0.0.1', '::1', '[::1]', 'localhost'})
    policy_flag: Tuple[str, str] = POLICY_FLAG


class SecurityAuditor:
    """Evaluates a SecurityPolicy against the filesystem and config."""

    def __init__(self, policy: Optional[SecurityPolicy] = None):
        self.policy = policy or SecurityPolicy()

    def audit(self, data_dir: Path, config_file: Path,
              credential_file: Optional[Path] = None) -> AuditResult:
        logger.info("Verifying security configuration...")
        violations: List[Violation] = []
        data_dir = Path(data_dir)
        config_file = Path(config_file)

        self._check_mode(violations, 'data_dir_mode', data_dir, self.policy.data_dir_mode,
                         "Data directory permissions not secure")

        if not config_file.exists():
            violations.append(Violation(
                check='policy_flag',
                severity=ViolationSeverity.CRITICAL,
                message=f"Configuration file missing: {config_file}",
                details={'path': str(config_file)},
            ))
            return self._finish(violations)

        self._check_mode(violations, 'config_file_mode', config_file, self.policy.config_file_mode,
                         "Config file permissions not secure")

        if credential_file is not None and Path(credential_file).exists():
            self._check_mode(violations, 'credential_file_mode', Path(credential_file),
                             self.policy.credential_file_mode, "Credential file permissions not secure")

        try:
            config = RuntimeConfig.from_file(config_file)
        except OSError as e:
            violations.append(Violation(
                check='policy_flag',
                severity=ViolationSeverity.CRITICAL,
                message=f"Configuration file unreadable: {e}",
                details={'path': str(config_file)},
            ))
            return self._finish(violations)

        self._check_rpc_scope(violations, config)
        self._check_policy_flag(violations, config)
        return self._finish(violations)

    def _check_mode(self, violations: List[Violation], check: str, path: Path,
                    expected: int, message: str) -> None:
        try:
            actual = stat.S_IMODE(path.stat().st_mode)
        except OSError as e:
            violations.append(Violation(
                check=check,
                severity=ViolationSeverity.WARNING,
                message=f"{message}: cannot stat {path}: {e}",
                details={'path': str(path)},
            ))
            return

        if actual != expected:
            violations.append(Violation(
                check=check,
                severity=ViolationSeverity.WARNING,
                message=f"{message}: {path} has {oct(actual)[2:]} (expected {oct(expected)[2:]})",
                details={'path': str(path), 'actual': actual, 'expected': expected},
            ))

    def _check_rpc_scope(self, violations: List[Violation], config: RuntimeConfig) -> None:
        binds = config.get_all('rpcbind')
        allows = config.get_all('rpcallowip')
        loopback = self.policy.loopback_addresses

        def _host(value: str) -> str:
            # rpcbind may carry a port: 127.0.0.1:8332, [::1]:8332
            if value.startswith('['):
                return value.split(']', 1)[0] + ']'
            if value.count(':') == 1:
                return value.split(':', 1)[0]
            return value

        non_loopback = [v for v in binds if _host(v) not in loopback]
        non_loopback += [v for v in allows if v.split('/', 1)[0] not in loopback]

        if binds and allows and not non_loopback:
            logger.info("✓ RPC properly restricted to localhost")
            return

        violations.append(Violation(
            check='rpc_scope',
            severity=ViolationSeverity.WARNING,
            message="RPC binding may not be secure",
            details={'rpcbind': binds, 'rpcallowip': allows, 'non_loopback': non_loopback},
        ))

    def _check_policy_flag(self, violations: List[Violation], config: RuntimeConfig) -> None:
        key, value = self.policy.policy_flag
        effective = config.as_dict().get(key)
        if effective == value:
            logger.info("✓ %s=%s policy is active", key, value)
            return

        if effective is None:
            message = f"{key}={value} policy missing from configuration"
        else:
            message = f"{key}={effective} overrides the required {key}={value} policy (first value wins)"

        violations.append(Violation(
            check='policy_flag',
            severity=ViolationSeverity.CRITICAL,
            message=message,
            details={'key': key, 'expected': value, 'effective': effective, 'actual': config.get_all(key)},
        ))

    @staticmethod
    def _finish(violations: List[Violation]) -> AuditResult:
        for violation in violations:
            if violation.severity is ViolationSeverity.CRITICAL:
                logger.error("ERROR: %s", violation.message)
            else:
                logger.warning("WARNING: %s", violation.message)

        passed = not any(v.severity is ViolationSeverity.CRITICAL for v in violations)
        if passed:
            logger.info("✓ Security verification completed")
        return AuditResult(passed=passed, violations=violations)
