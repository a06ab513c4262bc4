# Path and File Name : /home/bitblock/rebuild/bitblock_installer/installer.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Main pipeline orchestrator - fetch, verify, extract, health check, configure, audit and launch the Bit-block daemon

"""
Bit-block Security-Hardened Installer: Main orchestrator.

State machine:
INIT -> FETCHING -> VERIFYING_CHECKSUM -> VERIFYING_SIGNATURE -> EXTRACTING
     -> HEALTH_CHECKING -> CONFIGURING -> AUDITING -> LAUNCHING -> RUNNING
Any FATAL condition -> FAILED.

CACHE_HIT: INIT -> CONFIGURING when both markers exist and the installed
binaries re-validate against the verification marker; otherwise FETCHING.

Cleanup: only the temporary download directory is ever removed, on every
exit path (success, FATAL, SIGTERM, SIGINT). Installation and data
directories are never touched by cleanup.
"""

import sys
import signal
import shutil
import logging
import tempfile
import argparse
import threading
from contextlib import contextmanager
from enum import Enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional

from .crypto.checksum_verifier import ChecksumVerifier, sha256_of_file
from .crypto.signature_verifier import SignatureResult, SignatureVerifier
from .errors import PolicyViolationError, ProvisioningError, StructuralError
from .fetch.artifact_fetcher import ArtifactFetcher
from .logging_utils import setup_logging
from .provisioning.config_provisioner import ConfigProvisioner, ProvisionResult
from .provisioning.security_auditor import AuditResult, SecurityAuditor
from .release_config import InstallerSettings, ReleaseConfig, load_release_config
from .runtime.archive_extractor import ArchiveExtractor
from .runtime.health_check import HealthChecker
from .runtime.launcher import Launcher, LaunchMode
from .state_manager import CacheState, StateManager

logger = logging.getLogger(__name__)

DOWNLOAD_DIR_PREFIX = 'bitcoin-bit-block-download-'


class PipelineState(Enum):
    INIT = "INIT"
    FETCHING = "FETCHING"
    VERIFYING_CHECKSUM = "VERIFYING_CHECKSUM"
    VERIFYING_SIGNATURE = "VERIFYING_SIGNATURE"
    EXTRACTING = "EXTRACTING"
    HEALTH_CHECKING = "HEALTH_CHECKING"
    CONFIGURING = "CONFIGURING"
    AUDITING = "AUDITING"
    LAUNCHING = "LAUNCHING"
    RUNNING = "RUNNING"
    FAILED = "FAILED"


class PipelineInterrupted(ProvisioningError):
    """Raised from a signal handler so scoped cleanup still runs."""

    category = "SIGNAL"


@dataclass
class PipelineResult:
    state: PipelineState = PipelineState.INIT
    cache_hit: bool = False
    verified_digest: Optional[str] = None
    signature: Optional[SignatureResult] = None
    provision: Optional[ProvisionResult] = None
    audit: Optional[AuditResult] = None
    warnings: List[str] = field(default_factory=list)
    failure: Optional[str] = None
    exit_code: int = 0


@contextmanager
def _signals_raise_interrupt() -> Iterator[None]:
    """Turn SIGTERM/SIGHUP into an exception for the duration of the block."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handle(signum, _frame):
        raise PipelineInterrupted(f"Received signal {signum}, aborting")

    previous = {sig: signal.signal(sig, _handle) for sig in (signal.SIGTERM, signal.SIGHUP)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


class BitBlockInstaller:
    """Main pipeline orchestrator."""

    def __init__(self, config: ReleaseConfig, settings: InstallerSettings,
                 fetcher: Optional[ArtifactFetcher] = None,
                 signature_verifier: Optional[SignatureVerifier] = None,
                 health_checker: Optional[HealthChecker] = None,
                 auditor: Optional[SecurityAuditor] = None,
                 launcher: Optional[Launcher] = None,
                 run_health_checks: bool = True,
                 launch_mode: LaunchMode = LaunchMode.EXEC,
                 download_root: Optional[Path] = None):
        self.config = config
        self.settings = settings
        self.release = config.release

        self.fetcher = fetcher or ArtifactFetcher(config.fetch)
        self.checksum_verifier = ChecksumVerifier(self.release.expected_sha256)
        self.signature_verifier = signature_verifier or SignatureVerifier(
            config.signing.keyserver, config.signing.key_ids,
        )
        self.extractor = ArchiveExtractor(
            install_dir=settings.install_dir,
            binary_subdir=settings.bin_dir.name,
            binaries=config.binaries,
        )
        self.health_checker = health_checker or HealthChecker(settings.bin_dir, config.daemon, config.client)
        self.provisioner = ConfigProvisioner(
            data_dir=settings.data_dir,
            config_file=settings.config_file,
            credential_file=settings.credential_file,
            rpc_user=settings.rpc_user,
        )
        self.auditor = auditor or SecurityAuditor()
        self.launcher = launcher or Launcher()
        self.state_manager = StateManager(settings.download_marker, settings.verification_marker)

        self.run_health_checks = run_health_checks
        self.launch_mode = launch_mode
        self.download_root = download_root

        self.state = PipelineState.INIT
        self.transitions: List[PipelineState] = [PipelineState.INIT]

    def _transition(self, new_state: PipelineState) -> None:
        logger.info("[%s] -> [%s]", self.state.value, new_state.value)
        self.state = new_state
        self.transitions.append(new_state)

    def _fail(self, result: PipelineResult, reason: str) -> None:
        self._transition(PipelineState.FAILED)
        result.state = PipelineState.FAILED
        result.failure = reason
        result.exit_code = 1
        logger.error("FATAL: %s", reason)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _check_cache(self, cache: CacheState, result: PipelineResult) -> bool:
        if not (cache.downloaded and cache.verified):
            return False

        ok, reason = self.state_manager.revalidate(
            cache, self.release.expected_sha256, self.settings.bin_dir, self.config.binaries,
        )
        if ok:
            logger.info("%s binaries already available and verified", self.release.name)
            return True

        message = f"Cached installation failed re-verification ({reason}), re-fetching"
        logger.warning("WARNING: %s", message)
        result.warnings.append(message)
        self.state_manager.clear()
        return False

    def _acquire(self, result: PipelineResult) -> None:
        """FETCHING through HEALTH_CHECKING, inside a scoped download directory."""
        logger.info("Setting up %s %s with cryptographic verification...",
                    self.release.name, self.release.version)
        logger.info("Creating secure download directory...")
        download_dir = Path(tempfile.mkdtemp(prefix=DOWNLOAD_DIR_PREFIX, dir=self.download_root))
        try:
            self._transition(PipelineState.FETCHING)
            fetched = self.fetcher.fetch_release(self.release, download_dir)
            if not fetched.signature_available:
                result.warnings.append("Detached signature unavailable; checksum-only trust")

            self._transition(PipelineState.VERIFYING_CHECKSUM)
            result.verified_digest = self.checksum_verifier.verify(fetched.artifact_path, fetched.manifest_path)

            if fetched.signature_available:
                self._transition(PipelineState.VERIFYING_SIGNATURE)
                result.signature = self.signature_verifier.verify(fetched.manifest_path, fetched.signature_path)
                if not result.signature.trusted:
                    result.warnings.append(result.signature.message)

            logger.info("All verifications completed successfully")

            self._transition(PipelineState.EXTRACTING)
            installed = self.extractor.extract(fetched.artifact_path)
        finally:
            if download_dir.exists():
                logger.info("Cleaning up temporary downloads...")
                shutil.rmtree(download_dir, ignore_errors=True)

        if self.run_health_checks:
            self._transition(PipelineState.HEALTH_CHECKING)
            self.health_checker.run_health_checks()

        binary_digests = {name: sha256_of_file(path) for name, path in installed.items()}
        self.state_manager.save(result.verified_digest, binary_digests)
        logger.info("✓ %s setup completed successfully", self.release.name)

    def _configure_and_audit(self, result: PipelineResult) -> None:
        self._transition(PipelineState.CONFIGURING)
        result.provision = self.provisioner.provision()

        self._transition(PipelineState.AUDITING)
        result.audit = self.auditor.audit(
            self.settings.data_dir, self.settings.config_file, self.settings.credential_file,
        )
        result.warnings.extend(v.message for v in result.audit.warnings)
        if not result.audit.passed:
            raise PolicyViolationError(
                '; '.join(v.message for v in result.audit.critical)
            )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def provision(self) -> PipelineResult:
        """
        Run every stage up to and including AUDITING.

        Raises:
            ProvisioningError: On any FATAL condition (state is FAILED)
        """
        result = PipelineResult()
        logger.info("=== %s Security-Hardened Setup ===", self.release.name)

        with _signals_raise_interrupt():
            try:
                cache = self.state_manager.load()
                result.cache_hit = self._check_cache(cache, result)
                if result.cache_hit:
                    result.verified_digest = cache.verified_digest
                else:
                    self._acquire(result)

                self._configure_and_audit(result)
            except ProvisioningError as e:
                self._fail(result, f"{e.category}: {e}")
                raise
            except KeyboardInterrupt:
                self._fail(result, "Interrupted by operator")
                raise

        result.state = self.state
        return result

    def run(self) -> PipelineResult:
        """
        Provision, then launch the daemon (terminal RUNNING state).

        Raises:
            ProvisioningError: On any FATAL condition (state is FAILED)
        """
        result = self.provision()
        binary = self.settings.binary_path(self.config.daemon)

        try:
            self._transition(PipelineState.LAUNCHING)
            self.launcher.validate_binary(binary)
            self._transition(PipelineState.RUNNING)
            result.state = PipelineState.RUNNING
            result.exit_code = self.launcher.launch(
                binary, self.settings.config_file, self.settings.data_dir, self.launch_mode,
            )
        except ProvisioningError as e:
            self._fail(result, f"{e.category}: {e}")
            raise

        return result


def _print_fatal(message: str) -> None:
    print("", file=sys.stderr)
    print("=" * 80, file=sys.stderr)
    print(f"FATAL: {message}", file=sys.stderr)
    print("=" * 80, file=sys.stderr)
    print("Installation aborted (fail-closed).", file=sys.stderr)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='bitblock-installer',
        description='Bit-block security-hardened download, verification and startup',
    )
    parser.add_argument('command', nargs='?', default='run',
                        choices=['run', 'provision', 'audit', 'selftest'],
                        help='run (default): provision and launch; provision: stop before launch; '
                             'audit: security audit only; selftest: diagnose installed binaries')
    parser.add_argument('--root', type=Path, default=Path.cwd(),
                        help='Installation root (default: current directory)')
    parser.add_argument('--release-config', type=Path, default=None,
                        help='Alternate release.yaml (default: packaged release, or BITBLOCK_RELEASE_CONFIG)')
    parser.add_argument('--supervise', action='store_true',
                        help='Run the daemon as a supervised child instead of replacing this process')
    parser.add_argument('--skip-health-checks', action='store_true',
                        help='Skip post-extraction binary health checks')
    parser.add_argument('--log-file', type=Path, default=None, help='Also log to this file')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    return parser


def _selftest(config: ReleaseConfig, settings: InstallerSettings) -> int:
    missing = [name for name in config.binaries if not settings.binary_path(name).is_file()]
    if missing:
        _print_fatal(f"Binaries not installed: {', '.join(missing)} (run 'provision' first)")
        return 1

    checker = HealthChecker(settings.bin_dir, config.daemon, config.client)
    try:
        checker.run_health_checks()
    except StructuralError as e:
        _print_fatal(str(e))
        return 1

    failed = 0
    for diag in checker.run_diagnostics():
        mark = '✓' if diag.passed else ('!' if diag.advisory else '✗')
        print(f"{mark} {diag.name}")
        if diag.output:
            for line in diag.output.splitlines():
                print(f"    {line}")
        if not diag.passed and not diag.advisory:
            failed += 1

    if failed:
        print(f"✗ {failed} self-test check(s) failed", file=sys.stderr)
        return 1
    print(f"✓ All {config.release.name} smoke tests passed!")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = _build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        config = load_release_config(args.release_config)
        settings = InstallerSettings.resolve(config, args.root)
    except ProvisioningError as e:
        _print_fatal(str(e))
        return 1

    logger.info("Configuration will be created at: %s", settings.data_dir)

    if args.command == 'audit':
        audit = SecurityAuditor().audit(settings.data_dir, settings.config_file, settings.credential_file)
        return 0 if audit.passed else 1

    if args.command == 'selftest':
        return _selftest(config, settings)

    installer = BitBlockInstaller(
        config,
        settings,
        run_health_checks=not args.skip_health_checks,
        launch_mode=LaunchMode.SUPERVISE if args.supervise else LaunchMode.EXEC,
    )

    try:
        if args.command == 'provision':
            result = installer.provision()
        else:
            result = installer.run()
    except ProvisioningError as e:
        _print_fatal(f"{e.category}: {e}")
        logger.error("Pipeline finished in state %s: %s", installer.state.value, e)
        return 1
    except KeyboardInterrupt:
        _print_fatal("Interrupted by operator")
        return 1

    for warning in result.warnings:
        logger.warning("WARNING (summary): %s", warning)
    logger.info("Pipeline finished in state %s", installer.state.value)
    return result.exit_code


if __name__ == '__main__':
    sys.exit(main())
