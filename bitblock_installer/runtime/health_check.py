# Path and File Name : /home/bitblock/rebuild/bitblock_installer/runtime/health_check.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Post-extraction health checks (fatal) and operator diagnostic self-test (advisory) of the installed binaries

"""
Binary Health Checks

Health checks (FAIL-CLOSED, run after extraction):
- bitcoind -version exits 0
- bitcoin-cli -version exits 0
- bitcoind -h exits 0

Diagnostics (ADVISORY, selftest subcommand):
- help output head
- version output
- invalid argument must be rejected with the known parse error
- client version output
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

from ..errors import StructuralError

logger = logging.getLogger(__name__)

INVALID_ARGUMENT = '-fakearg'
ARGUMENT_ERROR_MARKER = 'Error parsing command line arguments'
HELP_PREVIEW_LINES = 10


@dataclass
class DiagnosticResult:
    name: str
    passed: bool
    output: str = ''
    advisory: bool = False


class HealthChecker:
    """Runs the installed binaries to prove they are usable."""

    def __init__(self, bin_dir: Path, daemon: str, client: str, timeout: float = 30.0,
                 runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.bin_dir = Path(bin_dir)
        self.daemon = daemon
        self.client = client
        self.timeout = timeout
        self.runner = runner

    def _run(self, binary: str, *args: str) -> subprocess.CompletedProcess:
        cmd = [str(self.bin_dir / binary), *args]
        try:
            return self.runner(cmd, capture_output=True, text=True, timeout=self.timeout, check=False)
        except subprocess.TimeoutExpired:
            return subprocess.CompletedProcess(cmd, returncode=-1, stdout='',
                                               stderr=f"timed out after {self.timeout}s")
        except OSError as e:
            return subprocess.CompletedProcess(cmd, returncode=-1, stdout='', stderr=str(e))

    def run_health_checks(self) -> None:
        """
        Raises:
            StructuralError: If any binary fails its check
        """
        logger.info("Running health checks...")

        checks = [
            (self.daemon, '-version', 'version check'),
            (self.client, '-version', 'version check'),
            (self.daemon, '-h', 'help check'),
        ]
        for binary, arg, label in checks:
            result = self._run(binary, arg)
            if result.returncode != 0:
                detail = (result.stderr or result.stdout or '').strip()
                raise StructuralError(f"{binary} {label} failed (exit {result.returncode}): {detail}")

        logger.info("✓ All health checks passed")

    def run_diagnostics(self) -> List[DiagnosticResult]:
        """Functional self-test; never raises for a failing binary."""
        results = []

        help_run = self._run(self.daemon, '-h')
        help_head = '\n'.join(help_run.stdout.splitlines()[:HELP_PREVIEW_LINES])
        results.append(DiagnosticResult(f"{self.daemon} help", help_run.returncode == 0, help_head))

        version_run = self._run(self.daemon, '-version')
        results.append(DiagnosticResult(f"{self.daemon} version", version_run.returncode == 0,
                                        version_run.stdout.strip()))

        bad_run = self._run(self.daemon, INVALID_ARGUMENT)
        combined = f"{bad_run.stdout}{bad_run.stderr}"
        handled = ARGUMENT_ERROR_MARKER in combined
        results.append(DiagnosticResult(f"{self.daemon} invalid argument handling", handled,
                                        combined.strip(), advisory=True))
        if handled:
            logger.info("✓ Correctly handled invalid argument")
        else:
            logger.warning("WARNING: Unexpected error output format for invalid argument")

        client_run = self._run(self.client, '-version')
        results.append(DiagnosticResult(f"{self.client} version", client_run.returncode == 0,
                                        client_run.stdout.strip()))

        return results
