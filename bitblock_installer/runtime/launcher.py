# Path and File Name : /home/bitblock/rebuild/bitblock_installer/runtime/launcher.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Launches the verified daemon bound to the provisioned config, by process replacement or supervised child

"""
Daemon Launcher

The daemon receives exactly two arguments:
  -conf=<config file>  -datadir=<data directory>

Modes:
- exec (default): the installer process is replaced; nothing runs afterwards
- supervise: the daemon runs as a child, SIGTERM/SIGINT are forwarded,
  and its exit code is returned
"""

import os
import signal
import logging
import subprocess
from enum import Enum
from pathlib import Path
from typing import Callable, List

from ..errors import LaunchError
from ..logging_utils import flush_logging

logger = logging.getLogger(__name__)

FORWARDED_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class LaunchMode(Enum):
    EXEC = "exec"
    SUPERVISE = "supervise"


class Launcher:
    """Starts the daemon with the provisioned configuration."""

    def __init__(self, execv: Callable[[str, List[str]], None] = os.execv,
                 popen: Callable[..., subprocess.Popen] = subprocess.Popen):
        self.execv = execv
        self.popen = popen

    @staticmethod
    def validate_binary(binary: Path) -> Path:
        """
        Raises:
            LaunchError: If binary is missing or not executable
        """
        binary = Path(binary)
        if not binary.is_file() or not os.access(binary, os.X_OK):
            raise LaunchError(f"Daemon not found or not executable at {binary}")
        return binary

    @staticmethod
    def build_command(binary: Path, config_file: Path, data_dir: Path) -> List[str]:
        return [str(binary), f"-conf={config_file}", f"-datadir={data_dir}"]

    def launch(self, binary: Path, config_file: Path, data_dir: Path,
               mode: LaunchMode = LaunchMode.EXEC) -> int:
        """
        Launch the daemon.

        Returns:
            0 in exec mode (only reached if process replacement is intercepted),
            the child's exit code in supervise mode

        Raises:
            LaunchError: If the binary is unusable or cannot be started
        """
        binary = self.validate_binary(binary)
        argv = self.build_command(binary, config_file, data_dir)

        if mode is LaunchMode.EXEC:
            logger.info("Starting %s with secure configuration (process replaced)...", binary.name)
            flush_logging()
            try:
                self.execv(str(binary), argv)
            except OSError as e:
                raise LaunchError(f"Failed to exec {binary}: {e}") from e
            return 0

        return self._supervise(binary, argv)

    def _supervise(self, binary: Path, argv: List[str]) -> int:
        logger.info("Starting %s with secure configuration (supervised)...", binary.name)
        try:
            child = self.popen(argv)
        except OSError as e:
            raise LaunchError(f"Failed to start {binary}: {e}") from e

        def _forward(signum, _frame):
            logger.info("Received signal %d, forwarding to %s (pid %d)", signum, binary.name, child.pid)
            child.send_signal(signum)

        previous = {sig: signal.signal(sig, _forward) for sig in FORWARDED_SIGNALS}
        try:
            returncode = child.wait()
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

        logger.info("%s exited with code %d", binary.name, returncode)
        return returncode
