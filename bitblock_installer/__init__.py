# Path and File Name : /home/bitblock/rebuild/bitblock_installer/__init__.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Bit-block installer package initialization

"""
Bit-block Security-Hardened Installer

Fetches the pinned Bitcoin Knots release, verifies it (SHA256 mandatory,
OpenPGP advisory), installs the binaries, provisions a hardened
configuration, audits it and launches the daemon. Every FATAL condition
aborts before anything unverified is installed or executed.
"""

from .errors import ProvisioningError
from .installer import BitBlockInstaller, PipelineResult, PipelineState, main
from .release_config import InstallerSettings, ReleaseConfig, load_release_config

__all__ = [
    'BitBlockInstaller',
    'PipelineResult',
    'PipelineState',
    'ProvisioningError',
    'InstallerSettings',
    'ReleaseConfig',
    'load_release_config',
    'main',
]

__version__ = "1.0.0"
