# Path and File Name : /home/bitblock/rebuild/bitblock_installer/runtime/__init__.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Runtime package initialization

"""
Runtime Package: Installs, checks and launches the release binaries.
"""

from .archive_extractor import ArchiveExtractor
from .health_check import HealthChecker, DiagnosticResult
from .launcher import Launcher, LaunchMode

__all__ = ['ArchiveExtractor', 'HealthChecker', 'DiagnosticResult', 'Launcher', 'LaunchMode']
