# Path and File Name : /home/bitblock/rebuild/bitblock_installer/provisioning/__init__.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Provisioning package initialization

"""
Provisioning Package: Hardened runtime configuration and its security audit.
"""

from .config_provisioner import ConfigProvisioner, ProvisionResult, RuntimeConfig
from .security_auditor import (
    SecurityAuditor,
    SecurityPolicy,
    AuditResult,
    Violation,
    ViolationSeverity,
)

__all__ = [
    'ConfigProvisioner',
    'ProvisionResult',
    'RuntimeConfig',
    'SecurityAuditor',
    'SecurityPolicy',
    'AuditResult',
    'Violation',
    'ViolationSeverity',
]
