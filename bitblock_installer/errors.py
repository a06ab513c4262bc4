# Path and File Name : /home/bitblock/rebuild/bitblock_installer/errors.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Fail-closed error taxonomy shared by every provisioning stage

"""
Provisioning Error Taxonomy

Every FATAL condition in the pipeline is raised as a ProvisioningError
subclass. The category tells the operator which class of failure aborted
the run:

- TRANSIENT-NETWORK: retry budget exhausted while fetching
- INTEGRITY: checksum mismatch (never retried)
- STRUCTURAL: release archive incomplete or binaries unhealthy
- ENVIRONMENT: cannot create/chmod/write directories or files
- POLICY: required hardening flag absent after provisioning
- LAUNCH: daemon binary missing or not executable
- CONFIGURATION: release configuration invalid
- ENTROPY: no cryptographically strong random source

TRUST-DEGRADED outcomes (signature unavailable/invalid) are NOT errors;
they are reported as SignatureStatus values.
"""


class ProvisioningError(Exception):
    """Base class for every FATAL provisioning failure."""

    category = "FATAL"


class FetchError(ProvisioningError):
    """Raised when a required resource cannot be fetched after retries."""

    category = "TRANSIENT-NETWORK"


class IntegrityError(ProvisioningError):
    """Raised when a checksum does not match the trusted digest."""

    category = "INTEGRITY"


class StructuralError(ProvisioningError):
    """Raised when the extracted release is incomplete or unhealthy."""

    category = "STRUCTURAL"


class ProvisioningEnvironmentError(ProvisioningError):
    """Raised when a directory or file cannot be created, written or chmod-ed."""

    category = "ENVIRONMENT"


class PolicyViolationError(ProvisioningError):
    """Raised when a mandatory security policy condition is violated."""

    category = "POLICY"


class LaunchError(ProvisioningError):
    """Raised when the daemon cannot be launched."""

    category = "LAUNCH"


class ReleaseConfigError(ProvisioningError):
    """Raised when release.yaml is missing, malformed or fails schema validation."""

    category = "CONFIGURATION"


class SecretGenerationError(ProvisioningError):
    """Raised when no cryptographically strong random source is available."""

    category = "ENTROPY"
