# Path and File Name : /home/bitblock/rebuild/bitblock_installer/runtime/archive_extractor.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Extracts the verified release tarball into a fresh staging tree, validates required binaries and swaps it into place

"""
Archive Extractor: Installs the verified release into bin/bit-block.

Layout after extraction (one leading component stripped):
bin/bit-block/
  bin/          - bitcoind, bitcoin-cli, bitcoin-tx, bitcoin-wallet
  share/, ...   - whatever else the release ships

Rules:
- Extract into a fresh staging directory, NEVER over a live installation
- Reject members escaping the destination (absolute, '..', outside links)
- Every required binary MUST exist (FATAL: extraction incomplete)
- Missing execute bits are granted
- Only a fully validated tree replaces the previous installation
"""

import os
import stat
import shutil
import logging
import tarfile
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Sequence

from ..errors import ProvisioningEnvironmentError, StructuralError

logger = logging.getLogger(__name__)

EXECUTE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def _strip_member_path(name: str, strip_components: int) -> Optional[str]:
    """Return name with leading components stripped, or None if nothing remains."""
    parts = [p for p in PurePosixPath(name).parts if p not in ('', '.')]
    if parts and parts[0] == '/':
        raise StructuralError(f"Unsafe absolute path in archive: {name}")
    if '..' in parts:
        raise StructuralError(f"Unsafe parent reference in archive: {name}")
    if len(parts) <= strip_components:
        return None
    return '/'.join(parts[strip_components:])


def supports_extraction_filters() -> bool:
    """True when tarfile implements extraction filters (3.12, 3.9.17+, 3.10.12+, 3.11.4+)."""
    return hasattr(tarfile, 'data_filter')


def _is_within_directory(directory: Path, target: Path) -> bool:
    directory = directory.resolve()
    target = target.resolve()
    return target == directory or directory in target.parents


class ArchiveExtractor:
    """Extracts and validates the release tarball."""

    def __init__(self, install_dir: Path, binary_subdir: str, binaries: Sequence[str],
                 strip_components: int = 1):
        self.install_dir = Path(install_dir)
        self.binary_subdir = binary_subdir
        self.binaries = list(binaries)
        self.strip_components = strip_components

    @property
    def staging_dir(self) -> Path:
        return self.install_dir.with_name(self.install_dir.name + '.staging')

    @property
    def retired_dir(self) -> Path:
        return self.install_dir.with_name(self.install_dir.name + '.old')

    def extract(self, archive_path: Path) -> Dict[str, Path]:
        """
        Extract archive_path and install it at install_dir.

        Returns:
            Mapping of binary name to installed path

        Raises:
            StructuralError: If the archive is unreadable, unsafe or incomplete
            ProvisioningEnvironmentError: If tarfile lacks extraction filters, or directories
                cannot be created or swapped
        """
        logger.info("Extracting %s binaries...", Path(archive_path).name)
        if not supports_extraction_filters():
            raise ProvisioningEnvironmentError(
                "This Python lacks tarfile extraction filters; "
                "use Python 3.12+ or 3.9.17+, 3.10.12+, 3.11.4+"
            )
        staging = self.staging_dir

        try:
            if staging.exists():
                shutil.rmtree(staging)
            staging.mkdir(parents=True)
        except OSError as e:
            raise ProvisioningEnvironmentError(f"Failed to create staging directory {staging}: {e}") from e

        try:
            self._extract_into(Path(archive_path), staging)
            self.validate_binaries(staging / self.binary_subdir)
            self._swap_into_place(staging)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        installed = {name: self.install_dir / self.binary_subdir / name for name in self.binaries}
        logger.info("✓ Binaries extracted and verified: %s", ', '.join(self.binaries))
        return installed

    def _extract_into(self, archive_path: Path, dest: Path) -> None:
        try:
            with tarfile.open(archive_path, 'r:*') as tf:
                members = self._rewrite_members(tf.getmembers(), dest)
                tf.extractall(path=dest, members=members, filter='data')
        except tarfile.TarError as e:
            raise StructuralError(f"Failed to extract tarball {archive_path.name}: {e}") from e
        except OSError as e:
            raise ProvisioningEnvironmentError(f"Failed to extract tarball into {dest}: {e}") from e

    def _rewrite_members(self, members: List[tarfile.TarInfo], dest: Path) -> List[tarfile.TarInfo]:
        selected = []
        for member in members:
            stripped = _strip_member_path(member.name, self.strip_components)
            if stripped is None:
                continue

            target = dest / stripped
            if not _is_within_directory(dest, target):
                raise StructuralError(f"Unsafe member in archive: {member.name}")

            if member.islnk():
                link = _strip_member_path(member.linkname, self.strip_components)
                if link is None:
                    raise StructuralError(f"Unsafe hard link in archive: {member.name}")
                member.linkname = link
            elif member.issym():
                if not _is_within_directory(dest, target.parent / member.linkname):
                    raise StructuralError(f"Unsafe symlink in archive: {member.name} -> {member.linkname}")

            member.name = stripped
            selected.append(member)

        if not selected:
            raise StructuralError("Tarball contains no installable entries")
        return selected

    def validate_binaries(self, bin_dir: Path) -> Dict[str, Path]:
        """
        Require every named binary in bin_dir; grant execute permission where missing.

        Raises:
            StructuralError: If any binary is missing
        """
        missing = [name for name in self.binaries if not (bin_dir / name).is_file()]
        if missing:
            raise StructuralError(
                f"Extraction incomplete - missing binary: {', '.join(missing)}"
            )

        found = {}
        for name in self.binaries:
            path = bin_dir / name
            mode = path.stat().st_mode
            if not mode & stat.S_IXUSR:
                try:
                    os.chmod(path, stat.S_IMODE(mode) | EXECUTE_BITS)
                except OSError as e:
                    raise ProvisioningEnvironmentError(f"Failed to make {path} executable: {e}") from e
                logger.info("Granted execute permission to %s", name)
            found[name] = path
        return found

    def _swap_into_place(self, staging: Path) -> None:
        retired = self.retired_dir
        try:
            if retired.exists():
                shutil.rmtree(retired)
            if self.install_dir.exists():
                self.install_dir.rename(retired)
            try:
                staging.rename(self.install_dir)
            except OSError:
                if retired.exists() and not self.install_dir.exists():
                    retired.rename(self.install_dir)
                raise
            if retired.exists():
                shutil.rmtree(retired)
        except OSError as e:
            raise ProvisioningEnvironmentError(
                f"Failed to install extracted release at {self.install_dir}: {e}"
            ) from e
