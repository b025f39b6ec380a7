"""
Corpus catalog: the ordered identifier list aligned with matrix rows.
"""

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, List, Optional, Tuple, Union

from util.logging import logger
from .errors import CorpusLoadError


@dataclass(frozen=True)
class CatalogReport:
    """Outcome of cross-checking declared identifiers against resource files."""

    missing_files: FrozenSet[str] = frozenset()
    """Identifiers declared in the names file with no file on disk"""

    unlisted_files: FrozenSet[str] = frozenset()
    """Files on disk that no identifier refers to"""

    checked: bool = False
    """True once both sides were compared"""

    unavailable: bool = False
    """A resource directory was given but could not be listed"""

    @property
    def consistent(self) -> bool:
        if self.unavailable:
            return False
        return not self.missing_files and not self.unlisted_files


@dataclass(frozen=True)
class CorpusCatalog:
    """Item identifiers in matrix row order. Never re-sorted."""

    names: Tuple[str, ...]
    images_dir: Optional[Path] = None
    report: CatalogReport = field(default_factory=CatalogReport)

    def __len__(self) -> int:
        return len(self.names)

    def name_for_key(self, key: int) -> Optional[str]:
        """Identifier for an index key (row number), or None if out of range."""
        if 0 <= key < len(self.names):
            return self.names[key]
        return None

    def resolve_path(self, name: str) -> Optional[Path]:
        """Location of the asset behind an identifier."""
        if self.images_dir is None:
            return None
        return self.images_dir / name


def read_names(names_path: Union[str, Path], suffix: str = ".jpg") -> List[str]:
    """
    Read newline-delimited identifiers and append the resource suffix.

    Raises:
        CorpusLoadError: If the file is missing, unreadable or not UTF-8.
    """
    try:
        contents = Path(names_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CorpusLoadError(f"Cannot read names file {names_path}: {e}") from e

    names = [line.rstrip("\r") for line in contents.split("\n")]
    return [name + suffix for name in names if name]


def list_resource_files(images_dir: Union[str, Path]) -> Optional[List[str]]:
    """List file names directly under the resource directory, or None if it cannot be listed."""
    try:
        with os.scandir(images_dir) as entries:
            return [entry.name for entry in entries if entry.is_file()]
    except OSError as e:
        logger.warning(f"Cannot list resource directory {images_dir}: {e}")
        return None


def check_catalog(names: List[str], files: Optional[List[str]]) -> CatalogReport:
    """
    Compare declared identifiers against files on disk by base name.

    An empty listing is still compared, so every identifier is reported
    missing. `files=None` means the directory could not be listed.
    """
    if files is None:
        return CatalogReport(unavailable=True)

    declared = {os.path.basename(name) for name in names}
    present = set(files)
    report = CatalogReport(
        missing_files=frozenset(declared - present),
        unlisted_files=frozenset(present - declared),
        checked=True,
    )
    logger.log_catalog_check(report.missing_files, report.unlisted_files)
    return report


def load_catalog(names_path: Union[str, Path], images_dir: Union[str, Path, None] = None,
                 suffix: str = ".jpg") -> CorpusCatalog:
    """
    Load the corpus catalog.

    Mismatches between the names file and the resource directory are logged
    and reported on the catalog, never raised.

    Args:
        names_path: UTF-8 file with one identifier per line
        images_dir: Flat directory of per-identifier assets
        suffix: Extension appended to every identifier

    Returns:
        The catalog in file order

    Raises:
        CorpusLoadError: If the names file cannot be read.
    """
    start_time = time.monotonic()
    try:
        names = read_names(names_path, suffix)
    except CorpusLoadError as e:
        logger.log_load("catalog", start_time, time.monotonic(), "failed", {"path": str(names_path), "error": str(e)})
        raise

    report = CatalogReport()
    resolved_dir = None
    if images_dir is not None:
        resolved_dir = Path(images_dir)
        files = list_resource_files(resolved_dir)
        report = check_catalog(names, files)

    logger.log_load("catalog", start_time, time.monotonic(), details={
        "path": str(names_path),
        "items": len(names),
    })
    return CorpusCatalog(names=tuple(names), images_dir=resolved_dir, report=report)
