from __future__ import annotations

"""Asset carrier: copies non-text resources next to the merged documents."""

import filecmp
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, List, Set, Tuple, Union

from dita_l10n.core.exceptions import InputError, L10nError
from dita_l10n.core.utils import safe_output_path

logger = logging.getLogger(__name__)

__all__ = ["copy_asset", "AssetCarrier"]


def copy_asset(source_path: Union[str, Path], output_dir: Union[str, Path], relative_path: str) -> bool:
    """Copy *source_path* to ``output_dir/relative_path`` byte for byte.

    Returns ``True`` when bytes were written and ``False`` when an identical
    file was already present. Differing content is replaced.

    Raises:
        InputError: If the source is missing or the destination escapes *output_dir*
    """
    source_path = Path(source_path)
    if not source_path.is_file():
        raise InputError("Asset not found", source_path)
    destination = safe_output_path(output_dir, relative_path)
    if destination.is_file() and filecmp.cmp(source_path, destination, shallow=False):
        logger.debug("Asset unchanged: %s", relative_path)
        return False

    destination.parent.mkdir(parents=True, exist_ok=True)
    # Unique temporary name: concurrent merges may copy the same asset
    fd, tmp_name = tempfile.mkstemp(prefix=f".{destination.name}.", suffix=".part",
                                    dir=str(destination.parent))
    os.close(fd)
    try:
        shutil.copyfile(source_path, tmp_name)
        os.replace(tmp_name, destination)
    except OSError as exc:
        logger.error("I/O FAIL: copy asset %s -> %s", source_path, destination, exc_info=True)
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise InputError(f"Failed to copy asset: {exc}", relative_path, exc)
    logger.debug("I/O: copied asset path=%s bytes=%d", destination, destination.stat().st_size)
    return True


class AssetCarrier:
    """Copies each distinct asset of one merge once."""

    def __init__(self, source_root: Union[str, Path], output_dir: Union[str, Path]) -> None:
        self.source_root = Path(source_root)
        self.output_dir = Path(output_dir)
        self._seen: Set[str] = set()

    def carry(self, relative_path: str) -> bool:
        if relative_path in self._seen:
            return False
        self._seen.add(relative_path)
        return copy_asset(self.source_root / relative_path, self.output_dir, relative_path)

    def carry_all(self, relative_paths: Iterable[str]) -> Tuple[List[str], List[L10nError]]:
        """Copy every path, returning ``(copied, errors)``; one failure never stops the rest."""
        copied: List[str] = []
        errors: List[L10nError] = []
        for relative_path in relative_paths:
            try:
                if self.carry(relative_path):
                    copied.append(relative_path)
            except L10nError as exc:
                logger.warning("Asset not copied %s: %s", relative_path, exc)
                errors.append(exc)
        return copied, errors
