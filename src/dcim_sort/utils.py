from __future__ import annotations

import errno
import hashlib
import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

TRANSFER_MODES = ("copy", "move", "hardlink", "symlink")
HASH_ALGORITHMS = ("sha256", "md5", "none")

_SEPARATOR_PATTERN = re.compile(r"[\\/]+")
_CONTROL_PATTERN = re.compile(r"[\x00-\x1f\x7f]")


def normalize_choice(value: Any) -> str:
    """Fold ``FavorTarget``, ``favor_target`` and ``favor-target`` to ``favortarget``."""
    return re.sub(r"[\s_-]+", "", str(value)).lower()


def sanitize_component(component: str, replacement: str = "_") -> str:
    """Make a string safe to use as a single directory name.

    Path separators and control characters are replaced, surrounding
    whitespace is stripped, and the relative markers ``.``/``..`` are
    neutralised. An empty string stays empty.
    """
    cleaned = _SEPARATOR_PATTERN.sub(replacement, component)
    cleaned = _CONTROL_PATTERN.sub(replacement, cleaned).strip()
    if cleaned in {".", ".."}:
        return cleaned.replace(".", replacement)
    return cleaned


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: expand_env(val) for key, val in value.items()}
    return value


def load_yaml_file(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return expand_env(data)


def file_digest(path: Path, algorithm: str = "sha256", chunk_size: int = 65536) -> Optional[str]:
    """Compute the hex digest of a file, or None when hashing is disabled."""
    if algorithm == "none":
        return None
    digest = hashlib.new(algorithm)
    try:
        with path.open("rb") as handle:
            while True:
                chunk = handle.read(chunk_size)
                if not chunk:
                    break
                digest.update(chunk)
    except OSError as exc:  # pragma: no cover - filesystem specific
        raise ValueError(f"Unable to hash {path}: {exc}") from exc
    return digest.hexdigest()


@dataclass
class TransferResult:
    created: bool
    reason: Optional[str] = None


def transfer_file(source: Path, destination: Path, mode: str = "copy", *, overwrite: bool = False) -> TransferResult:
    """Copy, move or link ``source`` to ``destination``.

    An existing destination is only replaced when ``overwrite`` is set.
    Hard links that cross devices fall back to a copy.
    """
    ensure_directory(destination.parent)

    if destination.exists() or destination.is_symlink():
        if not overwrite:
            return TransferResult(created=False, reason="destination-exists")
        if destination.resolve() == source.resolve():
            return TransferResult(created=False, reason="same-file")
        destination.unlink()

    try:
        if mode == "copy":
            shutil.copy2(source, destination)
        elif mode == "move":
            shutil.move(str(source), str(destination))
        elif mode == "hardlink":
            os.link(source, destination)
        elif mode == "symlink":
            destination.symlink_to(source.resolve())
        else:
            raise ValueError(f"Unsupported transfer mode: {mode}")
    except OSError as exc:
        if mode == "hardlink" and exc.errno in {errno.EXDEV, errno.EPERM}:
            try:
                shutil.copy2(source, destination)
                return TransferResult(created=True)
            except OSError as copy_exc:
                return TransferResult(created=False, reason=str(copy_exc))
        return TransferResult(created=False, reason=str(exc))

    return TransferResult(created=True)
