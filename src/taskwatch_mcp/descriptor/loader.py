"""Descriptor discovery and loading."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import DEFAULT_DESCRIPTOR, Descriptor

logger = logging.getLogger(__name__)


class DescriptorParseError(RuntimeError):
    """Raised when a descriptor file exists but cannot be parsed."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


@dataclass(slots=True)
class DescriptorDocument:
    """A parsed descriptor together with the file it came from."""

    path: Path
    text: str
    descriptor: Descriptor


def find_descriptor(start: Path, file_name: str) -> Path | None:
    """Return the nearest descriptor file at or above ``start``."""

    current = Path(start).expanduser().absolute()
    visited: set[Path] = set()
    while current not in visited:
        visited.add(current)
        candidate = current / file_name
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent
    return None


def parse_descriptor(path: Path, text: str) -> Descriptor:
    """Parse descriptor text read from ``path``."""

    if not text.strip():
        raise DescriptorParseError(f"Descriptor {path} is empty", path)

    try:
        if path.suffix == ".json":
            document = json.loads(text)
        else:
            document = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise DescriptorParseError(f"Failed to parse descriptor {path}: {exc}", path) from exc

    if not isinstance(document, dict):
        raise DescriptorParseError(f"Descriptor {path} must contain an object", path)

    try:
        return Descriptor.model_validate(document)
    except ValidationError as exc:
        raise DescriptorParseError(f"Descriptor validation error in {path}: {exc}", path) from exc


def load_descriptor(start: Path, file_name: str) -> DescriptorDocument | None:
    """Locate and parse the descriptor governing ``start``.

    Returns ``None`` when no descriptor exists up to the filesystem root.
    """

    path = find_descriptor(start, file_name)
    if path is None:
        return None

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DescriptorParseError(f"Unable to read descriptor {path}: {exc}", path) from exc

    descriptor = parse_descriptor(path, text)
    logger.debug("Loaded descriptor", extra={"descriptor_path": str(path)})
    return DescriptorDocument(path=path, text=text, descriptor=descriptor)


def write_default_descriptor(directory: Path, file_name: str) -> Path:
    """Create a descriptor composed from the git remote and branch.

    An existing file is left untouched.
    """

    path = Path(directory).expanduser().absolute() / file_name
    if path.suffix == ".json":
        data = json.dumps(DEFAULT_DESCRIPTOR, indent=2) + "\n"
    else:
        data = yaml.safe_dump(DEFAULT_DESCRIPTOR, sort_keys=False)
    try:
        with path.open("x", encoding="utf-8") as handle:
            handle.write(data)
    except FileExistsError:
        logger.info("Descriptor already exists", extra={"descriptor_path": str(path)})
    return path


__all__ = [
    "DescriptorDocument",
    "DescriptorParseError",
    "find_descriptor",
    "load_descriptor",
    "parse_descriptor",
    "write_default_descriptor",
]
