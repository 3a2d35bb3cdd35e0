"""NetworkPeering resource loading with validation.

SECURITY: All file operations enforce size limits to prevent DoS attacks
via large files. Input validation is performed at the boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import NetworkPeering

logger = logging.getLogger(__name__)

SPEC_FILE_PATTERNS = ("*.yaml", "*.yml")


class SpecLoadError(Exception):
    """Raised when a resource file cannot be loaded or fails validation."""

    pass


@dataclass(frozen=True)
class LoadedResource:
    """A resource together with the file it came from."""

    path: Path
    resource: NetworkPeering
    signature: tuple[int, int]


def file_signature(path: Path) -> tuple[int, int]:
    """Return (mtime_ns, size) used to notice edits between scans."""
    stat = path.stat()
    return stat.st_mtime_ns, stat.st_size


def format_validation_error(error: ValidationError) -> str:
    """Format pydantic validation errors for readability."""
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        lines.append(f"  - {loc}: {item['msg']}")
    return "\n".join(lines)


def load_resource(path: Path) -> NetworkPeering:
    """Load and validate a NetworkPeering resource from YAML.

    Args:
        path: Path to the resource file.

    Returns:
        Validated resource.

    Raises:
        SpecLoadError: If the file cannot be loaded or fails validation.
    """
    if not path.exists():
        raise SpecLoadError(f"Resource file not found: {path}")

    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat resource file {path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Resource file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read resource file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Resource file must contain a YAML mapping: {path}")

    # Status is owned by the operator and never read from the declared file
    raw_data.pop("status", None)

    try:
        resource = NetworkPeering.model_validate(raw_data)
    except ValidationError as e:
        raise SpecLoadError(
            f"Validation failed for {path}:\n{format_validation_error(e)}"
        ) from e

    logger.debug("Loaded resource", extra={"resource": resource.metadata.key, "path": str(path)})
    return resource


def discover_resources(specs_dir: Path) -> tuple[dict[str, LoadedResource], dict[Path, str]]:
    """Load every resource file in a directory.

    A broken file never hides the others: it is reported in the errors
    mapping and the scan continues.

    Returns:
        Tuple of (resources by key, load errors by path).
    """
    resources: dict[str, LoadedResource] = {}
    errors: dict[Path, str] = {}

    paths = sorted({p for pattern in SPEC_FILE_PATTERNS for p in specs_dir.glob(pattern)})
    for path in paths:
        try:
            signature = file_signature(path)
            resource = load_resource(path)
        except (SpecLoadError, OSError) as e:
            errors[path] = str(e)
            logger.error("Failed to load resource", extra={"path": str(path), "error": str(e)})
            continue

        key = resource.metadata.key
        if key in resources:
            message = f"Duplicate resource {key} also declared in {resources[key].path}"
            errors[path] = message
            logger.error("Duplicate resource", extra={"path": str(path), "resource": key})
            continue
        resources[key] = LoadedResource(path=path, resource=resource, signature=signature)

    return resources, errors
