"""
extension.yaml loading.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ai_ext.models import ExtensionManifest

MANIFEST_FILENAMES = ("extension.yaml", "extension.yml")


class ManifestNotFoundError(FileNotFoundError):
    """Raised when a directory has no extension manifest."""


class ManifestError(ValueError):
    """Raised when the manifest exists but cannot be read as a YAML mapping."""


def find_manifest(directory: Path) -> Path | None:
    """Return the manifest path, preferring ``extension.yaml`` over ``.yml``."""
    for filename in MANIFEST_FILENAMES:
        path = Path(directory) / filename
        if path.is_file():
            return path
    return None


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) else None


def manifest_from_dict(data: dict[str, Any]) -> ExtensionManifest:
    """Build a manifest from parsed YAML. Missing identity fields become empty strings."""
    return ExtensionManifest(
        name=data.get("name") or "",
        version=str(data["version"]) if data.get("version") is not None else "",
        description=data.get("description") or "",
        author=_optional_str(data, "author"),
        license=_optional_str(data, "license"),
        skills=_optional_str(data, "skills"),
        agents=_optional_str(data, "agents"),
        hooks=_optional_str(data, "hooks"),
        tools=_optional_str(data, "tools"),
        policies=_optional_str(data, "policies"),
        rules=_optional_str(data, "rules"),
    )


def load_manifest_data(directory: Path) -> tuple[Path, dict[str, Any]]:
    """
    Read the raw manifest mapping.

    Raises:
        ManifestNotFoundError: If neither extension.yaml nor extension.yml exists
        ManifestError: If the file is not valid YAML or not a mapping
    """
    path = find_manifest(directory)
    if path is None:
        raise ManifestNotFoundError(
            f"No extension.yaml found in {directory}. Run 'ai-ext init' to create one."
        )

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid extension manifest at {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"Invalid extension manifest at {path}: expected a mapping")

    return path, data


def load_manifest(directory: Path) -> ExtensionManifest:
    """Load and convert the manifest in ``directory``."""
    _, data = load_manifest_data(directory)
    return manifest_from_dict(data)
