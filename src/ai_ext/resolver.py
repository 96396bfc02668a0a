"""
Extension resolver.

Turns an extension directory into an :class:`~ai_ext.models.ExtensionIR`::

    extension.yaml -> discover components -> parse each -> validate -> IR

Resolution never raises for data-shaped problems. A file that fails to
parse or validate is recorded as an error finding and left out of the IR;
its siblings are unaffected. Only a missing manifest is fatal.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ai_ext.loaders.base import ComponentLoader
from ai_ext.loaders.manifest import ManifestError, load_manifest_data, manifest_from_dict
from ai_ext.loaders.markdown import MarkdownComponentLoader
from ai_ext.logging import get_logger
from ai_ext.models import ExtensionIR, ExtensionManifest
from ai_ext.parsers import PARSERS
from ai_ext.validation import (
    ValidationResult,
    validate_agent,
    validate_hook,
    validate_manifest,
    validate_policy,
    validate_skill,
    validate_tool,
)

logger = get_logger("resolver")


@dataclass
class ResolveError:
    """One finding produced while resolving an extension."""

    component: str  # e.g. "manifest", "skill", "skill:code-review"
    file: str
    message: str
    severity: str = "error"  # error | warning

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": self.component,
            "file": self.file,
            "message": self.message,
            "severity": self.severity,
        }

    def __str__(self) -> str:
        return f"{self.component} ({self.file}): {self.message}"


@dataclass
class ResolveResult:
    ir: ExtensionIR
    errors: list[ResolveError] = field(default_factory=list)
    valid: bool = True

    @property
    def error_findings(self) -> list[ResolveError]:
        return [e for e in self.errors if e.severity == "error"]

    @property
    def warning_findings(self) -> list[ResolveError]:
        return [e for e in self.errors if e.severity != "error"]


@dataclass(frozen=True)
class ComponentKind:
    """How one markdown-based component kind is found and checked."""

    kind: str  # skill, agent, ...
    manifest_key: str  # skills, agents, ...
    filename: str
    validator: Callable[[Any], ValidationResult]


# Resolution order
COMPONENT_KINDS: tuple[ComponentKind, ...] = (
    ComponentKind("skill", "skills", "SKILL.md", validate_skill),
    ComponentKind("agent", "agents", "AGENT.md", validate_agent),
    ComponentKind("hook", "hooks", "HOOK.md", validate_hook),
    ComponentKind("tool", "tools", "TOOL.md", validate_tool),
    ComponentKind("policy", "policies", "POLICY.md", validate_policy),
)


def _collect(
    findings: list[ResolveError],
    component: str,
    file: str,
    result: ValidationResult,
) -> None:
    for issue in result.issues:
        findings.append(ResolveError(component, file, str(issue), issue.severity))


def _component_label(kind: str, name: Any) -> str:
    return f"{kind}:{name}" if isinstance(name, str) and name else kind


class Resolver:
    """
    Resolves extension directories.

    Args:
        loader: Component loader (defaults to the markdown frontmatter loader)
    """

    def __init__(self, loader: ComponentLoader | None = None) -> None:
        self.loader = loader or MarkdownComponentLoader()

    def resolve(self, directory: Path | str, fix_yaml_descriptions: bool = False) -> ResolveResult:
        """
        Resolve an extension directory.

        Args:
            directory: Directory containing extension.yaml
            fix_yaml_descriptions: Quote unquoted descriptions in place before parsing

        Returns:
            ResolveResult with the IR and every finding

        Raises:
            ManifestNotFoundError: If the directory has no manifest
        """
        root = Path(directory).resolve()
        findings: list[ResolveError] = []

        manifest = self._load_manifest(root, findings)
        ir = ExtensionIR(manifest=manifest)

        for entry in COMPONENT_KINDS:
            files = self.loader.discover(root, manifest.component_dir(entry.manifest_key), entry.filename)
            logger.debug("Discovered %d %s file(s)", len(files), entry.kind)
            bucket = getattr(ir, entry.manifest_key)
            for path in files:
                component = self._resolve_file(entry, path, fix_yaml_descriptions, findings)
                if component is not None:
                    bucket.append(component)

        ir.rules = self.loader.discover_rules(root, manifest.rules)
        logger.debug("Discovered %d rule file(s)", len(ir.rules))

        valid = not any(f.severity == "error" for f in findings)
        if not valid:
            logger.warning(
                "Extension %s has %d error(s)",
                manifest.name or root.name,
                sum(1 for f in findings if f.severity == "error"),
            )
        return ResolveResult(ir=ir, errors=findings, valid=valid)

    def _load_manifest(self, root: Path, findings: list[ResolveError]) -> ExtensionManifest:
        try:
            path, data = load_manifest_data(root)
        except ManifestError as e:
            logger.warning("%s", e)
            findings.append(ResolveError("manifest", "extension.yaml", str(e)))
            return manifest_from_dict({})

        _collect(findings, "manifest", path.name, validate_manifest(data))
        return manifest_from_dict(data)

    def _resolve_file(
        self,
        entry: ComponentKind,
        path: Path,
        fix_yaml_descriptions: bool,
        findings: list[ResolveError],
    ) -> Any | None:
        file = str(path)
        try:
            parsed = self.loader.load(path, fix_yaml_descriptions=fix_yaml_descriptions)
            component = PARSERS[entry.kind](parsed)
        except Exception as e:
            logger.warning("Failed to parse %s: %s", path, e)
            findings.append(ResolveError(entry.kind, file, f"Failed to parse: {e}"))
            return None

        label = _component_label(entry.kind, component.metadata.name)
        result = entry.validator(component.to_dict())
        _collect(findings, label, file, result)

        if entry.kind == "skill" and result.valid:
            dir_name = path.parent.name
            if dir_name != component.metadata.name:
                findings.append(
                    ResolveError(
                        label,
                        file,
                        f'Skill name "{component.metadata.name}" does not match directory '
                        f'name "{dir_name}". Some hosts require the name to match the '
                        "parent directory.",
                        "warning",
                    )
                )

        if not result.valid:
            logger.warning("Skipping invalid %s: %s", entry.kind, path)
            return None
        return component


def resolve_extension(directory: Path | str, fix_yaml_descriptions: bool = False) -> ResolveResult:
    """Resolve an extension directory with the default loader."""
    return Resolver().resolve(directory, fix_yaml_descriptions=fix_yaml_descriptions)
