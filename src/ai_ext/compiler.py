"""
Compilation pipeline.

    source dir -> resolve IR -> target.compile() -> write files

The target is looked up before anything is resolved, and an IR with any
error finding stops the build before a target runs or a file is written.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from ai_ext.config import AiExtConfig
from ai_ext.logging import get_logger
from ai_ext.models import BuildOptions, BuildResult, BuildWarning
from ai_ext.resolver import ResolveError, Resolver
from ai_ext.targets.registry import TargetRegistry, create_default_registry

logger = get_logger("compiler")


class ExtensionValidationError(Exception):
    """Raised when an extension has error findings and cannot be compiled."""

    def __init__(self, errors: list[ResolveError]) -> None:
        self.errors = errors
        lines = "\n".join(f"  {e}" for e in errors)
        super().__init__(f"Extension validation failed:\n{lines}")


def write_file_atomic(path: Path, content: str) -> None:
    """
    Write ``content`` to ``path`` via a temp file in the same directory.

    A reader never sees a half-written file. Parent directories are created.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class Compiler:
    """
    Compiles extensions for registered targets.

    Args:
        registry: Targets to compile for (defaults to the three built-in hosts)
        config: Build configuration
        resolver: Extension resolver
    """

    def __init__(
        self,
        registry: TargetRegistry | None = None,
        config: AiExtConfig | None = None,
        resolver: Resolver | None = None,
    ) -> None:
        self.config = config or (registry.config if registry else AiExtConfig())
        self.registry = registry or create_default_registry(self.config)
        self.resolver = resolver or Resolver()

    def supported_targets(self) -> list[str]:
        return self.registry.list_targets()

    def compile(self, options: BuildOptions) -> BuildResult:
        """
        Compile one extension for one target.

        Raises:
            UnknownTargetError: If the target is not registered
            ManifestNotFoundError: If the source has no manifest
            ExtensionValidationError: If resolution produced error findings
            OSError: If writing a file fails; files already written stay on disk
        """
        target = self.registry.get(options.target)
        source_dir = Path(options.source_dir)

        resolved = self.resolver.resolve(
            source_dir,
            fix_yaml_descriptions=options.fix_yaml_descriptions or self.config.fix_yaml_descriptions,
        )
        if not resolved.valid:
            raise ExtensionValidationError(resolved.error_findings)

        output = target.compile(resolved.ir)

        warnings = [
            BuildWarning(component=w.component, message=w.message, severity="warn")
            for w in resolved.warning_findings
        ]
        warnings.extend(output.warnings)

        result = BuildResult(
            target=options.target,
            files=dict(output.files),
            warnings=warnings,
            compensation_requirements=list(output.compensation_requirements),
        )

        if options.dry_run:
            logger.info("Dry run for %s: %d file(s) not written", options.target, len(result.files))
            return result

        out_dir = Path(options.out_dir) if options.out_dir else self.config.output_dir_for(
            source_dir, options.target
        )
        for relative_path, content in result.files.items():
            write_file_atomic(out_dir / relative_path, content)
        result.out_dir = out_dir
        result.written = True
        logger.info("Wrote %d file(s) for %s to %s", len(result.files), options.target, out_dir)
        return result

    def compile_many(self, targets: list[str], options: BuildOptions) -> list[BuildResult]:
        """
        Compile for several targets.

        Every target name is checked before the first build. With an explicit
        or configured ``out_dir`` each target gets its own subdirectory.
        """
        for name in targets:
            self.registry.get(name)

        results = []
        for name in targets:
            out_dir = options.out_dir or self.config.out_dir
            if out_dir is not None and len(targets) > 1:
                out_dir = Path(out_dir) / name
            results.append(
                self.compile(
                    BuildOptions(
                        target=name,
                        source_dir=options.source_dir,
                        out_dir=out_dir,
                        dry_run=options.dry_run,
                        fix_yaml_descriptions=options.fix_yaml_descriptions,
                        verbose=options.verbose,
                    )
                )
            )
        return results


def compile(options: BuildOptions, registry: TargetRegistry | None = None) -> BuildResult:
    """Compile an extension with a fresh :class:`Compiler`."""
    return Compiler(registry=registry).compile(options)
