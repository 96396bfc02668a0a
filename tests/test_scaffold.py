"""Tests for extension scaffolding."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from ai_ext.resolver import resolve_extension
from ai_ext.scaffold import init_extension


class TestInitExtension:
    def test_creates_project(self, tmp_path: Path) -> None:
        target = tmp_path / "my-ext"

        manifest_path = init_extension(target)

        assert manifest_path == target / "extension.yaml"
        assert yaml.safe_load(manifest_path.read_text())["name"] == "my-ext"
        for sub in ("agents", "hooks", "tools", "policies"):
            assert (target / sub).is_dir()
        assert (target / "skills" / "example" / "SKILL.md").is_file()
        assert (target / "rules" / "project-rules.md").is_file()

    def test_explicit_name(self, tmp_path: Path) -> None:
        manifest_path = init_extension(tmp_path, name="custom")
        assert yaml.safe_load(manifest_path.read_text())["name"] == "custom"

    def test_scaffold_is_valid(self, tmp_path: Path) -> None:
        init_extension(tmp_path / "ext")

        result = resolve_extension(tmp_path / "ext")

        assert result.valid, [str(e) for e in result.errors]
        assert result.ir.counts()["skills"] == 1
        assert result.ir.skills[0].tools.allowed == ["Read", "Grep", "Glob"]

    def test_refuses_existing_manifest(self, tmp_path: Path) -> None:
        (tmp_path / "extension.yml").write_text("name: old\n")

        with pytest.raises(FileExistsError, match="Delete extension.yml to reinitialize"):
            init_extension(tmp_path)

        assert not (tmp_path / "skills").exists()
