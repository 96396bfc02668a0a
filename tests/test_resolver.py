"""Tests for extension resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from ai_ext.loaders import ManifestNotFoundError
from ai_ext.resolver import ResolveError, Resolver, resolve_extension

from conftest import write


class TestResolveExtension:
    def test_full_extension(self, extension_dir: Path) -> None:
        result = resolve_extension(extension_dir)

        assert result.valid, [str(e) for e in result.errors]
        assert result.error_findings == []
        assert result.ir.name == "demo-ext"
        assert result.ir.counts() == {
            "skills": 1,
            "agents": 1,
            "hooks": 1,
            "tools": 1,
            "policies": 1,
            "rules": 1,
        }
        assert list(result.ir.rules) == ["style.md"]

    def test_missing_manifest_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestNotFoundError):
            resolve_extension(tmp_path)

    def test_invalid_component_is_isolated(self, extension_dir: Path) -> None:
        """One broken skill yields one error; its siblings still resolve."""
        write(
            extension_dir / "skills" / "extra" / "SKILL.md",
            """
            ---
            name: extra
            description: Another skill
            ---
            Extra.
            """,
        )
        write(
            extension_dir / "skills" / "broken" / "SKILL.md",
            """
            ---
            description: No name here
            ---
            Broken.
            """,
        )

        result = resolve_extension(extension_dir)

        assert not result.valid
        assert len(result.error_findings) == 1
        finding = result.error_findings[0]
        assert finding.component == "skill"
        assert finding.file.endswith("SKILL.md")
        assert "name is required" in finding.message
        assert sorted(s.name for s in result.ir.skills) == ["code-review", "extra"]

    def test_unparseable_file(self, extension_dir: Path) -> None:
        write(
            extension_dir / "agents" / "bad" / "AGENT.md",
            """
            ---
            name: [unclosed
            ---
            """,
        )

        result = resolve_extension(extension_dir)

        assert not result.valid
        assert len(result.error_findings) == 1
        assert result.error_findings[0].component == "agent"
        assert result.error_findings[0].message.startswith("Failed to parse:")
        assert [a.name for a in result.ir.agents] == ["reviewer"]

    def test_skill_name_mismatch_warns_once(self, extension_dir: Path) -> None:
        write(
            extension_dir / "skills" / "some-dir" / "SKILL.md",
            """
            ---
            name: other-name
            description: Name differs from directory
            ---
            Body.
            """,
        )

        result = resolve_extension(extension_dir)

        assert result.valid
        warnings = result.warning_findings
        assert len(warnings) == 1
        assert warnings[0].component == "skill:other-name"
        assert "does not match directory" in warnings[0].message
        assert "other-name" in [s.name for s in result.ir.skills]

    def test_manifest_errors(self, tmp_path: Path) -> None:
        write(tmp_path / "extension.yaml", "name: demo\n")

        result = resolve_extension(tmp_path)

        assert not result.valid
        assert {e.component for e in result.error_findings} == {"manifest"}
        assert len(result.error_findings) == 2

    def test_manifest_yaml_error_is_recorded(self, tmp_path: Path) -> None:
        write(tmp_path / "extension.yaml", "name: [broken\n")

        result = resolve_extension(tmp_path)

        assert not result.valid
        assert result.error_findings[0].component == "manifest"

    def test_idempotent(self, extension_dir: Path) -> None:
        first = resolve_extension(extension_dir)
        second = resolve_extension(extension_dir)

        assert first.ir.to_dict() == second.ir.to_dict()
        assert [e.to_dict() for e in first.errors] == [e.to_dict() for e in second.errors]

    def test_fix_yaml_descriptions(self, extension_dir: Path) -> None:
        path = write(
            extension_dir / "skills" / "colon" / "SKILL.md",
            """
            ---
            name: colon
            description: Use when: the user asks
            ---
            Body.
            """,
        )

        assert not resolve_extension(extension_dir).valid

        result = Resolver().resolve(extension_dir, fix_yaml_descriptions=True)
        assert result.valid
        assert 'description: "Use when: the user asks"' in path.read_text()


class TestResolveError:
    def test_str(self) -> None:
        error = ResolveError("skill:x", "skills/x/SKILL.md", "bad")
        assert str(error) == "skill:x (skills/x/SKILL.md): bad"
        assert error.to_dict()["severity"] == "error"
