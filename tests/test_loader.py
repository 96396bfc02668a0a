"""Tests for the manifest and markdown component loaders."""

from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from ai_ext.loaders import (
    FrontmatterError,
    ManifestError,
    ManifestNotFoundError,
    MarkdownComponentLoader,
    find_manifest,
    load_manifest,
    quote_descriptions,
    split_frontmatter,
)


class TestSplitFrontmatter:
    def test_basic(self) -> None:
        content = dedent("""
            ---
            name: test
            description: A test
            ---

            # Body

            Text.
        """).lstrip()
        frontmatter, body = split_frontmatter(content)
        assert frontmatter == {"name": "test", "description": "A test"}
        assert body == "# Body\n\nText."

    def test_no_frontmatter(self) -> None:
        frontmatter, body = split_frontmatter("# Just markdown\n")
        assert frontmatter == {}
        assert body == "# Just markdown"

    def test_empty_frontmatter(self) -> None:
        frontmatter, body = split_frontmatter("---\n\n---\nbody")
        assert frontmatter == {}
        assert body == "body"

    def test_invalid_yaml(self) -> None:
        with pytest.raises(FrontmatterError):
            split_frontmatter("---\nname: [unclosed\n---\n")

    def test_non_mapping(self) -> None:
        with pytest.raises(FrontmatterError, match="mapping"):
            split_frontmatter("---\n- a\n- b\n---\n")


class TestQuoteDescriptions:
    def test_quotes_colon(self) -> None:
        content = "---\nname: x\ndescription: Use when: asked\n---\nBody: stays\n"
        fixed = quote_descriptions(content)
        assert 'description: "Use when: asked"' in fixed
        assert fixed.endswith("Body: stays\n")

    def test_leaves_safe_values(self) -> None:
        content = "---\nname: x\ndescription: Plain text\n---\n"
        assert quote_descriptions(content) == content

    def test_leaves_quoted_values(self) -> None:
        content = "---\nname: x\ndescription: 'Use when: asked'\n---\n"
        assert quote_descriptions(content) == content

    def test_only_touches_frontmatter(self) -> None:
        content = "# No frontmatter\ndescription: a: b\n"
        assert quote_descriptions(content) == content


class TestMarkdownComponentLoader:
    @pytest.fixture
    def loader(self) -> MarkdownComponentLoader:
        return MarkdownComponentLoader()

    def test_can_load(self, loader: MarkdownComponentLoader) -> None:
        assert loader.can_load(Path("x/SKILL.md"), "SKILL.md")
        assert loader.can_load(Path("x/skill.md"), "SKILL.md")
        assert not loader.can_load(Path("x/README.md"), "SKILL.md")
        assert not loader.can_load(Path("x/SKILL.txt"), "SKILL.md")

    def test_load(self, loader: MarkdownComponentLoader, tmp_path: Path) -> None:
        path = tmp_path / "SKILL.md"
        path.write_text("---\nname: s\ndescription: d\n---\n\nDo things.\n")
        parsed = loader.load(path)
        assert parsed.frontmatter == {"name": "s", "description": "d"}
        assert parsed.body == "Do things."
        assert parsed.source_path == path

    def test_load_with_fix_rewrites_file(
        self, loader: MarkdownComponentLoader, tmp_path: Path
    ) -> None:
        path = tmp_path / "SKILL.md"
        path.write_text("---\nname: s\ndescription: Use when: asked\n---\n")

        with pytest.raises(FrontmatterError):
            loader.load(path)

        parsed = loader.load(path, fix_yaml_descriptions=True)
        assert parsed.frontmatter["description"] == "Use when: asked"
        assert 'description: "Use when: asked"' in path.read_text()

    def test_discover_is_sorted_and_recursive(
        self, loader: MarkdownComponentLoader, tmp_path: Path
    ) -> None:
        for name in ("zeta", "alpha", "nested/beta"):
            directory = tmp_path / "skills" / name
            directory.mkdir(parents=True)
            (directory / "SKILL.md").write_text("---\nname: x\n---\n")
        (tmp_path / "skills" / "alpha" / "notes.md").write_text("ignored")

        found = loader.discover(tmp_path, "./skills/", "SKILL.md")
        rel = [p.relative_to((tmp_path / "skills").resolve()).as_posix() for p in found]
        assert rel == ["alpha/SKILL.md", "nested/beta/SKILL.md", "zeta/SKILL.md"]

    def test_discover_missing_dir(self, loader: MarkdownComponentLoader, tmp_path: Path) -> None:
        assert loader.discover(tmp_path, "./skills/", "SKILL.md") == []
        assert loader.discover(tmp_path, None, "SKILL.md") == []

    def test_discover_rules(self, loader: MarkdownComponentLoader, tmp_path: Path) -> None:
        rules = tmp_path / "rules"
        (rules / "sub").mkdir(parents=True)
        (rules / "b.md").write_text("B")
        (rules / "sub" / "a.md").write_text("A")
        (rules / "skip.txt").write_text("no")

        assert loader.discover_rules(tmp_path, "./rules/") == {"b.md": "B", "sub/a.md": "A"}


class TestManifest:
    def test_find_manifest(self, tmp_path: Path) -> None:
        assert find_manifest(tmp_path) is None
        (tmp_path / "extension.yml").write_text("name: x\n")
        assert find_manifest(tmp_path) == tmp_path / "extension.yml"

    def test_load_manifest(self, tmp_path: Path) -> None:
        (tmp_path / "extension.yaml").write_text(
            "name: demo\nversion: 1.0\ndescription: Demo\nskills: ./skills/\n"
        )
        manifest = load_manifest(tmp_path)
        assert manifest.name == "demo"
        assert manifest.version == "1.0"
        assert manifest.component_dir("skills") == "./skills/"
        assert manifest.component_dir("agents") is None

    def test_missing_manifest(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestNotFoundError, match="ai-ext init"):
            load_manifest(tmp_path)

    def test_missing_manifest_is_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_manifest(tmp_path)

    def test_invalid_manifest(self, tmp_path: Path) -> None:
        (tmp_path / "extension.yaml").write_text("- just\n- a list\n")
        with pytest.raises(ManifestError):
            load_manifest(tmp_path)
