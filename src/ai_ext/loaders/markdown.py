"""
Markdown component loader with YAML frontmatter support.

Component files follow this format:

```markdown
---
name: code-review
description: "Review code for style and correctness"
allowed-tools: Read Grep Glob
---

# Code Review

Instructions for the model...
```
"""

from __future__ import annotations

import re
from pathlib import Path

import yaml

from ai_ext.loaders.base import ComponentLoader, ParsedComponent
from ai_ext.logging import get_logger
from ai_ext.validation import ensure_yaml_quotes, needs_yaml_quotes

logger = get_logger("loaders.markdown")

# Regex to match YAML frontmatter
FRONTMATTER_PATTERN = re.compile(
    r"^---\s*\n(.*?)\n---[ \t]*(?:\n|$)",
    re.DOTALL,
)

# Unquoted single-line description values
DESCRIPTION_PATTERN = re.compile(r"^(description:[ \t]*)(\S.*)$", re.MULTILINE)


class FrontmatterError(ValueError):
    """Raised when a component's frontmatter is not a valid YAML mapping."""


def split_frontmatter(content: str) -> tuple[dict, str]:
    """
    Split markdown into (frontmatter, body).

    A file without a frontmatter block yields an empty mapping and the
    whole text as body.

    Raises:
        FrontmatterError: If the frontmatter is not valid YAML or not a mapping
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return {}, content.strip()

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise FrontmatterError(f"invalid YAML frontmatter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError("frontmatter must be a YAML mapping")

    return data, content[match.end() :].strip()


def quote_descriptions(content: str) -> str:
    """Quote unquoted ``description:`` values in the frontmatter that YAML would misread."""
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return content

    def _quote(m: re.Match[str]) -> str:
        prefix, value = m.group(1), m.group(2)
        if value.lstrip().startswith(("'", '"', "|", ">")):
            return m.group(0)
        if needs_yaml_quotes(value):
            return f"{prefix}{ensure_yaml_quotes(value)}"
        return m.group(0)

    start, end = match.span(1)
    fixed = DESCRIPTION_PATTERN.sub(_quote, content[start:end])
    return content[:start] + fixed + content[end:]


class MarkdownComponentLoader(ComponentLoader):
    """Loads SKILL.md / AGENT.md / HOOK.md / TOOL.md / POLICY.md files."""

    def can_load(self, path: Path, filename: str | None = None) -> bool:
        if path.suffix.lower() != ".md":
            return False
        if filename is None:
            return True
        return path.name.upper() == filename.upper()

    def load(self, path: Path, fix_yaml_descriptions: bool = False) -> ParsedComponent:
        """
        Read and split a component file.

        With ``fix_yaml_descriptions`` the file is rewritten in place when
        quoting a description changes it.
        """
        content = path.read_text(encoding="utf-8")

        if fix_yaml_descriptions:
            fixed = quote_descriptions(content)
            if fixed != content:
                path.write_text(fixed, encoding="utf-8")
                logger.info("Quoted description in %s", path)
                content = fixed

        frontmatter, body = split_frontmatter(content)
        return ParsedComponent(frontmatter=frontmatter, body=body, source_path=path)

