"""
Component loaders for extension source trees.
"""

from ai_ext.loaders.base import ComponentLoader, ParsedComponent
from ai_ext.loaders.manifest import (
    ManifestError,
    ManifestNotFoundError,
    find_manifest,
    load_manifest,
    load_manifest_data,
    manifest_from_dict,
)
from ai_ext.loaders.markdown import (
    FrontmatterError,
    MarkdownComponentLoader,
    quote_descriptions,
    split_frontmatter,
)

__all__ = [
    "ComponentLoader",
    "FrontmatterError",
    "ManifestError",
    "ManifestNotFoundError",
    "MarkdownComponentLoader",
    "ParsedComponent",
    "find_manifest",
    "load_manifest",
    "load_manifest_data",
    "manifest_from_dict",
    "quote_descriptions",
    "split_frontmatter",
]
