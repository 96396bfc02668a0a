"""
ai-ext - Write an AI agent extension once, compile it for every host.

An extension is a directory of skills, agents, hooks, tools, policies and
rules described by ``extension.yaml``. ai-ext resolves it into one
canonical representation and emits native files for Claude Code, KiloCode
and OpenCode. Capabilities a host lacks are bridged by the ``ai-ext serve``
runtime MCP server.

Example:
    from ai_ext import BuildOptions, Compiler

    compiler = Compiler()
    result = compiler.compile(BuildOptions(target="opencode", source_dir="./my-ext"))

    for warning in result.warnings:
        print(warning.component, warning.message)
"""

from ai_ext.compiler import Compiler, ExtensionValidationError, compile
from ai_ext.config import AiExtConfig
from ai_ext.loaders import ManifestNotFoundError, MarkdownComponentLoader
from ai_ext.logging import get_logger, setup_logging
from ai_ext.models import (
    AgentDefinition,
    BuildOptions,
    BuildResult,
    BuildWarning,
    CompensationRequirement,
    ExtensionIR,
    ExtensionManifest,
    HookDefinition,
    PolicyDefinition,
    SkillDefinition,
    ToolDefinition,
)
from ai_ext.resolver import ResolveError, ResolveResult, Resolver, resolve_extension
from ai_ext.runtime import HookEngine, MemoryStore, RuntimeToolbox, ToolExecutor
from ai_ext.scaffold import init_extension
from ai_ext.targets import (
    CompilationTarget,
    TargetRegistry,
    UnknownTargetError,
    create_default_registry,
)

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "Compiler",
    "compile",
    "ExtensionValidationError",
    "Resolver",
    "ResolveResult",
    "ResolveError",
    "resolve_extension",
    "init_extension",
    # Config
    "AiExtConfig",
    # Loading
    "MarkdownComponentLoader",
    "ManifestNotFoundError",
    # Models
    "ExtensionManifest",
    "ExtensionIR",
    "SkillDefinition",
    "AgentDefinition",
    "HookDefinition",
    "ToolDefinition",
    "PolicyDefinition",
    "BuildOptions",
    "BuildResult",
    "BuildWarning",
    "CompensationRequirement",
    # Targets
    "CompilationTarget",
    "TargetRegistry",
    "UnknownTargetError",
    "create_default_registry",
    # Runtime
    "HookEngine",
    "ToolExecutor",
    "MemoryStore",
    "RuntimeToolbox",
    # Logging
    "setup_logging",
    "get_logger",
]
