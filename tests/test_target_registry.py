"""Tests for the target registry."""

from __future__ import annotations

import pytest

from ai_ext.config import AiExtConfig
from ai_ext.models import ExtensionIR
from ai_ext.targets import (
    ClaudeTarget,
    CompilationTarget,
    TargetOutput,
    TargetRegistry,
    UnknownTargetError,
    create_default_registry,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeTarget(CompilationTarget):
    """A target that emits one marker file."""

    name = "fake"
    display_name = "Fake Host"

    def compile(self, ir: ExtensionIR) -> TargetOutput:
        output = TargetOutput()
        output.add_file("FAKE.md", f"{ir.name}\n")
        return output


class TestTargetRegistry:
    def test_register_and_get(self) -> None:
        registry = TargetRegistry()
        target = FakeTarget()
        registry.register("fake", target)

        assert registry.get("fake") is target
        assert "fake" in registry
        assert len(registry) == 1

    def test_factory_is_lazy_and_cached(self) -> None:
        calls: list[AiExtConfig] = []

        def factory(config: AiExtConfig) -> CompilationTarget:
            calls.append(config)
            return FakeTarget(config)

        config = AiExtConfig(runtime_command="custom")
        registry = TargetRegistry(config)
        registry.register_factory("fake", factory)
        assert calls == []

        first = registry.get("fake")
        second = registry.get("fake")

        assert first is second
        assert calls == [config]
        assert first.config.runtime_command == "custom"

    def test_unknown_target(self) -> None:
        registry = create_default_registry()

        with pytest.raises(UnknownTargetError) as exc_info:
            registry.get("vscode")

        assert exc_info.value.name == "vscode"
        assert exc_info.value.available == ["claude", "kilocode", "opencode"]
        assert str(exc_info.value) == (
            'Unknown target "vscode". Supported targets: claude, kilocode, opencode'
        )

    def test_unknown_target_is_key_error(self) -> None:
        with pytest.raises(KeyError):
            TargetRegistry().get("nope")

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            TargetRegistry().register("", FakeTarget())

    def test_default_registry(self) -> None:
        registry = create_default_registry()

        assert registry.list_targets() == ["claude", "kilocode", "opencode"]
        assert isinstance(registry.get("claude"), ClaudeTarget)
        info = registry.get_info("kilocode")
        assert info["display_name"] == "KiloCode"
        assert info["native_hook_events"] == []

    def test_registries_are_independent(self) -> None:
        first = create_default_registry()
        second = create_default_registry()
        first.register("fake", FakeTarget())

        assert "fake" in first
        assert "fake" not in second
        assert first.get("claude") is not second.get("claude")

    def test_unregister_and_clear(self) -> None:
        registry = create_default_registry()

        assert registry.unregister("claude") is True
        assert registry.unregister("claude") is False
        registry.clear()
        assert registry.list_targets() == []
