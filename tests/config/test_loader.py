"""Tests for studio_relay.config.loader — YAML config loading with priority merging."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from studio_relay.config.loader import load_settings, settings_files
from studio_relay.config.settings import DEFAULT_SYSTEM_PROMPT

if TYPE_CHECKING:
    from pathlib import Path


def _write(base: Path, text: str) -> None:
    settings_file = base / ".studio" / "settings.yaml"
    settings_file.parent.mkdir(parents=True, exist_ok=True)
    settings_file.write_text(text)


class TestLoadFromProjectFile:
    async def test_load_project_settings(self, tmp_path: Path) -> None:
        _write(tmp_path, "relay:\n  system_prompt: Hi there\nverbose: true\n")

        s = await load_settings(project_dir=tmp_path, user_dir=tmp_path / "nonexistent")
        assert s.relay.system_prompt == "Hi there"
        assert s.verbose is True

    async def test_missing_project_file_uses_defaults(self, tmp_path: Path) -> None:
        s = await load_settings(project_dir=tmp_path, user_dir=tmp_path / "nonexistent")
        assert s.relay.system_prompt == DEFAULT_SYSTEM_PROMPT

    async def test_empty_file(self, tmp_path: Path) -> None:
        _write(tmp_path, "")
        s = await load_settings(project_dir=tmp_path)
        assert s.server.port == 8080

    async def test_custom_models(self, tmp_path: Path) -> None:
        _write(tmp_path, (
            "relay:\n"
            "  aliases:\n"
            "    local: llama\n"
            "  models:\n"
            "    - name: llama\n"
            "      provider: gateway\n"
            "      model: llama-3\n"
            "      base_url: http://localhost:11434/v1\n"
        ))
        s = await load_settings(project_dir=tmp_path)
        assert s.relay.models[0].name == "llama"
        assert s.relay.aliases == {"local": "llama"}


class TestLoadFromUserFile:
    async def test_user_level_fallback(self, tmp_path: Path) -> None:
        _write(tmp_path / "user", "server:\n  port: 9001\n")

        s = await load_settings(project_dir=tmp_path / "project", user_dir=tmp_path / "user")
        assert s.server.port == 9001

    async def test_project_overrides_user(self, tmp_path: Path) -> None:
        _write(tmp_path / "user", "server:\n  port: 9001\n  host: 0.0.0.0\nverbose: true\n")
        _write(tmp_path / "project", "server:\n  port: 9002\n")

        s = await load_settings(project_dir=tmp_path / "project", user_dir=tmp_path / "user")
        assert s.server.port == 9002
        # Nested keys not set by the project file survive the merge
        assert s.server.host == "0.0.0.0"
        assert s.verbose is True


class TestEnvironmentVariableOverride:
    async def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write(tmp_path, "server:\n  port: 9001\n")
        monkeypatch.setenv("STUDIO_SERVER_PORT", "9999")

        s = await load_settings(project_dir=tmp_path)
        assert s.server.port == 9999

    async def test_env_values_converted(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STUDIO_CONNECT_TIMEOUT", "2.5")
        monkeypatch.setenv("STUDIO_VERBOSE", "yes")
        monkeypatch.setenv("STUDIO_MESSAGES_FILE", "/tmp/m.json")
        monkeypatch.setenv("STUDIO_SYSTEM_PROMPT", "Short answers.")

        s = await load_settings(project_dir=tmp_path)
        assert s.relay.connect_timeout == 2.5
        assert s.verbose is True
        assert s.storage.messages_file == "/tmp/m.json"
        assert s.relay.system_prompt == "Short answers."

    async def test_bad_env_value(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STUDIO_SERVER_PORT", "eighty")
        with pytest.raises(ValueError, match="STUDIO_SERVER_PORT"):
            await load_settings(project_dir=tmp_path)


class TestInvalidFiles:
    async def test_invalid_yaml(self, tmp_path: Path) -> None:
        _write(tmp_path, "server: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid YAML"):
            await load_settings(project_dir=tmp_path)

    async def test_non_mapping(self, tmp_path: Path) -> None:
        _write(tmp_path, "- a\n- b\n")
        with pytest.raises(ValueError, match="Expected mapping"):
            await load_settings(project_dir=tmp_path)

    async def test_schema_violation(self, tmp_path: Path) -> None:
        _write(tmp_path, "server:\n  port: not-a-port\n")
        with pytest.raises(ValueError, match="Invalid settings"):
            await load_settings(project_dir=tmp_path)


class TestSettingsFiles:
    def test_lowest_priority_first(self, tmp_path: Path) -> None:
        _write(tmp_path / "user", "verbose: true\n")
        _write(tmp_path / "project", "verbose: false\n")

        found = settings_files(project_dir=tmp_path / "project", user_dir=tmp_path / "user")
        assert [p.parent.parent.name for p in found] == ["user", "project"]

    def test_missing_files_skipped(self, tmp_path: Path) -> None:
        assert settings_files(project_dir=tmp_path, user_dir=None) == []
