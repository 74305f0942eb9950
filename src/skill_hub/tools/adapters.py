"""Static catalogue of agent tools and where they look for skills.

Directories are relative to the user's home directory. Several tools share a
skills directory (e.g. Amp and Kimi Code CLI); those groups are derived from
the table, never hard-coded.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from skill_hub.core.exceptions import ToolNotFoundError


@dataclass(frozen=True, slots=True)
class ToolAdapter:
    id: str
    display_name: str
    relative_skills_dir: str
    """Global skill directory under the user home."""
    relative_detect_dir: str
    """Directory whose presence means the tool is installed."""


TOOL_ADAPTERS: tuple[ToolAdapter, ...] = (
    ToolAdapter("cursor", "Cursor", ".cursor/skills", ".cursor"),
    ToolAdapter("claude_code", "Claude Code", ".claude/skills", ".claude"),
    ToolAdapter("codex", "Codex", ".codex/skills", ".codex"),
    ToolAdapter("opencode", "OpenCode", ".config/opencode/skills", ".config/opencode"),
    ToolAdapter(
        "antigravity",
        "Antigravity",
        ".gemini/antigravity/global_skills",
        ".gemini/antigravity",
    ),
    ToolAdapter("amp", "Amp", ".config/agents/skills", ".config/agents"),
    ToolAdapter("kimi_cli", "Kimi Code CLI", ".config/agents/skills", ".config/agents"),
    ToolAdapter("augment", "Augment", ".augment/rules", ".augment"),
    ToolAdapter("openclaw", "OpenClaw", ".moltbot/skills", ".moltbot"),
    ToolAdapter("cline", "Cline", ".cline/skills", ".cline"),
    ToolAdapter("codebuddy", "CodeBuddy", ".codebuddy/skills", ".codebuddy"),
    ToolAdapter("command_code", "Command Code", ".commandcode/skills", ".commandcode"),
    ToolAdapter("continue", "Continue", ".continue/skills", ".continue"),
    ToolAdapter("crush", "Crush", ".config/crush/skills", ".config/crush"),
    ToolAdapter("junie", "Junie", ".junie/skills", ".junie"),
    ToolAdapter("iflow_cli", "iFlow CLI", ".iflow/skills", ".iflow"),
    ToolAdapter("kiro_cli", "Kiro CLI", ".kiro/skills", ".kiro"),
    ToolAdapter("kode", "Kode", ".kode/skills", ".kode"),
    ToolAdapter("mcpjam", "MCPJam", ".mcpjam/skills", ".mcpjam"),
    ToolAdapter("mistral_vibe", "Mistral Vibe", ".vibe/skills", ".vibe"),
    ToolAdapter("mux", "Mux", ".mux/skills", ".mux"),
    ToolAdapter("openclaude", "OpenClaude IDE", ".openclaude/skills", ".openclaude"),
    ToolAdapter("openhands", "OpenHands", ".openhands/skills", ".openhands"),
    ToolAdapter("pi", "Pi", ".pi/agent/skills", ".pi"),
    ToolAdapter("qoder", "Qoder", ".qoder/skills", ".qoder"),
    ToolAdapter("qwen_code", "Qwen Code", ".qwen/skills", ".qwen"),
    ToolAdapter("trae", "Trae", ".trae/skills", ".trae"),
    ToolAdapter("trae_cn", "Trae CN", ".trae-cn/skills", ".trae-cn"),
    ToolAdapter("zencoder", "Zencoder", ".zencoder/skills", ".zencoder"),
    ToolAdapter("neovate", "Neovate", ".neovate/skills", ".neovate"),
    ToolAdapter("pochi", "Pochi", ".pochi/skills", ".pochi"),
    ToolAdapter("adal", "AdaL", ".adal/skills", ".adal"),
    ToolAdapter("kilo_code", "Kilo Code", ".kilocode/skills", ".kilocode"),
    ToolAdapter("roo_code", "Roo Code", ".roo/skills", ".roo"),
    ToolAdapter("goose", "Goose", ".config/goose/skills", ".config/goose"),
    ToolAdapter("gemini_cli", "Gemini CLI", ".gemini/skills", ".gemini"),
    ToolAdapter("github_copilot", "GitHub Copilot", ".copilot/skills", ".copilot"),
    ToolAdapter("clawdbot", "Clawdbot", ".clawdbot/skills", ".clawdbot"),
    ToolAdapter("droid", "Droid", ".factory/skills", ".factory"),
    ToolAdapter("windsurf", "Windsurf", ".codeium/windsurf/skills", ".codeium/windsurf"),
)

_ADAPTERS_BY_KEY = {adapter.id: adapter for adapter in TOOL_ADAPTERS}


def default_tool_adapters() -> list[ToolAdapter]:
    return list(TOOL_ADAPTERS)


def adapter_by_key(key: str) -> ToolAdapter | None:
    return _ADAPTERS_BY_KEY.get(key)


def require_adapter(key: str) -> ToolAdapter:
    adapter = adapter_by_key(key)
    if adapter is None:
        raise ToolNotFoundError(key)
    return adapter


def adapters_sharing_skills_dir(adapter: ToolAdapter) -> list[ToolAdapter]:
    """Every adapter (including ``adapter``) whose skills directory is the same path."""
    return [
        candidate
        for candidate in TOOL_ADAPTERS
        if candidate.relative_skills_dir == adapter.relative_skills_dir
    ]


def shared_skills_dir_groups() -> dict[str, list[str]]:
    """Map each shared skills directory to the tool keys using it (groups of 2+ only)."""
    by_dir: dict[str, list[str]] = {}
    for adapter in TOOL_ADAPTERS:
        by_dir.setdefault(adapter.relative_skills_dir, []).append(adapter.id)
    return {directory: keys for directory, keys in by_dir.items() if len(keys) > 1}


def resolve_default_path(adapter: ToolAdapter, home: Path | None = None) -> Path:
    return (home or Path.home()) / adapter.relative_skills_dir


def resolve_detect_path(adapter: ToolAdapter, home: Path | None = None) -> Path:
    return (home or Path.home()) / adapter.relative_detect_dir


def is_tool_installed(adapter: ToolAdapter, home: Path | None = None) -> bool:
    return resolve_detect_path(adapter, home).exists()
