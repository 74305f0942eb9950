"""Error types raised by the skill hub core.

Structured errors render as ``CODE|payload`` strings so a host shell can
match on the prefix without parsing free text.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class SkillHubError(Exception):
    """Base exception class for skill hub errors"""

    def __init__(self, message: str, details: str = "") -> None:
        self.message = message
        self.details = details
        super().__init__(f"{message}\n\n{details}" if details else message)


class ConfigurationError(SkillHubError):
    """Missing or unusable configuration (e.g. central repository path)."""


class SkillInvalidError(SkillHubError):
    """A skill directory failed manifest validation."""

    def __init__(self, reason: str, details: str = "") -> None:
        self.reason = reason
        super().__init__(f"SKILL_INVALID|{reason}", details)


class MultipleSkillsError(SkillHubError):
    """More than one installable skill where exactly one was expected."""

    def __init__(self, subpaths: Sequence[str]) -> None:
        self.subpaths = list(subpaths)
        super().__init__("MULTI_SKILLS|" + ",".join(self.subpaths))


class NoSkillsFoundError(SkillHubError):
    """A source contains no installable skill."""


class SkillExistsError(SkillHubError):
    """Install would overwrite an existing skill id or name."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"skill already exists in central repo: {identifier}")


class SkillNotFoundError(SkillHubError):
    """No managed skill with the requested id."""

    def __init__(self, skill_id: str) -> None:
        self.skill_id = skill_id
        super().__init__(f"skill not found: {skill_id}")


class ToolNotFoundError(SkillHubError):
    """Unknown tool adapter key."""

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f"unknown tool: {tool}")


class ToolNotInstalledError(SkillHubError):
    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f"TOOL_NOT_INSTALLED|{tool}")


class TargetExistsError(SkillHubError):
    """The target path is occupied by content this skill does not own."""

    def __init__(self, target_path: str) -> None:
        self.target_path = target_path
        super().__init__(f"TARGET_EXISTS|{target_path}")


class SourceFetchError(SkillHubError):
    """Fetching a remote skill source failed."""
