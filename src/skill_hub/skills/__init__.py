"""Skill discovery, the central repository and target synchronization."""

from skill_hub.skills.discovery import SkillCandidate, list_skill_candidates, validate_skill_dir
from skill_hub.skills.manager import (
    InstallResult,
    UpdateResult,
    get_central_repo_path,
    install_git_skill,
    install_git_skill_from_selection,
    install_local_skill,
    install_local_skill_from_selection,
    list_git_skills,
    list_local_skills,
    update_managed_skill_from_source,
)
from skill_hub.skills.sync import SyncResult, sync_skill_to_tool, unsync_skill_from_tool

__all__ = [
    "InstallResult",
    "SkillCandidate",
    "SyncResult",
    "UpdateResult",
    "get_central_repo_path",
    "install_git_skill",
    "install_git_skill_from_selection",
    "install_local_skill",
    "install_local_skill_from_selection",
    "list_git_skills",
    "list_local_skills",
    "list_skill_candidates",
    "sync_skill_to_tool",
    "unsync_skill_from_tool",
    "update_managed_skill_from_source",
    "validate_skill_dir",
]
