"""Skill source resolution and git helpers."""

from skill_hub.sources.source_utils import (
    SourceDescriptor,
    is_remote_source,
    parse_repo_source,
)

__all__ = [
    "SourceDescriptor",
    "is_remote_source",
    "parse_repo_source",
]
