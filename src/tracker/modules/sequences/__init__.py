"""Issue-key sequences: canonical format and atomic allocation."""

from tracker.modules.sequences.allocator import SequenceAllocator
from tracker.modules.sequences.issue_keys import (
    IssueKey,
    IssueType,
    format_issue_key,
    is_valid_issue_key,
    parse_issue_key,
    type_code_for,
)
from tracker.modules.sequences.routes import router


__all__ = [
    "IssueKey",
    "IssueType",
    "SequenceAllocator",
    "format_issue_key",
    "is_valid_issue_key",
    "parse_issue_key",
    "router",
    "type_code_for",
]
