"""Issue type letters and the canonical issue-key format.

A key reads ``{PRODUCT_CODE}-{TYPE_LETTER}{NUMBER}`` with the number
zero-padded to at least three digits, e.g. ``HRM-T001`` or ``HRM-T1000``.
This module is the only place keys are built or parsed.
"""

import re
from dataclasses import dataclass
from enum import StrEnum

from tracker.core.constants import ISSUE_NUMBER_MIN_WIDTH
from tracker.core.errors import ValidationError


class IssueType(StrEnum):
    """One-letter codes identifying the kind of a keyed work item."""

    EPIC = "E"
    FEATURE = "F"
    TASK = "T"
    BUG = "B"
    SUPPORT = "S"
    FEATURE_REQUEST = "R"
    SPIKE = "K"
    NOTE = "N"


TYPE_CODES: dict[str, IssueType] = {
    "epic": IssueType.EPIC,
    "feature": IssueType.FEATURE,
    "task": IssueType.TASK,
    "bug": IssueType.BUG,
    "support": IssueType.SUPPORT,
    "feature_request": IssueType.FEATURE_REQUEST,
    "spike": IssueType.SPIKE,
    "note": IssueType.NOTE,
}

_KEY_PATTERN = re.compile(r"^([A-Z0-9]+(?:-[A-Z0-9]+)*)-([A-Z])(\d{3,})$")


@dataclass(frozen=True)
class IssueKey:
    """Parsed form of an issue key."""

    product_code: str
    issue_type: IssueType
    number: int

    def __str__(self) -> str:
        return format_issue_key(self.product_code, self.issue_type, self.number)


def type_code_for(kind: str) -> IssueType:
    """Map a work-item kind name (``"task"``, ``"epic"``...) to its letter.

    Raises:
        ValidationError: If the kind has no issue type
    """
    try:
        return TYPE_CODES[kind.lower()]
    except KeyError:
        raise ValidationError(
            f"Unknown issue type '{kind}'",
            errors=[{"field": "issue_type", "message": f"Must be one of {sorted(TYPE_CODES)}"}],
        ) from None


def format_issue_key(product_code: str, issue_type: IssueType | str, number: int) -> str:
    """Build the canonical key for an allocated number.

    Args:
        product_code: The product's short code, e.g. ``HRM``
        issue_type: Type letter
        number: Allocated sequence number, starting at 1

    Returns:
        Key such as ``HRM-T001``
    """
    if number < 1:
        raise ValueError(f"Issue numbers start at 1, got {number}")
    letter = IssueType(issue_type)
    return f"{product_code.upper()}-{letter.value}{number:0{ISSUE_NUMBER_MIN_WIDTH}d}"


def parse_issue_key(key: str) -> IssueKey:
    """Split a key into product code, type letter and number.

    Raises:
        ValidationError: If the key is not in canonical form
    """
    match = _KEY_PATTERN.match(key.strip())
    if match is None:
        raise ValidationError(
            f"Invalid issue key '{key}'",
            errors=[{"field": "issue_key", "message": "Expected CODE-X001"}],
        )
    code, letter, digits = match.groups()
    if int(digits) == 0:
        raise ValidationError(
            f"Invalid issue key '{key}'",
            errors=[{"field": "issue_key", "message": "Numbers start at 001"}],
        )
    try:
        issue_type = IssueType(letter)
    except ValueError:
        raise ValidationError(
            f"Unknown issue type letter '{letter}' in '{key}'",
            errors=[{"field": "issue_key", "message": "Unknown type letter"}],
        ) from None
    return IssueKey(product_code=code, issue_type=issue_type, number=int(digits))


def is_valid_issue_key(key: str) -> bool:
    """Check whether a string is a well-formed issue key."""
    try:
        parse_issue_key(key)
    except ValidationError:
        return False
    return True
