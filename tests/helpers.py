"""Helpers for faking SQLAlchemy results."""

from unittest.mock import MagicMock


def result_with(value: object) -> MagicMock:
    """Build a fake result whose scalar accessors return ``value``."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    result.one_or_none.return_value = None if value is None else (value,)
    result.scalars.return_value.all.return_value = value if isinstance(value, list) else [value]
    return result


def executed_statements(session: MagicMock) -> list[object]:
    """Statements passed to ``session.execute`` so far, in order."""
    return [call.args[0] for call in session.execute.await_args_list]
