"""Remark moderator factory.

Provides get_remark_moderator() / set_remark_moderator(). Defaults to a
WordListModerator with an empty word list.
"""

from checkout.remarks.fake_adapter import WordListModerator
from checkout.remarks.port import RemarkModerator

_current_moderator: RemarkModerator | None = None


def get_remark_moderator() -> RemarkModerator:
    """Return the current moderator. Defaults to WordListModerator."""
    global _current_moderator
    if _current_moderator is None:
        _current_moderator = WordListModerator()
    return _current_moderator


def set_remark_moderator(moderator: RemarkModerator) -> None:
    """Override the active moderator (useful for tests)."""
    global _current_moderator
    _current_moderator = moderator


def reset_remark_moderator() -> None:
    """Reset to default moderator."""
    global _current_moderator
    _current_moderator = None
