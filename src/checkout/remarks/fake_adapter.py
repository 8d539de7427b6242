"""Word-list moderator for development and testing.

Each blocked word is replaced by asterisks of the same length,
case-insensitively.
"""

import re

from checkout.remarks.port import ModerationResult, RemarkModerator


class WordListModerator(RemarkModerator):
    def __init__(self, blocked_words=None) -> None:
        self.blocked_words: list[str] = list(blocked_words or [])
        self.calls: list[str] = []

    def block(self, *words: str) -> None:
        self.blocked_words.extend(words)

    def moderate(self, text: str) -> ModerationResult:
        self.calls.append(text)
        filtered = text
        hits = []
        for word in self.blocked_words:
            pattern = re.compile(re.escape(word), re.IGNORECASE)
            if pattern.search(filtered):
                hits.append(word)
                filtered = pattern.sub("*" * len(word), filtered)
        return ModerationResult(filtered_text=filtered, is_filtered=bool(hits), filtered_words=hits)
