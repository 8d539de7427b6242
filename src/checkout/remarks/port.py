"""Content moderation port for customer-written text."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ModerationResult:
    filtered_text: str
    is_filtered: bool = False
    filtered_words: list[str] = field(default_factory=list)


class RemarkModerator(ABC):
    @abstractmethod
    def moderate(self, text: str) -> ModerationResult:
        """Return ``text`` with blocked words masked."""
        ...
