"""
Rule-based reply suggestions for students answering a teacher's message.

The rule table lives in ``data/reply_suggestions.json``:

* ``categories`` maps a category name to keywords (ja, vi and en). A
  category matches when any keyword occurs in the lowercased
  ``"{title} {content}"``.
* ``rules`` is an ordered list. A rule matches when all of its ``all``
  categories matched and, if ``any`` is non-empty, at least one of those
  did too. The first matching rule supplies three canned replies and
  three reactions per language. The last rule, ``general``, matches
  everything.

``participation_question`` is not keyword based; it is computed by
``is_participation_question`` and injected into the matched set.
"""

import json
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

from educonnect.core.logging_config import get_logger
from educonnect.models.message import ReactionType
from educonnect.schemas.ai import ReplySuggestions

logger = get_logger(__name__)

DATA_FILE = Path(__file__).resolve().parent.parent.parent / "data" / "reply_suggestions.json"

SUPPORTED_LANGUAGES = ("ja", "vi")
DEFAULT_LANGUAGE = "ja"
SUGGESTION_COUNT = 3
VALID_REACTIONS = tuple(r.value for r in ReactionType)

PARTICIPATION_QUESTION = "participation_question"

# Explicit "can you attend?" / "please reply" phrasing
_PARTICIPATION_PHRASES = (
    "参加できますか",
    "参加できます",
    "返信をお願い",
    "返信してください",
    "tham gia được không",
    "có thể tham gia",
)


def is_participation_question(title: str, content: str, *, include_answer_requests: bool = True) -> bool:
    """Whether the message asks the student to confirm attendance or reply.

    ``include_answer_requests`` also treats "trả lời" + "vui lòng"/"xin"
    (please answer) as a reply request.
    """
    content_lower = (content or "").lower()
    combined = f"{(title or '').lower()} {content_lower}"

    if any(phrase in combined for phrase in _PARTICIPATION_PHRASES):
        return True
    if "có thể" in content_lower and ("?" in content_lower or "？" in content_lower):
        return True
    if "được không" in content_lower:
        return True
    if "返信" in content_lower and ("お願い" in content_lower or "ください" in content_lower):
        return True
    if "phản hồi" in content_lower and ("vui lòng" in content_lower or "xin" in content_lower):
        return True
    if include_answer_requests and "trả lời" in content_lower and (
        "vui lòng" in content_lower or "xin" in content_lower
    ):
        return True
    return False


class SuggestionRule(BaseModel):
    name: str
    all_of: list[str] = Field(default_factory=list, alias="all")
    any_of: list[str] = Field(default_factory=list, alias="any")
    replies: dict[str, list[str]]
    reactions: dict[str, list[str]]

    def matches(self, matched: set[str]) -> bool:
        if not all(category in matched for category in self.all_of):
            return False
        return not self.any_of or any(category in matched for category in self.any_of)


class ReplySuggestionTable:
    """Keyword categories plus the ordered rules that map them to suggestions."""

    def __init__(self, categories: dict[str, list[str]], rules: list[SuggestionRule]):
        if not rules:
            raise ValueError("Reply suggestion table has no rules")
        self.categories = {name: [k.lower() for k in words] for name, words in categories.items()}
        self.rules = rules

    @classmethod
    def from_file(cls, path: Path = DATA_FILE) -> "ReplySuggestionTable":
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        rules = [SuggestionRule.model_validate(rule) for rule in raw["rules"]]
        table = cls(raw["categories"], rules)
        logger.debug(f"Loaded {len(table.categories)} categories and {len(rules)} rules from {path}")
        return table

    def matched_categories(self, title: str, content: str) -> set[str]:
        text = f"{title or ''} {content or ''}".lower()
        matched = {
            name for name, keywords in self.categories.items()
            if any(keyword in text for keyword in keywords)
        }
        if is_participation_question(title, content):
            matched.add(PARTICIPATION_QUESTION)
        return matched

    def match_rule(self, title: str, content: str) -> SuggestionRule:
        matched = self.matched_categories(title, content)
        for rule in self.rules:
            if rule.matches(matched):
                return rule
        return self.rules[-1]

    def suggest(self, title: str, content: str, language: str = DEFAULT_LANGUAGE) -> ReplySuggestions:
        if language not in SUPPORTED_LANGUAGES:
            language = DEFAULT_LANGUAGE
        rule = self.match_rule(title, content)
        logger.debug(f"Reply suggestion rule={rule.name} | language={language}")
        return ReplySuggestions(
            replies=rule.replies[language][:SUGGESTION_COUNT],
            reactions=rule.reactions[language][:SUGGESTION_COUNT],
        )


@lru_cache(maxsize=1)
def get_suggestion_table() -> ReplySuggestionTable:
    return ReplySuggestionTable.from_file()


def fallback_suggestions(title: str, content: str, language: str = DEFAULT_LANGUAGE) -> ReplySuggestions:
    """Canned suggestions chosen by the rule table."""
    return get_suggestion_table().suggest(title, content, language)
