"""Predicate evaluation: does a rule match a message?"""

from typing import Any, Callable, Optional

from .models import MatchKind, Rule


def starts_with_word(content: str, prefix: str) -> bool:
    """
    True if content begins with prefix as a whole word.

    "hi there" starts with the word "hi"; "hiya" does not. Leading
    whitespace in the content is ignored, like splitting into words would.
    """
    content = content.lstrip()
    if not content.startswith(prefix):
        return False
    rest = content[len(prefix):]
    return not rest or rest[0].isspace()


def _contains(content: str, pattern: str) -> bool:
    return pattern in content


def _contains_word(content: str, pattern: str) -> bool:
    return pattern in content.split(" ")


def _ends_with(content: str, pattern: str) -> bool:
    return content.endswith(pattern)


class MessageMatcher:
    """
    Evaluates rules against message content.

    Supports:
    - Substring matching (case-folded or exact)
    - Whole-token matching on single spaces (one word, or any of a set)
    - Leading whole-word matching with aliases (starts_with, command)
    - Suffix matching

    When not case-sensitive both content and patterns are lowercased.
    CONTAINS_EXACT ignores that flag and always compares raw text.
    """

    PREDICATES: dict[MatchKind, Callable[[str, str], bool]] = {
        MatchKind.CONTAINS: _contains,
        MatchKind.CONTAINS_EXACT: _contains,
        MatchKind.CONTAINS_WORD: _contains_word,
        MatchKind.CONTAINS_ANY_OF: _contains_word,
        MatchKind.STARTS_WITH: starts_with_word,
        MatchKind.COMMAND: starts_with_word,
        MatchKind.ENDS_WITH: _ends_with,
    }

    def __init__(self, case_sensitive: bool = False):
        self.case_sensitive = case_sensitive

    def matches(self, rule: Rule, content: Any) -> bool:
        """Return True if the rule matches the message content."""
        return self.match(rule, content) is not None

    def match(self, rule: Rule, content: Any) -> Optional[str]:
        """
        Find which of the rule's patterns matched.

        Returns the matching pattern as registered (original case), or None.
        Patterns are tried in normalized order, so for prefix kinds the
        aliases come before the primary pattern.
        """
        if not isinstance(content, str) or not content:
            return None

        predicate = self.PREDICATES.get(rule.match_kind)
        if predicate is None:
            return None

        fold = not self.case_sensitive and rule.match_kind is not MatchKind.CONTAINS_EXACT
        if fold:
            content = content.lower()

        for pattern in rule.match_patterns:
            candidate = pattern.lower() if fold else pattern
            if predicate(content, candidate):
                return pattern

        return None
