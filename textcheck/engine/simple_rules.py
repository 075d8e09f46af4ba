"""
Small regular-expression rule engine.

It stands in for a real linguistic engine so the server can be started and
exercised without one. The rules are language independent.
"""

import logging
import re
from typing import Callable, Collection, Iterator, List, Sequence, Tuple

from textcheck.core.matches import Match
from textcheck.core.positions import TextPositions

from .base import AnalysisEngine

logger = logging.getLogger(__name__)

# start, end, replacements
RuleHit = Tuple[int, int, List[str]]

_SENTENCE_START = re.compile(r"(?:^|[.!?]\s+)([^\W\d_][\w']*)")
_REPEATED_SPACE = re.compile(r"(?<=\S)  +(?=\S)")
_REPEATED_WORD = re.compile(r"\b(\w+)(\s+)(\1)\b", re.IGNORECASE)


def _uppercase_sentence_start(text: str) -> Iterator[RuleHit]:
    for found in _SENTENCE_START.finditer(text):
        word = found.group(1)
        if word[0].islower():
            yield found.start(1), found.end(1), [word[0].upper() + word[1:]]


def _whitespace(text: str) -> Iterator[RuleHit]:
    for found in _REPEATED_SPACE.finditer(text):
        yield found.start(), found.end(), [" "]


def _word_repeat(text: str) -> Iterator[RuleHit]:
    for found in _REPEATED_WORD.finditer(text):
        yield found.start(), found.end(), [found.group(1)]


class Rule:
    """A named pattern check with a fixed message."""

    def __init__(self, rule_id: str, message: str,
                 finder: Callable[[str], Iterator[RuleHit]]):
        self.rule_id = rule_id
        self.message = message
        self.finder = finder


DEFAULT_RULES = (
    Rule("UPPERCASE_SENTENCE_START",
         "This sentence does not start with an uppercase letter",
         _uppercase_sentence_start),
    Rule("WHITESPACE_RULE",
         "Possible typo: you repeated a whitespace",
         _whitespace),
    Rule("WORD_REPEAT_RULE",
         "Possible typo: you repeated a word",
         _word_repeat),
)


class SimpleRuleEngine(AnalysisEngine):
    """Runs a fixed list of pattern rules over the text."""

    DEFAULT_LANGUAGES = ("en", "de", "fr", "nl", "pl")

    def __init__(self, rules: Sequence[Rule] = DEFAULT_RULES,
                 languages: Sequence[str] = DEFAULT_LANGUAGES,
                 context_size: int = 40):
        self.rules = tuple(rules)
        self._languages = frozenset(languages)
        self.context_size = context_size

    @property
    def languages(self) -> Collection[str]:
        return self._languages

    def analyze(self, text: str, language_code: str) -> List[Match]:
        positions = TextPositions(text)
        hits = []
        for order, rule in enumerate(self.rules):
            for start, end, replacements in rule.finder(text):
                hits.append((start, order, end, rule, replacements))
        hits.sort(key=lambda hit: (hit[0], hit[1]))

        matches = [
            Match.from_span(text, start, end, rule.rule_id, rule.message,
                            replacements, context_size=self.context_size,
                            positions=positions)
            for start, _, end, rule, replacements in hits
        ]
        logger.debug("%d matches for %d characters of %s text",
                     len(matches), len(text), language_code)
        return matches
