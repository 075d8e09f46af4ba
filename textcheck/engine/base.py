"""
Boundary between the protocol layer and the analysis engine.

The protocol layer only needs two things from an engine: the language codes
it can check and a blocking ``analyze(text, language_code)`` call returning
matches in the order they were found.
"""

import importlib
from abc import ABC, abstractmethod
from typing import Callable, Collection, Iterable, List, Sequence, Union

from textcheck.core.matches import Match


class AnalysisEngineError(Exception):
    """The analysis engine failed to produce a usable result."""
    pass


class AnalysisEngine(ABC):
    """Interface every analysis engine implements."""

    @property
    @abstractmethod
    def languages(self) -> Collection[str]:
        """Two-letter codes of the languages this engine can check."""

    @abstractmethod
    def analyze(self, text: str, language_code: str) -> Sequence[Match]:
        """Check ``text`` and return the matches in finding order."""


class FunctionEngine(AnalysisEngine):
    """Adapts a plain ``analyze(text, language_code)`` callable."""

    def __init__(self, analyze: Callable[[str, str], Sequence[Match]],
                 languages: Iterable[str]):
        self._analyze = analyze
        self._languages = frozenset(code.lower() for code in languages)

    @property
    def languages(self) -> Collection[str]:
        return self._languages

    def analyze(self, text: str, language_code: str) -> Sequence[Match]:
        return self._analyze(text, language_code)


def load_engine(reference: Union[str, AnalysisEngine]) -> AnalysisEngine:
    """Resolve ``module:attribute`` to an engine instance.

    The attribute may be an :class:`AnalysisEngine` instance, or a class or
    factory called without arguments to create one.

    Raises:
        AnalysisEngineError: If the reference cannot be resolved
    """
    if isinstance(reference, AnalysisEngine):
        return reference

    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise AnalysisEngineError(
            f"Engine reference must look like 'module:attribute', got {reference!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise AnalysisEngineError(f"Cannot import engine module {module_name!r}: {e}")

    target = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise AnalysisEngineError(f"{module_name!r} has no attribute {attribute!r}")

    if isinstance(target, AnalysisEngine):
        return target
    if callable(target):
        engine = target()
        if isinstance(engine, AnalysisEngine):
            return engine
    raise AnalysisEngineError(f"{reference!r} does not provide an AnalysisEngine")


def check_result(result: object) -> List[Match]:
    """Validate what an engine returned and copy it into a list."""
    if isinstance(result, (str, bytes)) or not isinstance(result, Iterable):
        raise AnalysisEngineError(
            f"Engine returned {type(result).__name__}, expected a sequence of matches"
        )
    matches = list(result)
    for item in matches:
        if not isinstance(item, Match):
            raise AnalysisEngineError(
                f"Engine returned {type(item).__name__} instead of Match"
            )
    return matches
