"""
Analysis engine interface and the bundled rule engine
"""

from .base import AnalysisEngine, AnalysisEngineError, FunctionEngine, check_result, load_engine
from .simple_rules import SimpleRuleEngine

__all__ = [
    "AnalysisEngine",
    "AnalysisEngineError",
    "FunctionEngine",
    "SimpleRuleEngine",
    "check_result",
    "load_engine",
]
