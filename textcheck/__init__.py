from .core import (
    CheckServer, ServerConfig, ServerState, SessionHandler, Match, TextPositions,
    build_response, decode_request,
)
from .core import (
    BindError, InvalidLanguageError, MissingParameterError, PortInUseError, RangeError,
    RequestError, ServerConfigError,
)
from .core.launcher import start_server, stop_server
from .engine import AnalysisEngine, AnalysisEngineError, FunctionEngine, SimpleRuleEngine

__version__ = '1.0.0'

__all__ = [
    # Server
    'CheckServer',
    'ServerConfig',
    'ServerState',
    'SessionHandler',
    'start_server',
    'stop_server',

    # Protocol
    'Match',
    'TextPositions',
    'build_response',
    'decode_request',

    # Engines
    'AnalysisEngine',
    'FunctionEngine',
    'SimpleRuleEngine',

    # Errors
    'AnalysisEngineError',
    'BindError',
    'InvalidLanguageError',
    'MissingParameterError',
    'PortInUseError',
    'RangeError',
    'RequestError',
    'ServerConfigError',
]
