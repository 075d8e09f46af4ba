"""
Core server components
"""

from .config import ServerConfig
from .http_messages import RawRequest, RawResponse
from .matches import Match
from .positions import Position, RangeError, TextPositions, span_positions
from .request_decoder import (
    CheckRequest, InvalidLanguageError, MalformedRequestError, MissingParameterError,
    RequestError, TextTooLongError, decode_request,
)
from .server_core import CheckServer, ServerState
from .server_utils import BindError, PortInUseError, ServerConfigError
from .session_handler import SessionHandler
from .xml_response import build_response, serialize_match, split_replacements

# Expose public interface
__all__ = [
    "BindError", "CheckRequest", "CheckServer", "InvalidLanguageError", "MalformedRequestError",
    "Match", "MissingParameterError", "PortInUseError", "Position", "RangeError", "RawRequest",
    "RawResponse", "RequestError", "ServerConfig", "ServerConfigError", "ServerState",
    "SessionHandler", "TextPositions", "TextTooLongError", "build_response", "decode_request",
    "serialize_match", "span_positions", "split_replacements",
]
