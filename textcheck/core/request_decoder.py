"""
Extraction of check parameters from GET query strings and POST form bodies.
"""

from dataclasses import dataclass
from typing import Collection, Dict, List, Optional
from urllib.parse import parse_qs

LANGUAGE_PARAM = "language"
TEXT_PARAM = "text"


class RequestError(Exception):
    """Base class for errors caused by client input.

    Attributes:
        status: HTTP status code reported to the client
        reason: HTTP reason phrase for ``status``
    """
    status = 400
    reason = "Bad Request"


class MissingParameterError(RequestError):
    """A required parameter is absent."""

    def __init__(self, name: str):
        super().__init__(f"Missing parameter: {name}")
        self.parameter = name


class InvalidLanguageError(RequestError):
    """The language code is not one the analysis engine supports."""
    status = 422
    reason = "Unprocessable Entity"

    def __init__(self, code: str):
        super().__init__(f"Unsupported language: {code}")
        self.code = code


class MalformedRequestError(RequestError):
    """The request parameters cannot be decoded."""
    pass


class TextTooLongError(RequestError):
    """The text exceeds the configured maximum length."""
    status = 413
    reason = "Payload Too Large"

    def __init__(self, length: int, limit: int):
        super().__init__(f"Text too long: {length} characters, limit is {limit}")
        self.length = length
        self.limit = limit


@dataclass(frozen=True)
class CheckRequest:
    """Decoded parameters of one check request."""
    language_code: str
    text: str


def _parse_form(data: str) -> Dict[str, List[str]]:
    try:
        return parse_qs(data, keep_blank_values=True, strict_parsing=False,
                        encoding="utf-8", errors="strict")
    except UnicodeDecodeError:
        raise MalformedRequestError("Parameters are not valid UTF-8")


def decode_request(
    method: str,
    query: str,
    body: bytes,
    languages: Collection[str],
    max_text_length: Optional[int] = None,
) -> CheckRequest:
    """Decode a check request from either transport shape.

    Args:
        method: ``GET`` or ``POST``
        query: Raw query string (without the ``?``)
        body: Raw request body; form encoded for POST
        languages: Codes recognized by the analysis engine
        max_text_length: Optional limit on the decoded text length

    Returns:
        The decoded :class:`CheckRequest`

    Raises:
        MissingParameterError: If ``language`` or ``text`` is absent
        InvalidLanguageError: If ``language`` is not a known two-letter code
        MalformedRequestError: If the parameters cannot be decoded
        TextTooLongError: If the text exceeds ``max_text_length``
    """
    params = _parse_form(query)
    if method == "POST" and body:
        try:
            form = body.decode("ascii")
        except UnicodeDecodeError:
            # Raw UTF-8 in the body is tolerated; percent-encoding is optional.
            try:
                form = body.decode("utf-8")
            except UnicodeDecodeError:
                raise MalformedRequestError("Body is not valid UTF-8")
        params.update(_parse_form(form))

    for name in (LANGUAGE_PARAM, TEXT_PARAM):
        if name not in params:
            raise MissingParameterError(name)

    code = params[LANGUAGE_PARAM][0].strip().lower()
    known = {language.lower() for language in languages}
    if len(code) != 2 or code not in known:
        raise InvalidLanguageError(code)

    text = params[TEXT_PARAM][0]
    if max_text_length is not None and len(text) > max_text_length:
        raise TextTooLongError(len(text), max_text_length)

    return CheckRequest(language_code=code, text=text)
