"""Error taxonomy shared by the interpreter, credential store, adapters and dispatcher.

Every error carries an ``ErrorKind`` and a message that is safe to show to the
user. Provider-specific details (status codes, response bodies) are logged
where they occur and never copied into the message.
"""

import json
from enum import Enum


class ErrorKind(str, Enum):
    PARSE_ERROR = "ParseError"
    UNSUPPORTED_INTENT = "UnsupportedIntent"
    NOT_AUTHENTICATED = "NotAuthenticated"
    REFRESH_FAILED = "RefreshFailed"
    AUTH_ERROR = "AuthError"
    RATE_LIMITED = "RateLimited"
    UPSTREAM_ERROR = "UpstreamError"
    VALIDATION_ERROR = "ValidationError"
    TIMEOUT = "Timeout"


class VoiceAssistantError(Exception):
    """Base class for failures scoped to a single command."""

    kind: ErrorKind = ErrorKind.UPSTREAM_ERROR
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ParseError(VoiceAssistantError):
    kind = ErrorKind.PARSE_ERROR
    default_message = "Sorry, I couldn't understand that"


class UnsupportedIntent(VoiceAssistantError):
    kind = ErrorKind.UNSUPPORTED_INTENT
    default_message = "Sorry, I can't do that yet"


class NotAuthenticated(VoiceAssistantError):
    kind = ErrorKind.NOT_AUTHENTICATED
    default_message = "Please connect your account first"


class RefreshFailed(VoiceAssistantError):
    kind = ErrorKind.REFRESH_FAILED
    default_message = "Your session expired, please reconnect your account"


class AuthError(VoiceAssistantError):
    kind = ErrorKind.AUTH_ERROR
    default_message = "The service rejected your credentials"


class RateLimited(VoiceAssistantError):
    kind = ErrorKind.RATE_LIMITED
    default_message = "The service is busy, please try again shortly"

    def __init__(self, message: str | None = None, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(VoiceAssistantError):
    kind = ErrorKind.UPSTREAM_ERROR
    default_message = "The service is unavailable right now"


class ValidationError(VoiceAssistantError):
    kind = ErrorKind.VALIDATION_ERROR
    default_message = "The request was not valid"


class DispatchTimeout(VoiceAssistantError):
    kind = ErrorKind.TIMEOUT
    default_message = "The request took too long"


def parse_google_error(response_text: str) -> str:
    """Extract a readable message from a Google API error response.

    Google APIs return JSON like {"error": {"code": 400, "message": "...", "status": "..."}}.
    Returns "STATUS: message" when parseable, raw text otherwise.
    """
    try:
        body = json.loads(response_text)
        err = body.get("error", {})
        msg = err.get("message", "")
        status = err.get("status", "")
        if msg:
            return f"{status}: {msg}" if status else msg
    except (ValueError, AttributeError):
        pass
    return response_text


def parse_amazon_error(response_text: str) -> str:
    """Extract a readable message from an Amazon API error response.

    Login with Amazon returns {"error": "...", "error_description": "..."};
    the Music API returns {"message": "..."} or a list under "errors".
    """
    try:
        body = json.loads(response_text)
        if isinstance(body.get("error"), str):
            desc = body.get("error_description", "")
            return f"{body['error']}: {desc}" if desc else body["error"]
        if body.get("message"):
            return body["message"]
        errors = body.get("errors") or []
        if errors and isinstance(errors[0], dict) and errors[0].get("message"):
            return errors[0]["message"]
    except (ValueError, AttributeError):
        pass
    return response_text
