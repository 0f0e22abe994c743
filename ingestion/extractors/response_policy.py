"""
Response classification for the events API.

Every attempt of a page fetch ends in exactly one ResponseCategory. The
category decides the action taken by the client:

    SUCCESS             return the page
    AUTH                raise AuthError, no retry
    CREDENTIAL_EXPIRED  raise CredentialExpiredError, no retry
    CURSOR_EXPIRED      drop the cursor and retry from the source's head
    RATE_LIMITED        sleep Retry-After + margin and retry, unbounded
    TRANSIENT           exponential backoff, bounded retries
    UNKNOWN             raise UnknownError

Categories are checked in that order, so an auth failure is never retried as
a transient one.
"""

import enum
from typing import Any, Mapping, Optional, Union
import httpx

CURSOR_EXPIRED_CODE = "CURSOR_EXPIRED"
DEFAULT_RETRY_AFTER = 60


class ResponseCategory(str, enum.Enum):
    SUCCESS = "success"
    AUTH = "auth"
    CREDENTIAL_EXPIRED = "credential_expired"
    CURSOR_EXPIRED = "cursor_expired"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


class RetryAction(str, enum.Enum):
    RETURN = "return"
    FAIL = "fail"
    RESTART_FROM_HEAD = "restart_from_head"
    WAIT_AND_RETRY = "wait_and_retry"
    BACKOFF_AND_RETRY = "backoff_and_retry"


ACTIONS = {
    ResponseCategory.SUCCESS: RetryAction.RETURN,
    ResponseCategory.AUTH: RetryAction.FAIL,
    ResponseCategory.CREDENTIAL_EXPIRED: RetryAction.FAIL,
    ResponseCategory.CURSOR_EXPIRED: RetryAction.RESTART_FROM_HEAD,
    ResponseCategory.RATE_LIMITED: RetryAction.WAIT_AND_RETRY,
    ResponseCategory.TRANSIENT: RetryAction.BACKOFF_AND_RETRY,
    ResponseCategory.UNKNOWN: RetryAction.FAIL,
}


def classify_status(
    status_code: int,
    *,
    privileged: bool,
    cursor_supplied: bool,
    error_code: Optional[str] = None,
) -> ResponseCategory:
    """Classify an HTTP response by status code and body error code"""
    if 200 <= status_code < 300:
        return ResponseCategory.SUCCESS
    if status_code in (401, 403):
        return ResponseCategory.CREDENTIAL_EXPIRED if privileged else ResponseCategory.AUTH
    if status_code == 400 and error_code == CURSOR_EXPIRED_CODE and cursor_supplied:
        return ResponseCategory.CURSOR_EXPIRED
    if status_code == 429:
        return ResponseCategory.RATE_LIMITED
    if status_code >= 500:
        return ResponseCategory.TRANSIENT
    return ResponseCategory.UNKNOWN


def classify_exception(exc: BaseException) -> ResponseCategory:
    """Classify a transport-level failure (no response was received)"""
    # TimeoutException and NetworkError both cover connect/read/write/pool failures
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return ResponseCategory.TRANSIENT
    return ResponseCategory.UNKNOWN


def classify(
    outcome: Union[int, BaseException],
    *,
    privileged: bool,
    cursor_supplied: bool,
    error_code: Optional[str] = None,
) -> ResponseCategory:
    """Classify one attempt: a status code, or the exception raised instead of a response"""
    if isinstance(outcome, BaseException):
        return classify_exception(outcome)
    return classify_status(
        outcome,
        privileged=privileged,
        cursor_supplied=cursor_supplied,
        error_code=error_code,
    )


def action_for(category: ResponseCategory) -> RetryAction:
    return ACTIONS[category]


def error_code_from_body(body: Any) -> Optional[str]:
    """Pull the source's error code out of a JSON error body, if any"""
    if isinstance(body, Mapping):
        code = body.get("code")
        if code is None and isinstance(body.get("error"), Mapping):
            code = body["error"].get("code")
        return str(code) if code is not None else None
    return None


def parse_retry_after(headers: Mapping[str, str], default: int = DEFAULT_RETRY_AFTER) -> int:
    """Retry-After in integer seconds; the source never sends HTTP-dates"""
    raw = headers.get("retry-after")
    if raw is None:
        return default
    try:
        return max(0, int(str(raw).strip()))
    except ValueError:
        return default


def backoff_delay(retry_number: int, base_delay: float = 1.0) -> float:
    """Delay before retry N (1-based): base, 2*base, 4*base, ..."""
    return base_delay * (2 ** (retry_number - 1))
