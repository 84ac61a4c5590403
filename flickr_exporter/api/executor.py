"""Request execution with outcome classification and retry for Flickr Exporter."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Optional

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from flickr_exporter.models import ApiError
from flickr_exporter.utils.file_utils import STUB_MARKER, is_stub_content

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
RECOVERY_MAX_ATTEMPTS = 5
DEFAULT_BASE_WAIT_SECONDS = 30.0
RECOVERY_JITTER_SECONDS = 30.0


@dataclass(frozen=True)
class RequestOutcome:
    """Base class of every request outcome."""

    ok: ClassVar[bool] = False
    retryable: ClassVar[bool] = False


@dataclass(frozen=True)
class Success(RequestOutcome):
    ok: ClassVar[bool] = True
    payload: Any = None


@dataclass(frozen=True)
class RateLimited(RequestOutcome):
    retryable: ClassVar[bool] = True
    status_code: Optional[int] = None


@dataclass(frozen=True)
class TransientError(RequestOutcome):
    retryable: ClassVar[bool] = True
    code: Optional[int] = None
    reason: str = ""


@dataclass(frozen=True)
class PermanentError(RequestOutcome):
    code: Optional[int] = None


@dataclass(frozen=True)
class MalformedResponse(RequestOutcome):
    retryable: ClassVar[bool] = True
    reason: str = ""


@dataclass(frozen=True)
class ApiFailure(RequestOutcome):
    message: str = ""
    code: Optional[int] = None


@dataclass
class RequestTarget:
    """One logical request.

    ``send`` performs the HTTP call. ``parse`` turns a 2xx response into the
    success payload; it raises ValueError for a structurally invalid body and
    ApiError for a well-formed failure. Without ``parse`` the raw body is the
    payload.
    """

    description: str
    send: Callable[[], requests.Response]
    parse: Optional[Callable[[requests.Response], Any]] = None


def looks_like_error_page(body: bytes) -> bool:
    """Check whether a body is an HTML error page instead of data."""
    if is_stub_content(body):
        return True
    head = body[:512].lstrip().lower()
    if head.startswith(b"<html") or head.startswith(b"<!doctype html"):
        return True
    # JSON may legitimately quote the marker, e.g. in a photo title.
    if head.startswith(b"{") or head.startswith(b"["):
        return False
    return len(body) < 1024 and STUB_MARKER in body


def classify_response(response: requests.Response, target: RequestTarget) -> RequestOutcome:
    """Classify one HTTP response.

    Args:
        response: Response of a single attempt
        target: Request the response belongs to

    Returns:
        The outcome of the attempt
    """
    status = response.status_code
    if status == 429:
        return RateLimited(status)
    if not 200 <= status < 300:
        return PermanentError(status)

    body = response.content or b""
    if looks_like_error_page(body):
        return RateLimited(status)
    if target.parse is None:
        # Only a full 200 is a complete asset; 204 and 206 are not.
        if status != 200:
            return PermanentError(status)
        return Success(body)

    try:
        return Success(target.parse(response))
    except ApiError as e:
        return ApiFailure(e.message, e.code)
    except ValueError as e:
        return MalformedResponse(str(e))


class RequestExecutor:
    """Sends requests one at a time and retries throttled or garbled answers.

    Waits double from ``base_wait_seconds`` on every retry, optionally plus a
    random jitter of up to ``jitter_seconds``. Once ``max_attempts`` attempts
    are used up the last outcome is returned instead of raising.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_wait_seconds: float = DEFAULT_BASE_WAIT_SECONDS,
        jitter_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_wait_seconds = base_wait_seconds
        self.jitter_seconds = jitter_seconds
        self.sleep = sleep

    @classmethod
    def for_recovery(
        cls,
        max_attempts: int = RECOVERY_MAX_ATTEMPTS,
        base_wait_seconds: float = DEFAULT_BASE_WAIT_SECONDS,
        jitter_seconds: float = RECOVERY_JITTER_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "RequestExecutor":
        """Build the executor used by recovery runs."""
        return cls(max_attempts, base_wait_seconds, jitter_seconds, sleep)

    def _wait_strategy(self):
        wait = wait_exponential(multiplier=self.base_wait_seconds, exp_base=2)
        if self.jitter_seconds > 0:
            wait = wait + wait_random(0, self.jitter_seconds)
        return wait

    def _log_retry(self, retry_state: RetryCallState) -> None:
        target = retry_state.args[0]
        outcome = retry_state.outcome.result()
        logger.warning(
            "%s: %s, waiting %.0f seconds before attempt %d/%d",
            target.description,
            outcome,
            retry_state.next_action.sleep,
            retry_state.attempt_number + 1,
            self.max_attempts,
        )

    def _attempt(self, target: RequestTarget) -> RequestOutcome:
        try:
            response = target.send()
        except requests.RequestException as e:
            return TransientError(reason=str(e))
        try:
            return classify_response(response, target)
        finally:
            response.close()

    def execute(self, target: RequestTarget) -> RequestOutcome:
        """Run a request until it succeeds, fails for good, or runs out of attempts.

        Args:
            target: Request to send

        Returns:
            The final outcome; never raises for request-level failures
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait_strategy(),
            retry=retry_if_result(lambda outcome: outcome.retryable),
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
            before_sleep=self._log_retry,
            sleep=self.sleep,
        )
        outcome = retrying(self._attempt, target)
        if outcome.retryable:
            logger.error(
                "%s: giving up after %d attempts (%s)",
                target.description,
                self.max_attempts,
                outcome,
            )
        return outcome
