"""
Rate-limited HTTP fetcher for provider APIs.

Every provider call goes through here. The fetcher issues the GET,
classifies the response and decides how to back off:

- 200/203: success (some providers answer 203 for cached-but-valid data)
- 429: throttled - wait the interval the provider asks for, or hand the
  problem to the caller when that interval is too long to sit out
- 509: bandwidth exceeded - short fixed sleep, then try again
- anything else: the request is dead
"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
import logging

import requests

from config import data_config, throttle_config, retry_policy, RetryPolicy, ThrottleConfig

logger = logging.getLogger(__name__)

SUCCESS_CODES = (200, 203)
TOO_MANY_REQUESTS = 429
BANDWIDTH_EXCEEDED = 509


class DataFetchError(Exception):
    """A provider request failed and trying again will not help."""

    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ThrottledError(DataFetchError):
    """The provider is throttling us; the caller may retry or fail over."""

    retryable = True

    def __init__(self, message: str, retry_after: Optional[float] = None,
                 status_code: Optional[int] = TOO_MANY_REQUESTS):
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


@dataclass(frozen=True)
class RateLimitRule:
    """
    How one provider signals when to come back after a 429.

    kind is 'retry_after' (header holds seconds to wait) or 'reset'
    (header holds an absolute UNIX timestamp). max_local_wait caps how long
    we are willing to sleep in place; None means sleep until the reset,
    however long that is.
    """
    header: str
    kind: str = 'reset'
    max_local_wait: Optional[float] = throttle_config.max_local_wait

    def wait_seconds(self, headers, now: float) -> Optional[float]:
        """Seconds until the provider will talk to us again, or None if unknown."""
        value = headers.get(self.header)
        if value is None:
            return None

        try:
            number = float(str(value).strip())
        except ValueError:
            return None

        if self.kind == 'retry_after':
            return number
        return number - now


class RateLimitedFetcher:
    """
    Issue provider GETs and absorb throttling.

    Short throttles are retried in place. Throttles longer than the rule's
    max_local_wait raise ThrottledError so a caller with a second provider
    can switch instead of waiting.
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 policy: Optional[RetryPolicy] = None,
                 throttle: Optional[ThrottleConfig] = None,
                 timeout: Optional[int] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.time):
        self.session = session or requests.Session()
        self.policy = policy or retry_policy
        self.throttle = throttle or throttle_config
        self.timeout = timeout or data_config.timeout
        self.sleep = sleep
        self.clock = clock

    def fetch(self, url: str, rule: RateLimitRule,
              headers: Optional[Dict[str, str]] = None,
              label: Optional[str] = None) -> Dict[str, Any]:
        """
        GET a JSON document.

        Args:
            url: Full request URL, authentication already appended
            rule: The provider's rate-limit header rule
            headers: Extra request headers
            label: Safe name for log messages (url may contain a token)

        Returns:
            The decoded JSON object

        Raises:
            ThrottledError: throttled for longer than we will wait here
            DataFetchError: any other failure
        """
        label = label or url.split('?')[0]
        attempt = 0

        while True:
            attempt += 1
            if self.policy.max_attempts is not None and attempt > self.policy.max_attempts:
                raise ThrottledError(
                    f"{label}: still throttled after {self.policy.max_attempts} attempts"
                )

            try:
                response = self.session.get(url, headers=headers or {}, timeout=self.timeout)
            except requests.RequestException as e:
                raise DataFetchError(f"Error requesting {label}: {e}")

            status = response.status_code

            if status in SUCCESS_CODES:
                return self._decode(response, label)

            if status == TOO_MANY_REQUESTS:
                self._back_off(response, rule, label)
                continue

            if status == BANDWIDTH_EXCEEDED:
                wait = self.throttle.bandwidth_wait
                logger.warning(f"{label}: HTTP 509 bandwidth limit exceeded, retrying in {wait:.0f}s")
                self.sleep(wait)
                continue

            raise DataFetchError(f"{label}: unexpected status code {status}", status_code=status)

    def _decode(self, response: requests.Response, label: str) -> Dict[str, Any]:
        try:
            document = response.json()
        except ValueError as e:
            raise DataFetchError(f"{label}: unable to decode JSON: {e}", status_code=response.status_code)

        if not isinstance(document, dict):
            raise DataFetchError(
                f"{label}: expected a JSON object, got {type(document).__name__}",
                status_code=response.status_code
            )

        return document

    def _back_off(self, response: requests.Response, rule: RateLimitRule, label: str) -> None:
        """Sleep out a 429, or raise if the wait belongs to the caller."""
        wait = rule.wait_seconds(response.headers, self.clock())

        if wait is None:
            wait = self.throttle.fallback_wait
            logger.warning(f"{label}: throttled without a usable {rule.header} header, "
                           f"backing off for {wait:.0f}s")
            self.sleep(wait)
            return

        if wait <= 0:
            # Reset already passed (clock skew or a stale header)
            if rule.max_local_wait is not None:
                raise ThrottledError(f"{label}: throttled, reset time already passed", retry_after=0.0)
            wait = self.throttle.fallback_wait
            logger.warning(f"{label}: throttled with a past reset time, backing off for {wait:.0f}s")
            self.sleep(wait)
            return

        if rule.max_local_wait is not None and wait > rule.max_local_wait:
            raise ThrottledError(f"{label}: throttled for {wait:.0f}s", retry_after=wait)

        if rule.max_local_wait is None and wait > self.throttle.sleep_chunk:
            self._sleep_until(self.clock() + wait, label)
            return

        logger.warning(f"{label}: throttled, backing off for {wait:.1f}s")
        self.sleep(wait)

    def _sleep_until(self, deadline: float, label: str) -> None:
        """
        Wait out a long quota reset.

        Sleep in chunks and re-check the clock; a single long sleep loses
        track of time if the machine hibernates.
        """
        logger.warning(f"{label}: quota reached, sleeping until it resets "
                       f"at {time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(deadline))}")

        while True:
            remaining = deadline - self.clock()
            if remaining <= 0:
                return
            self.sleep(min(remaining, self.throttle.sleep_chunk))
