"""
Failover between two interchangeable quote providers.

Preference is sticky: once the preferred provider throttles us we switch to
the other one and stay there until it throttles us too. The preference is
an explicit value the caller passes in and gets back, so the ticker loop
owns it and nothing is hidden in module state.
"""
import enum
import time
from typing import Callable, Optional, Tuple, TypeVar
import logging

from config import throttle_config, retry_policy, RetryPolicy
from .fetcher import ThrottledError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class FailoverState(enum.Enum):
    PREFER_PRIMARY = "primary"
    PREFER_SECONDARY = "secondary"

    def flipped(self) -> 'FailoverState':
        if self is FailoverState.PREFER_PRIMARY:
            return FailoverState.PREFER_SECONDARY
        return FailoverState.PREFER_PRIMARY


INITIAL_STATE = FailoverState.PREFER_PRIMARY


class QuoteFailover:
    """
    Run one provider operation against whichever provider is preferred.

    Args:
        primary: Provider used in PREFER_PRIMARY
        secondary: Provider used in PREFER_SECONDARY
        cooldown: Seconds to pause after switching
        policy: max_failovers bounds the number of switches per call
    """

    def __init__(self, primary, secondary,
                 cooldown: Optional[float] = None,
                 policy: Optional[RetryPolicy] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.primary = primary
        self.secondary = secondary
        self.cooldown = throttle_config.failover_cooldown if cooldown is None else cooldown
        self.policy = policy or retry_policy
        self.sleep = sleep

    def provider_for(self, state: FailoverState):
        if state is FailoverState.PREFER_PRIMARY:
            return self.primary
        return self.secondary

    def fetch(self, state: FailoverState,
              operation: Callable[[object], T]) -> Tuple[T, FailoverState]:
        """
        Call operation(provider) until it succeeds or fails for good.

        Returns:
            (result, state) - state is the preference to use next time

        Raises:
            DataFetchError: a non-retryable failure from the provider
            ThrottledError: max_failovers switches without an answer

        Any exception raised carries the preference reached so far as
        failover_state, so a switch survives the failure (see state_after).
        """
        switches = 0

        while True:
            provider = self.provider_for(state)
            try:
                return operation(provider), state
            except ThrottledError as e:
                if self.policy.max_failovers is not None and switches >= self.policy.max_failovers:
                    error = ThrottledError(
                        f"Both quote providers still throttling after {switches} switches: {e}",
                        retry_after=e.retry_after
                    )
                    error.failover_state = state.flipped()
                    raise error

                state = state.flipped()
                switches += 1
                logger.warning(f"{provider.name} is throttling, switching to "
                               f"{self.provider_for(state).name}")
                self.sleep(self.cooldown)
            except Exception as e:
                e.failover_state = state
                raise


def state_after(error: BaseException, state: FailoverState) -> FailoverState:
    """The preference to carry on with after error (state if no failover happened)."""
    return getattr(error, 'failover_state', state)
