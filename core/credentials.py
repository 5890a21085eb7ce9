"""
Provider credentials.

Tokens are opaque strings read from the environment (or a .env file).
Checking them happens once, at startup, so a missing token stops the run
before any ticker is fetched instead of failing halfway through a batch.
"""
from dataclasses import dataclass
from typing import Optional
import logging

from config import data_config, DataConfig

logger = logging.getLogger(__name__)


class CredentialError(Exception):
    """A provider credential is missing or unusable."""
    pass


@dataclass(frozen=True)
class Credentials:
    marketdata_token: str
    finnhub_token: str
    tradeking_consumer_key: str
    tradeking_oauth_token: str

    @classmethod
    def from_config(cls, config: Optional[DataConfig] = None) -> 'Credentials':
        """
        Build credentials from configuration.

        Raises:
            CredentialError: naming every missing environment variable
        """
        config = config or data_config

        required = {
            'MARKETDATA_TOKEN': config.marketdata_token,
            'FINNHUB_TOKEN': config.finnhub_token,
            'TRADEKING_CONSUMER_KEY': config.tradeking_consumer_key,
            'TRADEKING_OAUTH_TOKEN': config.tradeking_oauth_token,
        }
        missing = [name for name, value in required.items() if not (value or '').strip()]
        if missing:
            raise CredentialError(f"Missing provider credentials: {', '.join(missing)}")

        logger.debug("Provider credentials loaded")

        return cls(
            marketdata_token=config.marketdata_token.strip(),
            finnhub_token=config.finnhub_token.strip(),
            tradeking_consumer_key=config.tradeking_consumer_key.strip(),
            tradeking_oauth_token=config.tradeking_oauth_token.strip(),
        )
