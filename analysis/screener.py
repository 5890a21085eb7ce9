"""
Put/call screener.

Turns loaded securities into ranked candidate trades:
- cash-secured puts, ranked by premium yield on the strike
- covered calls, ranked by premium yield on the share price
"""
from pathlib import Path
from typing import List, Optional
import logging

import pandas as pd

from config import screening_config, paths, ScreeningConfig
from core.options_chain import OptionsChain
from core.security import EnrichedSecurity

logger = logging.getLogger(__name__)


class OptionsScreener:
    """
    Apply the screening thresholds to an options chain.

    Thresholds come from ScreeningConfig; pass your own to tighten or loosen them.
    """

    def __init__(self, config: Optional[ScreeningConfig] = None):
        self.config = config or screening_config

    def _common(self, chain: OptionsChain, expiration: str) -> OptionsChain:
        chain = chain.filter_by_expiration(expiration)
        chain = chain.filter_positive('bid')
        chain = chain.filter_by_max('strike', self.config.max_strike)
        chain = chain.filter_by_min('safety_spread', self.config.min_safety_spread)
        chain = chain.filter_by_min('call_spread', self.config.min_call_spread)
        if not self.config.include_itm:
            chain = chain.filter_out_itm()
        return chain

    def screen_puts(self, securities: List[EnrichedSecurity], expiration: str) -> pd.DataFrame:
        """
        Puts worth selling, best yield first.

        A put only qualifies if being assigned would still leave the cost
        basis below the current share price.
        """
        chain = OptionsChain.from_securities(securities).filter_by_type('put')
        chain = self._common(chain, expiration)
        chain = chain.filter_positive('price_basis_delta')
        chain = chain.filter_by_min('bid_strike_ratio', self.config.min_yield)

        result = chain.ranked('bid_strike_ratio').to_dataframe()
        logger.info(f"{len(result)} puts pass the screen")
        return result

    def screen_calls(self, securities: List[EnrichedSecurity], expiration: str) -> pd.DataFrame:
        """Covered calls worth writing, best yield first."""
        chain = OptionsChain.from_securities(securities).filter_by_type('call')
        chain = self._common(chain, expiration)
        chain = chain.filter_by_min('bid_price_ratio', self.config.min_yield)
        chain = chain.filter_by_min('if_called', self.config.min_if_called)

        result = chain.ranked('bid_price_ratio').to_dataframe()
        logger.info(f"{len(result)} calls pass the screen")
        return result

    def write_csv(self, frame: pd.DataFrame, name: str,
                  output_dir: Optional[Path] = None) -> Path:
        """Save a screen result as CSV and return its path."""
        output_dir = Path(output_dir or paths.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / name
        frame.to_csv(path, index=False, float_format='%.2f')
        logger.info(f"Wrote {len(frame)} rows to {path}")
        return path
