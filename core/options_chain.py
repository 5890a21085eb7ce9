"""
Options chain table.

Flattens enriched securities into one pandas DataFrame (one row per
contract) so screening is a handful of column filters. Contracts whose
metrics could not be computed are left out - there is nothing to rank.
"""
import pandas as pd
import numpy as np
from typing import List
import logging

from .security import EnrichedContract, EnrichedSecurity

logger = logging.getLogger(__name__)

COLUMNS = [
    'ticker', 'option_type', 'expiration', 'price', 'strike', 'last', 'bid', 'ask',
    'lot_size', 'open_interest', 'delta', 'iv', 'pe', 'earnings_date', 'price_change_pct',
    'price_basis_delta', 'last_trade_days', 'bid_strike_ratio', 'bid_price_ratio',
    'safety_spread', 'call_spread', 'if_called', 'itm', 'earnings_before_expiration',
]


def _row(enriched: EnrichedSecurity, item: EnrichedContract, option_type: str) -> dict:
    security = enriched.security
    contract = item.contract
    metrics = item.metrics

    if option_type == 'put':
        itm = contract.strike > security.price
    else:
        itm = contract.strike < security.price

    return {
        'ticker': security.ticker,
        'option_type': option_type,
        'expiration': contract.expiration,
        'price': security.price,
        'strike': contract.strike,
        'last': contract.last,
        'bid': contract.bid,
        'ask': contract.ask,
        'lot_size': contract.lot_size,
        'open_interest': contract.open_interest,
        'delta': contract.delta,
        'iv': contract.iv,
        'pe': security.pe,
        'earnings_date': security.earnings_date,
        'price_change_pct': security.price_change_pct,
        'price_basis_delta': metrics.price_basis_delta,
        'last_trade_days': metrics.last_trade_days,
        'bid_strike_ratio': metrics.bid_strike_ratio,
        'bid_price_ratio': metrics.bid_price_ratio,
        'safety_spread': metrics.safety_spread,
        'call_spread': metrics.call_spread,
        # Return on the shares if a covered call gets exercised, in %
        'if_called': (contract.bid + contract.strike - security.price) / security.price * 100,
        'itm': itm,
        'earnings_before_expiration': (
            security.earnings_date is not None and security.earnings_date <= contract.expiration
        ),
    }


class OptionsChain:
    """
    Enriched contracts as a DataFrame with filtering helpers.

    Each filter returns a new OptionsChain, so filters chain naturally.
    """

    def __init__(self, frame: pd.DataFrame):
        self.processed = frame.reset_index(drop=True)

    @classmethod
    def from_securities(cls, securities: List[EnrichedSecurity]) -> 'OptionsChain':
        rows = []
        for enriched in securities:
            for option_type, contracts in (('put', enriched.puts), ('call', enriched.calls)):
                rows.extend(
                    _row(enriched, item, option_type)
                    for item in contracts
                    if item.metrics is not None
                )

        frame = pd.DataFrame(rows, columns=COLUMNS)
        logger.info(f"Options chain: {len(frame)} contracts across {len(securities)} securities")
        return cls(frame)

    def _where(self, mask) -> 'OptionsChain':
        return OptionsChain(self.processed[mask])

    def filter_by_type(self, option_type: str) -> 'OptionsChain':
        """Filter by option type (call or put)."""
        return self._where(self.processed['option_type'] == option_type.lower())

    def filter_by_expiration(self, latest: str) -> 'OptionsChain':
        """Keep contracts expiring on or before latest (YYYY-MM-DD)."""
        return self._where(self.processed['expiration'] <= latest)

    def filter_by_min(self, column: str, minimum: float) -> 'OptionsChain':
        return self._where(self.processed[column] >= minimum)

    def filter_by_max(self, column: str, maximum: float) -> 'OptionsChain':
        return self._where(self.processed[column] <= maximum)

    def filter_positive(self, column: str) -> 'OptionsChain':
        return self._where(self.processed[column] > 0)

    def filter_out_itm(self) -> 'OptionsChain':
        return self._where(~self.processed['itm'])

    def ranked(self, column: str) -> 'OptionsChain':
        """Sort best first by column (ties broken by ticker)."""
        frame = self.processed.sort_values([column, 'ticker'], ascending=[False, True])
        return OptionsChain(frame)

    def to_dataframe(self) -> pd.DataFrame:
        """Return the processed DataFrame."""
        return self.processed.copy()

    def __len__(self) -> int:
        return len(self.processed)

    def summary(self) -> dict:
        """Get summary statistics."""
        frame = self.processed
        return {
            'total_contracts': len(frame),
            'calls': int((frame['option_type'] == 'call').sum()),
            'puts': int((frame['option_type'] == 'put').sum()),
            'tickers': frame['ticker'].nunique(),
            'expirations': frame['expiration'].nunique(),
            'median_bid_strike_ratio': float(np.nanmedian(frame['bid_strike_ratio'])) if len(frame) else 0.0,
        }
