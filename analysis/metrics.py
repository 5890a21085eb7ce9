"""
Derived per-contract metrics.

Pure functions over a loaded Security. Nothing here is cached: metrics are
recomputed on every run so a fresher price always shows up in them.
"""
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional

from core.security import (
    Contract,
    ContractMetrics,
    EnrichedContract,
    EnrichedSecurity,
    Security,
)

SECONDS_PER_DAY = 24 * 60 * 60


def last_trade_days(contract: Contract, now: datetime) -> int:
    """Whole days since the contract last traded."""
    elapsed = (now - contract.last_trade_date).total_seconds()
    return math.floor(elapsed / SECONDS_PER_DAY)


def contract_metrics(price: float, contract: Contract, call_spread: float,
                     now: datetime) -> Optional[ContractMetrics]:
    """
    Compute the economics of one contract at the given share price.

    Returns None when the inputs cannot give meaningful numbers
    (unknown share price or a zero strike).
    """
    if price <= 0 or contract.strike <= 0:
        return None

    # What we effectively pay per share if a put is assigned
    cost_basis = contract.strike - contract.bid

    return ContractMetrics(
        price_basis_delta=price - cost_basis,
        last_trade_days=last_trade_days(contract, now),
        bid_strike_ratio=contract.bid / contract.strike * 100,
        bid_price_ratio=contract.bid / price * 100,
        safety_spread=(price - cost_basis) / price * 100,
        call_spread=call_spread,
    )


def enrich(security: Security, now: Optional[datetime] = None) -> EnrichedSecurity:
    """
    Pair every put and call with its metrics.

    Call spread depends only on the expiration, so it is computed once
    per expiration and shared by the contracts that have it.
    """
    now = now or datetime.now(timezone.utc)

    spreads: Dict[str, float] = {
        expiration: security.call_spread(expiration)
        for expiration in security.expirations()
    }

    def enrich_all(contracts: List[Contract]) -> List[EnrichedContract]:
        return [
            EnrichedContract(
                contract=contract,
                metrics=contract_metrics(security.price, contract, spreads[contract.expiration], now),
            )
            for contract in contracts
        ]

    return EnrichedSecurity(
        security=security,
        puts=enrich_all(security.puts),
        calls=enrich_all(security.calls),
    )
