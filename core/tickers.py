"""
Ticker list helpers.
"""
from pathlib import Path
from typing import Iterable, List, Union

import pandas as pd


def combine(list1: Iterable[str], list2: Iterable[str], skip: Iterable[str]) -> List[str]:
    """Merge two ticker lists, drop blanks and anything in skip, return sorted."""
    tickers = {t.strip().upper() for t in list(list1) + list(list2)}
    tickers -= {t.strip().upper() for t in skip}
    tickers.discard("")
    return sorted(tickers)


def read_ticker_file(path: Union[str, Path]) -> List[str]:
    """
    Read one ticker per line, skipping the header line and blank lines.

    Only the first comma-separated field of each line is used.
    """
    with open(path, 'r') as f:
        lines = f.read().splitlines()

    tickers = []
    for line in lines[1:]:
        symbol = line.split(',')[0].strip().strip('"')
        if symbol:
            tickers.append(symbol)
    return tickers


def write_ticker_file(path: Union[str, Path], tickers: Iterable[str]) -> Path:
    """Write tickers one per line under a Symbol header (readable by read_ticker_file)."""
    path = Path(path)
    pd.DataFrame({'Symbol': list(tickers)}).to_csv(path, index=False)
    return path


def options_file_for(path: Union[str, Path]) -> Path:
    """options.csv -> options.options.csv, next to the input file."""
    path = Path(path)
    return path.with_name(f"{path.stem}.options{path.suffix or '.csv'}")
