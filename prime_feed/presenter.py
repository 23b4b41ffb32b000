"""
Prime Feed - Top-of-Book Presenter.

Formats one output line per instrument update. Stateless.
"""

from decimal import Decimal, ROUND_HALF_UP

from prime_feed.types import BestBidAsk


PRICE_QUANTUM = Decimal("1e-8")
SIZE_QUANTUM = Decimal("1e-6")


def _fixed(value: Decimal, quantum: Decimal) -> str:
    return f"{value.quantize(quantum, rounding=ROUND_HALF_UP):f}"


def format_price(value: Decimal) -> str:
    """Price with 8 fractional digits."""
    return _fixed(value, PRICE_QUANTUM)


def format_size(value: Decimal) -> str:
    """Size with 6 fractional digits."""
    return _fixed(value, SIZE_QUANTUM)


def format_top_of_book(instrument_id: str, best: BestBidAsk) -> str:
    """
    Format a top-of-book line.

    Example:
        BTC-USD → Best Bid: 43250.00000000 (qty 0.500000) | Best Ask: 43251.50000000 (qty 0.750000)
    """
    return (
        f"{instrument_id} → Best Bid: {format_price(best.bid_price)} "
        f"(qty {format_size(best.bid_size)}) | "
        f"Best Ask: {format_price(best.ask_price)} "
        f"(qty {format_size(best.ask_size)})"
    )
