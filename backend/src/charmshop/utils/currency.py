"""Currency formatting utilities for rupee amounts shown in the admin UI."""
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from charmshop.config import settings

Number = Union[int, float, Decimal]


def group_indian(whole: int) -> str:
    """
    Group digits the Indian way: last three, then pairs.

    Examples:
        >>> group_indian(1234567)
        '12,34,567'
        >>> group_indian(999)
        '999'
    """
    digits = str(abs(whole))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        pairs = []
        while len(head) > 2:
            pairs.insert(0, head[-2:])
            head = head[:-2]
        if head:
            pairs.insert(0, head)
        digits = ",".join(pairs + [tail])
    return f"-{digits}" if whole < 0 else digits


def format_inr(amount: Number, decimals: int = 0, symbol: str = None) -> str:
    """
    Format a rupee amount with Indian digit grouping.

    Args:
        amount: Amount in rupees
        decimals: Fixed number of fraction digits (0 rounds to whole rupees)
        symbol: Currency symbol (defaults to settings.currency_symbol)

    Returns:
        Formatted string with currency symbol

    Examples:
        >>> format_inr(150000)
        '₹1,50,000'
        >>> format_inr(56249.5)
        '₹56,250'
        >>> format_inr(1234567.891, decimals=2)
        '₹12,34,567.89'
    """
    symbol = settings.currency_symbol if symbol is None else symbol
    quantum = Decimal(1).scaleb(-decimals)
    value = Decimal(str(amount)).quantize(quantum, rounding=ROUND_HALF_UP)

    whole = int(value)
    grouped = group_indian(whole)
    if value < 0 and whole == 0:
        grouped = f"-{grouped}"
    if decimals > 0:
        fraction = str(abs(value)).split(".")[1]
        grouped = f"{grouped}.{fraction}"
    return f"{symbol}{grouped}"
