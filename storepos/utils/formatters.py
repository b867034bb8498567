"""
Formatting helpers for printed documents.
Amounts use dot as thousands separator and comma for decimals (1.234,56).
"""
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Union


def _group_thousands(integer_part: str) -> str:
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    return '.'.join(groups)[::-1]


def money(value: Union[int, float, Decimal, str, None], symbol: str = '$') -> str:
    """
    Format an amount with exactly two decimals.

    Examples:
        money(1500) -> "$1.500,00"
        money(Decimal('20.5')) -> "$20,50"
        money(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = "-" if num < 0 else ""
    integer_part, decimal_part = f"{abs(num):.2f}".split(".")
    return f"{sign}{symbol}{_group_thousands(integer_part)},{decimal_part}"


def quantity(value: Union[int, Decimal, None]) -> str:
    """Whole quantities without decimals, others with up to two."""
    if value is None:
        return "-"
    if value % 1 == 0:
        return _group_thousands(str(int(value)))
    return f"{value:.2f}".rstrip('0').rstrip('.').replace('.', ',')


def date_time(value: Union[datetime, date, None], with_time: bool = True) -> str:
    """DD/MM/YYYY HH:MM (or only the date)."""
    if value is None:
        return "-"
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M" if with_time else "%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    return "-"
