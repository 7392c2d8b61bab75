"""
Order Service — 金額

金額はすべて Decimal で扱い、0.01 単位に四捨五入（ROUND_HALF_UP）する。
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from pydantic import PlainSerializer

CENT = Decimal("0.01")

# JSON では数値として出す
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def quantize(amount: Decimal | int | float | str) -> Decimal:
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
