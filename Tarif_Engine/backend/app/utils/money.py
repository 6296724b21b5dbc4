"""
Montants décimaux / Decimal amounts.
Un seul type virgule fixe pour tout le moteur, arrondi aux bornes de sortie.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Any

from pydantic import PlainSerializer

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
SIXTY = Decimal("60")
CENT = Decimal("0.01")

# Décimal sérialisé en nombre JSON / Decimal serialized as a JSON number
Amount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def to_decimal(value: Any) -> Decimal:
    """Convertir en Decimal sans bruit binaire / Convert to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_money(value: Decimal, places: str = "0.01") -> Decimal:
    """Arrondi commercial / Half-up rounding (2 décimales par défaut)."""
    return value.quantize(Decimal(places), rounding=ROUND_HALF_UP)


def jsonable(value: Any) -> Any:
    """Décimaux -> float, récursif / Decimals to float, recursively."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return value
