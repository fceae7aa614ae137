"""
Utilidades de dinero y redondeo

Todos los montos se manejan como Decimal. Los cálculos intermedios
conservan precisión completa y sólo se redondea a centavos al final,
usando ROUND_HALF_UP (redondeo comercial).
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Union

CENT = Decimal('0.01')
ZERO = Decimal('0.00')
HUNDRED = Decimal('100')

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """
    Convertir un valor a Decimal sin pasar por binario.

    Acepta coma o punto como separador decimal ("10,5" == "10.5").
    Los float se convierten vía str() para evitar 0.1 -> 0.1000000000000000055.

    Raises:
        ValueError: si el valor no es numérico o no es finito
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"Valor no numérico: {value!r}")
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(',', '.')
        if not cleaned:
            raise ValueError("Valor vacío")
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            raise ValueError(f"Valor no numérico: {value!r}")
    else:
        raise ValueError(f"Valor no numérico: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Valor no finito: {value!r}")
    return result


def parse_decimal(value: Number) -> Optional[Decimal]:
    """Versión tolerante de to_decimal: retorna None en lugar de fallar."""
    try:
        return to_decimal(value)
    except ValueError:
        return None


def quantize_money(amount: Number) -> Decimal:
    """Redondear a 2 decimales usando ROUND_HALF_UP"""
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def money(amount: Number) -> Decimal:
    """
    Normalizar un monto no negativo a centavos.

    Raises:
        ValueError: si el monto es negativo o no numérico
    """
    value = to_decimal(amount)
    if value < 0:
        raise ValueError(f"El monto no puede ser negativo: {value}")
    return quantize_money(value)


def percent_of(base: Decimal, percent: Decimal) -> Decimal:
    """Porcentaje de una base, sin redondear"""
    return base * percent / HUNDRED


def sum_money(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def format_brl(amount: Number) -> str:
    """Formato simple para logs y mensajes: R$ 1234.50"""
    return f"R$ {quantize_money(amount)}"
