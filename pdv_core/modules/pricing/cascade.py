"""
Resolución de descuentos en cascata

Una expresión como "10+5+2" representa descuentos porcentuales aplicados
sucesivamente sobre el valor restante, no sumados:

    10.00 -10% -> 9.00 -10% -> 8.10   ("10+10" equivale a 19%, no a 20%)

El multiplicador retenido es M = Π(1 - p_i/100) y el porcentaje único
equivalente es E = (1 - M) * 100.

La resolución nunca lanza excepciones: una expresión inválida retorna un
CascadeResult con valid=False para que la UI mantenga el campo editable
y trate la entrada como "todavía sin descuento aplicable".
"""

from dataclasses import dataclass
import re
from decimal import Decimal
from typing import List, Optional, Tuple

from pdv_core.common.money import HUNDRED, parse_decimal, quantize_money, to_decimal

SEPARATOR = '+'
# Sólo dígitos con separador decimal opcional; sin signo, exponente ni "_"
SEGMENT_RE = re.compile(r"^(\d+([.,]\d*)?|[.,]\d+)$")
ONE = Decimal('1')


@dataclass(frozen=True)
class CascadeStep:
    """Un paso de la cascata: base antes, descuento aplicado y valor resultante"""
    percent: Decimal
    base: Decimal
    discount: Decimal
    result: Decimal


@dataclass(frozen=True)
class CascadeResult:
    """Resultado de resolver una expresión en cascata"""
    expression: str
    valid: bool
    percentages: Tuple[Decimal, ...] = ()
    error: Optional[str] = None

    @property
    def retained_multiplier(self) -> Optional[Decimal]:
        if not self.valid:
            return None
        multiplier = ONE
        for percent in self.percentages:
            multiplier *= ONE - percent / HUNDRED
        return multiplier

    @property
    def equivalent_percent(self) -> Optional[Decimal]:
        """Porcentaje único equivalente, con precisión completa"""
        if not self.valid:
            return None
        if len(self.percentages) == 1:
            return self.percentages[0]
        return (ONE - self.retained_multiplier) * HUNDRED

    @property
    def is_cascade(self) -> bool:
        return len(self.percentages) > 1

    def breakdown(self, base) -> List[CascadeStep]:
        """
        Detalle paso a paso sobre una base, para mostrar al operador.

        Los valores intermedios conservan precisión completa; el redondeo a
        centavos queda a cargo de quien los presenta.
        """
        if not self.valid:
            return []

        current = to_decimal(base)
        steps = []
        for percent in self.percentages:
            discount = current * percent / HUNDRED
            result = current - discount
            steps.append(CascadeStep(percent=percent, base=current, discount=discount, result=result))
            current = result
        return steps

    def apply(self, base) -> Optional[Decimal]:
        """Valor final redondeado a centavos tras aplicar toda la cascata"""
        if not self.valid:
            return None
        return quantize_money(to_decimal(base) * self.retained_multiplier)


def _invalid(expression, error: str) -> CascadeResult:
    return CascadeResult(expression=expression if isinstance(expression, str) else repr(expression),
                         valid=False, error=error)


def resolve(expression) -> CascadeResult:
    """
    Interpretar una expresión "p1[+p2[+p3...]]".

    Reglas:
    - Cada segmento se recorta y acepta coma o punto como separador decimal
    - Cada segmento debe ser un número finito en [0, 100]
    - Cadena vacía, segmentos vacíos o "+" inicial/final -> inválido
    """
    if not isinstance(expression, str):
        return _invalid(expression, "La expresión debe ser texto")

    text = expression.strip()
    if not text:
        return _invalid(expression, "Expresión vacía")

    percentages = []
    for position, segment in enumerate(text.split(SEPARATOR), start=1):
        segment = segment.strip()
        if not segment:
            return _invalid(expression, f"Segmento {position} vacío")

        value = parse_decimal(segment) if SEGMENT_RE.match(segment) else None
        if value is None:
            return _invalid(expression, f"Segmento {position} no numérico: '{segment}'")
        if value < 0 or value > HUNDRED:
            return _invalid(expression, f"Segmento {position} fuera de rango (0-100): {segment}")

        percentages.append(value)

    return CascadeResult(expression=expression, valid=True, percentages=tuple(percentages))


def equivalent_percent(expression) -> Optional[Decimal]:
    """Atajo: porcentaje equivalente o None si la expresión es inválida"""
    return resolve(expression).equivalent_percent
