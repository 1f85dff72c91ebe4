"""
symalg: Number Arithmetic

Exact arithmetic on the number tower. Integer and rational operands stay
exact; a Float operand makes the result a Float. Domain failures come back as
the Undefined constant and float overflow as the signed infinities, never as
exceptions.
"""

import math
from fractions import Fraction
from typing import Optional, Union

from .alg_types import (
    Expression, Number, NumberKind, UNDEFINED, INFINITY, NEG_INFINITY, ZERO,
)

Exact = Union[int, Fraction]


def is_integer_value(value) -> bool:
    if isinstance(value, float):
        return value.is_integer()
    if isinstance(value, Fraction):
        return value.denominator == 1
    return isinstance(value, int)


def to_fraction(num: Number) -> Fraction:
    """Exact value of a Number (floats convert to their binary value)."""
    return Fraction(num.value)


def to_float(num: Number) -> float:
    try:
        return float(num.value)
    except OverflowError:
        return math.inf if num.value > 0 else -math.inf


def float_result(value: float) -> Expression:
    """Wrap a float, mapping NaN and the infinities onto constants."""
    if value != value:
        return UNDEFINED
    if value == math.inf:
        return INFINITY
    if value == -math.inf:
        return NEG_INFINITY
    return Number(value)


def _either_float(a: Number, b: Number) -> bool:
    return a.kind is NumberKind.FLOAT or b.kind is NumberKind.FLOAT


def number_add(a: Number, b: Number) -> Expression:
    if _either_float(a, b):
        return float_result(to_float(a) + to_float(b))
    return Number(a.value + b.value)


def number_neg(a: Number) -> Number:
    return Number(-a.value)


def number_sub(a: Number, b: Number) -> Expression:
    return number_add(a, number_neg(b))


def number_mul(a: Number, b: Number) -> Expression:
    if _either_float(a, b):
        return float_result(to_float(a) * to_float(b))
    return Number(a.value * b.value)


def number_div(a: Number, b: Number) -> Expression:
    """a / b; division by an exact or float zero is Undefined."""
    if b.value == 0:
        return UNDEFINED
    if _either_float(a, b):
        return float_result(to_float(a) / to_float(b))
    return Number(Fraction(a.value) / Fraction(b.value))


def number_abs(a: Number) -> Number:
    return a if a.value >= 0 else number_neg(a)


def number_sign(a: Number) -> int:
    if a.value > 0:
        return 1
    if a.value < 0:
        return -1
    return 0


def number_compare(a: Number, b: Number) -> int:
    """-1, 0 or 1 as a is below, equal to or above b."""
    if a.value < b.value:
        return -1
    if a.value > b.value:
        return 1
    return 0


def iroot(n: int, k: int) -> int:
    """Floor of the k-th root of a non-negative integer."""
    if n < 0:
        raise ValueError("iroot requires a non-negative integer")
    if n < 2 or k == 1:
        return n
    # Newton iteration from an upper bound
    x = 1 << ((n.bit_length() + k - 1) // k)
    while True:
        y = ((k - 1) * x + n // x ** (k - 1)) // k
        if y >= x:
            return x
        x = y


def integer_root(n: int, k: int) -> Optional[int]:
    """Exact k-th root of n, or None when n is not a perfect k-th power.

    Negative n has a real root only for odd k.
    """
    if k <= 0:
        raise ValueError("root index must be positive")
    if n < 0:
        if k % 2 == 0:
            return None
        root = integer_root(-n, k)
        return None if root is None else -root
    r = iroot(n, k)
    return r if r ** k == n else None


def _exact_root(q: Fraction, k: int) -> Optional[Fraction]:
    num = integer_root(q.numerator, k)
    if num is None:
        return None
    den = integer_root(q.denominator, k)
    if den is None:
        return None
    return Fraction(num, den)


def _power_bits(q: Fraction, exponent: int) -> int:
    size = max(abs(q.numerator).bit_length(), q.denominator.bit_length())
    return size * abs(exponent)


def number_pow(base: Number, exponent: Number, max_bits: int = 65536) -> Optional[Expression]:
    """Evaluate base ** exponent when the result is representable.

    Returns None when the power has to stay symbolic: irrational roots,
    complex results, or exact results larger than ``max_bits``.
    """
    if exponent.kind is NumberKind.FLOAT or base.kind is NumberKind.FLOAT:
        b, e = to_float(base), to_float(exponent)
        if b == 0.0 and e < 0:
            return UNDEFINED
        if b < 0 and not float(e).is_integer():
            return None
        try:
            return float_result(math.pow(b, e))
        except OverflowError:
            if b < 0 and float(e).is_integer() and int(e) % 2 == 1:
                return NEG_INFINITY
            return INFINITY

    q = to_fraction(base)
    if exponent.is_integer():
        e = exponent.value
        if q == 0:
            if e > 0:
                return ZERO
            return UNDEFINED if e < 0 else Number(1)
        if _power_bits(q, e) > max_bits and abs(q) != 1:
            return None
        return Number(q ** e)

    # Rational exponent p/k
    e = exponent.value
    if q < 0:
        return None
    if q == 0:
        return ZERO if e > 0 else UNDEFINED
    root = _exact_root(q, e.denominator)
    if root is None:
        return None
    if _power_bits(root, e.numerator) > max_bits and abs(root) != 1:
        return None
    return Number(root ** e.numerator)
