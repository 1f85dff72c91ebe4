"""Univariate polynomials over the integers and the rationals.

IntPoly carries the content/primitive-part machinery and exact division used
by the modular GCD; RationalPoly provides the classical Euclidean GCD over Q.
Both store ascending coefficients with trailing zeros trimmed.
"""

import math
from dataclasses import dataclass
from fractions import Fraction
from functools import reduce
from typing import Optional, Sequence, Tuple

from .errors import DivisionByZeroError
from .poly_zp import PolyZp


def _trimmed(coeffs) -> tuple:
    out = list(coeffs)
    while out and out[-1] == 0:
        out.pop()
    return tuple(out)


@dataclass(frozen=True)
class IntPoly:
    """Immutable dense polynomial with integer coefficients."""
    coeffs: Tuple[int, ...]

    def __post_init__(self):
        object.__setattr__(self, 'coeffs', _trimmed(int(c) for c in self.coeffs))

    @classmethod
    def zero(cls) -> 'IntPoly':
        return cls(())

    @classmethod
    def one(cls) -> 'IntPoly':
        return cls((1,))

    @classmethod
    def constant(cls, c: int) -> 'IntPoly':
        return cls((c,))

    @classmethod
    def from_balanced(cls, residues: Sequence[int], modulus: int) -> 'IntPoly':
        """Lift residues mod m to the symmetric range (-m/2, m/2]."""
        half = modulus // 2
        return cls(tuple(r if r <= half else r - modulus for r in (x % modulus for x in residues)))

    # === Properties ===

    @property
    def degree(self) -> Optional[int]:
        return len(self.coeffs) - 1 if self.coeffs else None

    def is_zero(self) -> bool:
        return not self.coeffs

    def is_constant(self) -> bool:
        return len(self.coeffs) <= 1

    def is_unit(self) -> bool:
        return self.coeffs in ((1,), (-1,))

    @property
    def leading_coefficient(self) -> int:
        return self.coeffs[-1] if self.coeffs else 0

    def content(self) -> int:
        """Positive gcd of the coefficients; 0 for the zero polynomial."""
        return reduce(math.gcd, self.coeffs, 0)

    def primitive_part(self) -> 'IntPoly':
        """self / content; keeps the sign of the leading coefficient."""
        c = self.content()
        if c in (0, 1):
            return self
        return IntPoly(tuple(x // c for x in self.coeffs))

    def normalized(self) -> 'IntPoly':
        """Associate with a positive leading coefficient."""
        return self.neg() if self.leading_coefficient < 0 else self

    def max_norm(self) -> int:
        return max((abs(c) for c in self.coeffs), default=0)

    def l2_norm_bound(self) -> int:
        """Integer upper bound of the Euclidean norm."""
        return math.isqrt(sum(c * c for c in self.coeffs)) + 1

    def density(self) -> float:
        """Fraction of non-zero coefficients."""
        if not self.coeffs:
            return 1.0
        return sum(1 for c in self.coeffs if c) / len(self.coeffs)

    # === Arithmetic ===

    def add(self, other: 'IntPoly') -> 'IntPoly':
        n = max(len(self.coeffs), len(other.coeffs))
        a = self.coeffs + (0,) * (n - len(self.coeffs))
        b = other.coeffs + (0,) * (n - len(other.coeffs))
        return IntPoly(tuple(x + y for x, y in zip(a, b)))

    def neg(self) -> 'IntPoly':
        return IntPoly(tuple(-c for c in self.coeffs))

    def sub(self, other: 'IntPoly') -> 'IntPoly':
        return self.add(other.neg())

    def scalar_mul(self, c: int) -> 'IntPoly':
        return IntPoly(tuple(c * x for x in self.coeffs))

    def mul(self, other: 'IntPoly') -> 'IntPoly':
        if self.is_zero() or other.is_zero():
            return IntPoly.zero()
        out = [0] * (len(self.coeffs) + len(other.coeffs) - 1)
        for i, a in enumerate(self.coeffs):
            if a:
                for j, b in enumerate(other.coeffs):
                    out[i + j] += a * b
        return IntPoly(tuple(out))

    def divmod_exact(self, divisor: 'IntPoly') -> Optional[Tuple['IntPoly', 'IntPoly']]:
        """Division over Z; None when a quotient coefficient is not an integer."""
        if divisor.is_zero():
            raise DivisionByZeroError("Polynomial division by zero")
        d = divisor.coeffs
        rem = list(self.coeffs)
        if len(rem) < len(d):
            return IntPoly.zero(), self
        lc = d[-1]
        quotient = [0] * (len(rem) - len(d) + 1)
        for k in range(len(rem) - len(d), -1, -1):
            top = rem[k + len(d) - 1]
            if top % lc:
                return None
            c = top // lc
            quotient[k] = c
            if c:
                for j, dj in enumerate(d):
                    rem[k + j] -= c * dj
        return IntPoly(tuple(quotient)), IntPoly(tuple(rem[:len(d) - 1]))

    def divides(self, other: 'IntPoly') -> bool:
        """True when self divides other exactly over Z."""
        if self.is_zero():
            return other.is_zero()
        result = other.divmod_exact(self)
        return result is not None and result[1].is_zero()

    def reduce_mod(self, p: int) -> PolyZp:
        return PolyZp(self.coeffs, p)

    def evaluate(self, x: int) -> int:
        acc = 0
        for c in reversed(self.coeffs):
            acc = acc * x + c
        return acc

    def __add__(self, other):
        return self.add(other)

    def __sub__(self, other):
        return self.sub(other)

    def __neg__(self):
        return self.neg()

    def __mul__(self, other):
        if isinstance(other, int):
            return self.scalar_mul(other)
        return self.mul(other)

    __rmul__ = __mul__


@dataclass(frozen=True)
class RationalPoly:
    """Immutable dense polynomial with rational coefficients."""
    coeffs: Tuple[Fraction, ...]

    def __post_init__(self):
        object.__setattr__(self, 'coeffs', _trimmed(Fraction(c) for c in self.coeffs))

    @classmethod
    def from_intpoly(cls, poly: IntPoly) -> 'RationalPoly':
        return cls(poly.coeffs)

    @property
    def degree(self) -> Optional[int]:
        return len(self.coeffs) - 1 if self.coeffs else None

    def is_zero(self) -> bool:
        return not self.coeffs

    @property
    def leading_coefficient(self) -> Fraction:
        return self.coeffs[-1] if self.coeffs else Fraction(0)

    def add(self, other: 'RationalPoly') -> 'RationalPoly':
        n = max(len(self.coeffs), len(other.coeffs))
        a = self.coeffs + (Fraction(0),) * (n - len(self.coeffs))
        b = other.coeffs + (Fraction(0),) * (n - len(other.coeffs))
        return RationalPoly(tuple(x + y for x, y in zip(a, b)))

    def sub(self, other: 'RationalPoly') -> 'RationalPoly':
        return self.add(RationalPoly(tuple(-c for c in other.coeffs)))

    def scalar_mul(self, c: Fraction) -> 'RationalPoly':
        return RationalPoly(tuple(c * x for x in self.coeffs))

    def mul(self, other: 'RationalPoly') -> 'RationalPoly':
        if self.is_zero() or other.is_zero():
            return RationalPoly(())
        out = [Fraction(0)] * (len(self.coeffs) + len(other.coeffs) - 1)
        for i, a in enumerate(self.coeffs):
            for j, b in enumerate(other.coeffs):
                out[i + j] += a * b
        return RationalPoly(tuple(out))

    def div_rem(self, divisor: 'RationalPoly') -> Tuple['RationalPoly', 'RationalPoly']:
        if divisor.is_zero():
            raise DivisionByZeroError("Polynomial division by zero")
        d = divisor.coeffs
        rem = list(self.coeffs)
        if len(rem) < len(d):
            return RationalPoly(()), self
        quotient = [Fraction(0)] * (len(rem) - len(d) + 1)
        for k in range(len(rem) - len(d), -1, -1):
            c = rem[k + len(d) - 1] / d[-1]
            quotient[k] = c
            if c:
                for j, dj in enumerate(d):
                    rem[k + j] -= c * dj
        return RationalPoly(tuple(quotient)), RationalPoly(tuple(rem[:len(d) - 1]))

    def make_monic(self) -> 'RationalPoly':
        if self.is_zero():
            return self
        return self.scalar_mul(1 / self.leading_coefficient)

    def gcd(self, other: 'RationalPoly') -> 'RationalPoly':
        """Monic Euclidean GCD over Q."""
        a, b = self, other
        while not b.is_zero():
            a, b = b, a.div_rem(b)[1]
        return a.make_monic()

    def to_primitive_intpoly(self) -> IntPoly:
        """Clear denominators; primitive with positive leading coefficient."""
        if self.is_zero():
            return IntPoly.zero()
        lcm = reduce(lambda x, y: x * y // math.gcd(x, y), (c.denominator for c in self.coeffs), 1)
        poly = IntPoly(tuple(int(c * lcm) for c in self.coeffs))
        return poly.primitive_part().normalized()
