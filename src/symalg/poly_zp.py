"""Dense univariate polynomials over a prime field.

Coefficients are stored in ascending-degree order with trailing zeros
trimmed; the zero polynomial has no coefficients and degree None.
"""

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import DivisionByZeroError, OverflowInFieldError
from .poly_ntt import mul_fast as ntt_mul_fast, next_power_of_two, ntt_supported
from .poly_primes import MAX_MODULUS_BITS, is_prime
from .policy import AlgorithmPolicy, DEFAULT_POLICY

logger = logging.getLogger('symalg.poly')

_VERIFIED_MODULI = set()
_MODULI_LOCK = threading.Lock()


def check_modulus(p: int) -> None:
    """Validate that p is a prime fitting in 62 bits.

    Raises:
        OverflowInFieldError: If p does not fit in 62 bits
        ValueError: If p is not prime
    """
    if p in _VERIFIED_MODULI:
        return
    if p.bit_length() > MAX_MODULUS_BITS:
        raise OverflowInFieldError(p)
    with _MODULI_LOCK:
        if p in _VERIFIED_MODULI:
            return
        if not is_prime(p):
            raise ValueError(f"Modulus {p} is not prime")
        _VERIFIED_MODULI.add(p)


def mod_inverse(a: int, p: int) -> int:
    """Inverse of a modulo prime p."""
    a %= p
    if a == 0:
        raise DivisionByZeroError(f"Zero has no inverse modulo {p}")
    return pow(a, p - 2, p)


class Zp:
    """Element of the prime field F_p."""

    __slots__ = ('value', 'modulus')

    def __init__(self, value: int, modulus: int):
        check_modulus(modulus)
        self.value = int(value) % modulus
        self.modulus = modulus

    def _coerce(self, other) -> int:
        if isinstance(other, Zp):
            if other.modulus != self.modulus:
                raise ValueError(f"Moduli differ: {self.modulus} vs {other.modulus}")
            return other.value
        return int(other) % self.modulus

    def __add__(self, other):
        return Zp(self.value + self._coerce(other), self.modulus)

    __radd__ = __add__

    def __sub__(self, other):
        return Zp(self.value - self._coerce(other), self.modulus)

    def __rsub__(self, other):
        return Zp(self._coerce(other) - self.value, self.modulus)

    def __mul__(self, other):
        return Zp(self.value * self._coerce(other), self.modulus)

    __rmul__ = __mul__

    def __neg__(self):
        return Zp(-self.value, self.modulus)

    def inverse(self) -> 'Zp':
        return Zp(mod_inverse(self.value, self.modulus), self.modulus)

    def __truediv__(self, other):
        return self * Zp(self._coerce(other), self.modulus).inverse()

    def __pow__(self, exponent: int):
        if exponent < 0:
            return self.inverse() ** (-exponent)
        return Zp(pow(self.value, exponent, self.modulus), self.modulus)

    def __eq__(self, other) -> bool:
        if isinstance(other, Zp):
            return self.value == other.value and self.modulus == other.modulus
        if isinstance(other, int):
            return self.value == other % self.modulus
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.value, self.modulus))

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"Zp({self.value}, {self.modulus})"


def _trim(coeffs: List[int]) -> List[int]:
    while coeffs and coeffs[-1] == 0:
        coeffs.pop()
    return coeffs


@dataclass(frozen=True)
class PolyZp:
    """Immutable dense polynomial over F_p, ascending coefficients."""
    coeffs: Tuple[int, ...]
    modulus: int

    def __post_init__(self):
        check_modulus(self.modulus)
        p = self.modulus
        object.__setattr__(self, 'coeffs', tuple(_trim([int(c) % p for c in self.coeffs])))

    # === Constructors ===

    @classmethod
    def zero(cls, p: int) -> 'PolyZp':
        return cls((), p)

    @classmethod
    def one(cls, p: int) -> 'PolyZp':
        return cls((1,), p)

    @classmethod
    def constant(cls, c: int, p: int) -> 'PolyZp':
        return cls((c,), p)

    @classmethod
    def monomial(cls, c: int, k: int, p: int) -> 'PolyZp':
        """c * x^k."""
        return cls((0,) * k + (c,), p)

    @classmethod
    def from_roots(cls, roots: Sequence[int], p: int) -> 'PolyZp':
        """Monic polynomial (x - r1)(x - r2)..."""
        result = cls.one(p)
        for r in roots:
            result = result.mul_naive(cls((-r, 1), p))
        return result

    # === Properties ===

    @property
    def degree(self) -> Optional[int]:
        return len(self.coeffs) - 1 if self.coeffs else None

    def is_zero(self) -> bool:
        return not self.coeffs

    def is_one(self) -> bool:
        return self.coeffs == (1,)

    @property
    def leading_coefficient(self) -> int:
        return self.coeffs[-1] if self.coeffs else 0

    def _same_field(self, other: 'PolyZp') -> None:
        if self.modulus != other.modulus:
            raise ValueError(f"Moduli differ: {self.modulus} vs {other.modulus}")

    def _new(self, coeffs) -> 'PolyZp':
        return PolyZp(tuple(coeffs), self.modulus)

    # === Ring operations ===

    def add(self, other: 'PolyZp') -> 'PolyZp':
        self._same_field(other)
        a, b = self.coeffs, other.coeffs
        if len(a) < len(b):
            a, b = b, a
        out = list(a)
        for i, c in enumerate(b):
            out[i] += c
        return self._new(out)

    def neg(self) -> 'PolyZp':
        return self._new(-c for c in self.coeffs)

    def sub(self, other: 'PolyZp') -> 'PolyZp':
        self._same_field(other)
        return self.add(other.neg())

    def scalar_mul(self, c: int) -> 'PolyZp':
        c %= self.modulus
        return self._new(c * x for x in self.coeffs)

    def mul_naive(self, other: 'PolyZp') -> 'PolyZp':
        """Schoolbook product, vectorized one row at a time."""
        self._same_field(other)
        if self.is_zero() or other.is_zero():
            return PolyZp.zero(self.modulus)
        a = self.coeffs
        b = np.array(other.coeffs, dtype=object)
        out = np.zeros(len(a) + len(b) - 1, dtype=object)
        for i, ai in enumerate(a):
            if ai:
                out[i:i + len(b)] += ai * b
        return self._new(int(c) for c in out)

    def mul_fast(self, other: 'PolyZp') -> 'PolyZp':
        """NTT product; raises NTTUnsupportedError when no suitable root exists."""
        self._same_field(other)
        return self._new(ntt_mul_fast(self.coeffs, other.coeffs, self.modulus))

    def fast_mul_applicable(self, other: 'PolyZp') -> bool:
        if self.is_zero() or other.is_zero() or self.modulus == 2:
            return False
        size = next_power_of_two(len(self.coeffs) + len(other.coeffs) - 1)
        return ntt_supported(self.modulus, size)

    def mul(self, other: 'PolyZp', policy: AlgorithmPolicy = DEFAULT_POLICY) -> 'PolyZp':
        """Product, dispatching to NTT above the size threshold."""
        self._same_field(other)
        threshold = policy.ntt_threshold
        if (len(self.coeffs) * len(other.coeffs) > threshold * threshold
                and self.fast_mul_applicable(other)):
            logger.debug(f"NTT product of lengths {len(self.coeffs)}x{len(other.coeffs)}")
            return self.mul_fast(other)
        return self.mul_naive(other)

    def pow(self, n: int) -> 'PolyZp':
        """self^n by repeated squaring."""
        if n < 0:
            raise ValueError("Polynomial power must be non-negative")
        result = PolyZp.one(self.modulus)
        square = self
        while n:
            if n & 1:
                result = result.mul(square)
            n >>= 1
            if n:
                square = square.mul(square)
        return result

    # === Division ===

    def div_rem(self, divisor: 'PolyZp') -> Tuple['PolyZp', 'PolyZp']:
        """Long division: self = q*divisor + r with deg r < deg divisor."""
        self._same_field(divisor)
        if divisor.is_zero():
            raise DivisionByZeroError("Polynomial division by zero")
        p = self.modulus
        d = divisor.coeffs
        rem = list(self.coeffs)
        if len(rem) < len(d):
            return PolyZp.zero(p), self
        inv = mod_inverse(d[-1], p)
        quotient = [0] * (len(rem) - len(d) + 1)
        for k in range(len(rem) - len(d), -1, -1):
            c = rem[k + len(d) - 1] * inv % p
            quotient[k] = c
            if c:
                for j, dj in enumerate(d):
                    rem[k + j] = (rem[k + j] - c * dj) % p
        return self._new(quotient), self._new(rem[:len(d) - 1])

    def make_monic(self) -> 'PolyZp':
        if self.is_zero():
            return self
        return self.scalar_mul(mod_inverse(self.leading_coefficient, self.modulus))

    def gcd(self, other: 'PolyZp') -> 'PolyZp':
        """Monic Euclidean GCD; zero when both inputs are zero."""
        self._same_field(other)
        a, b = self, other
        while not b.is_zero():
            a, b = b, a.div_rem(b)[1]
        return a.make_monic()

    def extended_gcd(self, other: 'PolyZp') -> Tuple['PolyZp', 'PolyZp', 'PolyZp']:
        """(g, s, t) with g = s*self + t*other and g monic."""
        self._same_field(other)
        p = self.modulus
        r0, r1 = self, other
        s0, s1 = PolyZp.one(p), PolyZp.zero(p)
        t0, t1 = PolyZp.zero(p), PolyZp.one(p)
        while not r1.is_zero():
            q, r = r0.div_rem(r1)
            r0, r1 = r1, r
            s0, s1 = s1, s0.sub(q.mul(s1))
            t0, t1 = t1, t0.sub(q.mul(t1))
        if r0.is_zero():
            return r0, PolyZp.zero(p), PolyZp.zero(p)
        inv = mod_inverse(r0.leading_coefficient, p)
        return r0.scalar_mul(inv), s0.scalar_mul(inv), t0.scalar_mul(inv)

    # === Evaluation and calculus ===

    def evaluate(self, x: int) -> int:
        """Horner evaluation at x."""
        p = self.modulus
        acc = 0
        x %= p
        for c in reversed(self.coeffs):
            acc = (acc * x + c) % p
        return acc

    def derivative(self) -> 'PolyZp':
        return self._new(i * c for i, c in enumerate(self.coeffs) if i > 0)

    # === Operators ===

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

    def __rmul__(self, other):
        return self.scalar_mul(other)

    def __divmod__(self, other):
        return self.div_rem(other)

    def __floordiv__(self, other):
        return self.div_rem(other)[0]

    def __mod__(self, other):
        return self.div_rem(other)[1]

    def __pow__(self, n: int):
        return self.pow(n)

    def __call__(self, x: int) -> int:
        return self.evaluate(x)

    def __str__(self) -> str:
        if self.is_zero():
            return "0"
        terms = []
        for k in range(len(self.coeffs) - 1, -1, -1):
            c = self.coeffs[k]
            if c:
                terms.append(f"{c}" if k == 0 else f"{c}*x^{k}" if k > 1 else f"{c}*x")
        return " + ".join(terms) + f" (mod {self.modulus})"
