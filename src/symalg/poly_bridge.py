"""Conversion between expressions and dense polynomials.

The extractor walks Add, Mul, Pow with non-negative integer exponents, the
distinguished variable and exact numbers; anything else raises
NotAPolynomialError. Embedding rebuilds an Add of c*x^k terms through the
canonical constructors.

Expression-level GCD results are memoized in a bounded LRU cache keyed by
the operands, the variable and the policy thresholds.
"""

import collections
import logging
import threading
from fractions import Fraction
from typing import Dict, Optional, Tuple

from .alg_types import Expression, Number, Symbol, Add, Mul, Pow
from .alg_construct import add, mul, pow, integer, rational
from .errors import NotAPolynomialError, UnsupportedError
from .poly_gcd import GcdAlgorithm, int_poly_gcd
from .poly_int import IntPoly, RationalPoly
from .poly_zp import PolyZp
from .policy import AlgorithmPolicy, DEFAULT_POLICY

logger = logging.getLogger('symalg.poly')

Terms = Dict[int, Fraction]

GCD_CACHE_SIZE = 128


def _multiply_terms(a: Terms, b: Terms) -> Terms:
    out: Terms = {}
    for i, x in a.items():
        for j, y in b.items():
            out[i + j] = out.get(i + j, Fraction(0)) + x * y
    return out


def _power_terms(base: Terms, n: int) -> Terms:
    """base^n by repeated squaring; a single monomial is raised directly."""
    if len(base) == 1:
        (k, c), = base.items()
        return {k * n: c ** n}
    result: Terms = {0: Fraction(1)}
    square = base
    while n:
        if n & 1:
            result = _multiply_terms(result, square)
        n >>= 1
        if n:
            square = _multiply_terms(square, square)
    return result


def _extract(expr: Expression, var: Symbol) -> Terms:
    if isinstance(expr, Number):
        if not expr.is_rational():
            raise NotAPolynomialError(f"Float coefficient {expr} in polynomial", expr)
        return {0: Fraction(expr.value)}
    if isinstance(expr, Symbol):
        if expr == var:
            return {1: Fraction(1)}
        raise NotAPolynomialError(f"Symbol {expr} is not the variable {var}", expr)
    if isinstance(expr, Add):
        out: Terms = {}
        for term in expr.terms:
            for k, c in _extract(term, var).items():
                out[k] = out.get(k, Fraction(0)) + c
        return out
    if isinstance(expr, Mul):
        out = {0: Fraction(1)}
        for factor in expr.factors:
            out = _multiply_terms(out, _extract(factor, var))
        return out
    if isinstance(expr, Pow):
        exponent = expr.exponent
        if not (isinstance(exponent, Number) and exponent.is_integer() and exponent.value >= 0):
            raise NotAPolynomialError(f"Exponent {exponent} is not a non-negative integer", expr)
        return _power_terms(_extract(expr.base, var), exponent.value)
    raise NotAPolynomialError(f"{type(expr).__name__} node is not polynomial", expr)


def _dense(terms: Terms) -> list:
    terms = {k: c for k, c in terms.items() if c}
    if not terms:
        return []
    coeffs = [Fraction(0)] * (max(terms) + 1)
    for k, c in terms.items():
        coeffs[k] += c
    return coeffs


def _integer_coefficients(expr: Expression, var: Symbol) -> list:
    coeffs = _dense(_extract(expr, var))
    for c in coeffs:
        if c.denominator != 1:
            raise NotAPolynomialError(f"Non-integer coefficient {c}", expr)
    return [c.numerator for c in coeffs]


# === Extractors ===

def expression_to_rationalpoly(expr: Expression, var: Symbol) -> RationalPoly:
    return RationalPoly(tuple(_dense(_extract(expr, var))))


def expression_to_intpoly(expr: Expression, var: Symbol) -> IntPoly:
    return IntPoly(tuple(_integer_coefficients(expr, var)))


def expression_to_polyzp(expr: Expression, var: Symbol, modulus: int) -> PolyZp:
    """Project ``expr`` onto F_p[var]."""
    return PolyZp(tuple(_integer_coefficients(expr, var)), modulus)


# === Embedders ===

def _embed(coeffs, var: Symbol, make_number) -> Expression:
    terms = []
    for k, c in enumerate(coeffs):
        if c:
            terms.append(mul([make_number(c), pow(var, integer(k))]))
    return add(terms)


def polyzp_to_expression(poly: PolyZp, var: Symbol, symmetric: bool = False) -> Expression:
    """Embed ``poly`` with residues in [0, p), or in (-p/2, p/2] when ``symmetric``."""
    if symmetric:
        return intpoly_to_expression(IntPoly.from_balanced(poly.coeffs, poly.modulus), var)
    return _embed(poly.coeffs, var, integer)


def intpoly_to_expression(poly: IntPoly, var: Symbol) -> Expression:
    return _embed(poly.coeffs, var, integer)


def rationalpoly_to_expression(poly: RationalPoly, var: Symbol) -> Expression:
    return _embed(poly.coeffs, var, lambda c: rational(c.numerator, c.denominator))


# === Expression-level operations ===

def _require_univariate(a: Expression, b: Expression, var: Symbol) -> None:
    extra = (a.free_symbols | b.free_symbols) - {var}
    if extra:
        names = ", ".join(sorted(s.name for s in extra))
        raise UnsupportedError(
            f"{GcdAlgorithm.MULTIVARIATE.value} GCD is not supported (extra symbols: {names})",
            sorted(extra, key=lambda s: s.name))


class GcdCache:
    """Bounded LRU memo of expression-level GCDs."""

    def __init__(self, maxsize: int = GCD_CACHE_SIZE):
        self.maxsize = maxsize
        self._entries = collections.OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(a: Expression, b: Expression, var: Symbol, policy: AlgorithmPolicy) -> tuple:
        thresholds = policy.to_dict()
        return (a, b, var, tuple((section, tuple(sorted(thresholds[section].items())))
                                 for section in sorted(thresholds)))

    def get(self, key: tuple) -> Optional[Expression]:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self.hits += 1
                return self._entries[key]
            self.misses += 1
            return None

    def put(self, key: tuple, value: Expression) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            if len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)


GCD_CACHE = GcdCache()


def polynomial_gcd(a: Expression, b: Expression, var: Symbol,
                   policy: Optional[AlgorithmPolicy] = None) -> Expression:
    """GCD of two polynomial expressions in ``var``.

    Integer-coefficient inputs get the GCD over Z (content included); inputs
    with rational coefficients get the primitive GCD.

    Raises:
        NotAPolynomialError: If an input is not a polynomial in ``var``
        UnsupportedError: If an input involves other symbols
    """
    _require_univariate(a, b, var)
    key = GcdCache.key(a, b, var, policy or DEFAULT_POLICY)
    cached = GCD_CACHE.get(key)
    if cached is not None:
        return cached

    fa = expression_to_rationalpoly(a, var)
    fb = expression_to_rationalpoly(b, var)
    if all(c.denominator == 1 for c in fa.coeffs + fb.coeffs):
        result = int_poly_gcd(IntPoly(tuple(int(c) for c in fa.coeffs)),
                              IntPoly(tuple(int(c) for c in fb.coeffs)), policy)
    else:
        logger.debug("Rational coefficients: computing primitive GCD")
        result = int_poly_gcd(fa.to_primitive_intpoly(), fb.to_primitive_intpoly(), policy)
        result = result.primitive_part()
    gcd = intpoly_to_expression(result, var)
    GCD_CACHE.put(key, gcd)
    return gcd


def polynomial_div(a: Expression, b: Expression, var: Symbol) -> Tuple[Expression, Expression]:
    """(quotient, remainder) of a / b over Q[var].

    Raises:
        DivisionByZeroError: If b is the zero polynomial
    """
    q, r = expression_to_rationalpoly(a, var).div_rem(expression_to_rationalpoly(b, var))
    return rationalpoly_to_expression(q, var), rationalpoly_to_expression(r, var)


def polynomial_quo(a: Expression, b: Expression, var: Symbol) -> Expression:
    """Quotient of a / b over Q[var]."""
    return polynomial_div(a, b, var)[0]


def polynomial_rem(a: Expression, b: Expression, var: Symbol) -> Expression:
    """Remainder of a / b over Q[var]."""
    return polynomial_div(a, b, var)[1]
