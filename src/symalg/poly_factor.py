"""Factorization of polynomials over prime fields.

A polynomial is first split into square-free parts; repeated factors whose
multiplicity is a multiple of p vanish under differentiation and are
recovered through p-th roots. Each square-free part is then split by
Berlekamp's algorithm: the null space of Q - I, with column j of Q holding
x^(p*j) mod f, spans the polynomials v with v^p = v mod f, and gcds of f with
shifts of such v separate the irreducible factors.

Small primes enumerate every shift v - s. Above the policy limit the shift
search is replaced by random splitting, gcd(u, w^((p-1)/2) - 1) for random w
in the null space, which separates factors with probability at least 1/2 per
round.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .errors import ConvergenceFailedError
from .logging_config import Timer
from .poly_zp import PolyZp, mod_inverse
from .policy import AlgorithmPolicy, DEFAULT_POLICY

logger = logging.getLogger('symalg.poly')

_SPLIT_SEED = 20240611
_MAX_SPLIT_ROUNDS = 64


@dataclass(frozen=True)
class Factorization:
    """f = unit * prod(factor^multiplicity) with monic irreducible factors."""
    unit: int
    factors: Tuple[Tuple[PolyZp, int], ...]
    modulus: int

    @property
    def irreducibles(self) -> List[PolyZp]:
        return [f for f, _ in self.factors]

    def expand(self) -> PolyZp:
        result = PolyZp.constant(self.unit, self.modulus)
        for factor, multiplicity in self.factors:
            result = result.mul(factor.pow(multiplicity))
        return result


def _require_nonzero(f: PolyZp) -> None:
    if f.is_zero():
        raise ValueError("The zero polynomial has no factorization")


def pth_root(f: PolyZp) -> PolyZp:
    """g with g^p = f, for f whose exponents are all multiples of p.

    Frobenius fixes F_p, so the coefficients carry over unchanged.
    """
    p = f.modulus
    if any(c for i, c in enumerate(f.coeffs) if i % p):
        raise ValueError("Polynomial is not a p-th power")
    return PolyZp(f.coeffs[::p], p)


def square_free_decomposition(f: PolyZp) -> List[Tuple[PolyZp, int]]:
    """Monic square-free parts with multiplicities, ascending by multiplicity.

    The leading coefficient is dropped; parts are pairwise coprime and their
    product with multiplicities is the monic associate of ``f``.
    """
    _require_nonzero(f)
    p = f.modulus
    f = f.make_monic()
    parts: List[Tuple[PolyZp, int]] = []

    c = f.gcd(f.derivative())
    w = f.div_rem(c)[0]
    i = 1
    while not w.is_one():
        y = w.gcd(c)
        part = w.div_rem(y)[0]
        if part.degree > 0:
            parts.append((part, i))
        w = y
        c = c.div_rem(y)[0]
        i += 1

    if not c.is_one():
        # Remaining factors have multiplicities divisible by p
        for part, k in square_free_decomposition(pth_root(c)):
            parts.append((part, k * p))
    return sorted(parts, key=lambda entry: entry[1])


def _pow_mod(base: PolyZp, n: int, f: PolyZp) -> PolyZp:
    """base^n mod f by repeated squaring."""
    p = f.modulus
    result = PolyZp.one(p)
    square = base.div_rem(f)[1]
    while n:
        if n & 1:
            result = result.mul(square).div_rem(f)[1]
        n >>= 1
        if n:
            square = square.mul(square).div_rem(f)[1]
    return result


def berlekamp_matrix(f: PolyZp) -> np.ndarray:
    """Q with column j the coefficients of x^(p*j) mod f, for monic f."""
    n = f.degree
    p = f.modulus
    q = np.zeros((n, n), dtype=object)
    x_p = _pow_mod(PolyZp.monomial(1, 1, p), p, f)
    current = PolyZp.one(p)
    for j in range(n):
        for i, c in enumerate(current.coeffs):
            q[i, j] = c
        if j < n - 1:
            current = current.mul(x_p).div_rem(f)[1]
    return q


def null_space_mod_p(matrix: np.ndarray, p: int) -> List[np.ndarray]:
    """Basis of {v : matrix @ v = 0 mod p} by Gauss-Jordan elimination."""
    m = np.array(matrix, dtype=object) % p
    rows, cols = m.shape
    pivots: List[int] = []
    row = 0
    for col in range(cols):
        if row == rows:
            break
        candidates = [r for r in range(row, rows) if m[r, col]]
        if not candidates:
            continue
        pivot_row = candidates[0]
        if pivot_row != row:
            m[[row, pivot_row]] = m[[pivot_row, row]]
        m[row] = m[row] * mod_inverse(int(m[row, col]), p) % p
        for r in range(rows):
            if r != row and m[r, col]:
                m[r] = (m[r] - m[r, col] * m[row]) % p
        pivots.append(col)
        row += 1

    basis = []
    for free in range(cols):
        if free in pivots:
            continue
        v = np.zeros(cols, dtype=object)
        v[free] = 1
        for r, pivot_col in enumerate(pivots):
            v[pivot_col] = (-m[r, free]) % p
        basis.append(v)
    return basis


def _berlekamp_basis(f: PolyZp) -> List[PolyZp]:
    p = f.modulus
    q = berlekamp_matrix(f)
    for i in range(f.degree):
        q[i, i] = (q[i, i] - 1) % p
    return [PolyZp(tuple(int(c) for c in v), p) for v in null_space_mod_p(q, p)]


def _split_by_enumeration(f: PolyZp, vectors: List[PolyZp], count: int) -> List[PolyZp]:
    p = f.modulus
    factors = [f]
    for v in vectors:
        for s in range(p):
            if len(factors) == count:
                return factors
            shifted = v.sub(PolyZp.constant(s, p))
            refined = []
            for u in factors:
                g = u.gcd(shifted) if u.degree > 1 else u
                if 0 < g.degree < u.degree:
                    refined.extend([g, u.div_rem(g)[0]])
                else:
                    refined.append(u)
            factors = refined
    return factors


def _split_randomly(f: PolyZp, vectors: List[PolyZp], count: int) -> List[PolyZp]:
    p = f.modulus
    rng = np.random.default_rng(_SPLIT_SEED)
    half = (p - 1) // 2
    factors = [f]
    rounds = 0
    while len(factors) < count:
        rounds += 1
        if rounds > _MAX_SPLIT_ROUNDS * count:
            raise ConvergenceFailedError(
                f"Random splitting found {len(factors)} of {count} factors mod {p}")
        w = PolyZp.zero(p)
        for v in vectors:
            w = w.add(v.scalar_mul(int(rng.integers(0, p))))
        refined = []
        for u in factors:
            if u.degree <= 1:
                refined.append(u)
                continue
            g = u.gcd(_pow_mod(w, half, u).sub(PolyZp.one(p)))
            if g.degree is not None and 0 < g.degree < u.degree:
                refined.extend([g, u.div_rem(g)[0]])
            else:
                refined.append(u)
        factors = refined
    return factors


def berlekamp_factor(f: PolyZp, policy: Optional[AlgorithmPolicy] = None) -> List[PolyZp]:
    """Monic irreducible factors of a square-free ``f``, sorted by degree.

    Raises:
        ValueError: If f is zero
        ConvergenceFailedError: If random splitting stalls
    """
    _require_nonzero(f)
    policy = policy or DEFAULT_POLICY
    f = f.make_monic()
    if f.degree == 0:
        return []
    if f.degree == 1:
        return [f]

    p = f.modulus
    basis = _berlekamp_basis(f)
    count = len(basis)
    if count == 1:
        return [f]
    vectors = [v for v in basis if v.degree is not None and v.degree > 0]
    if p == 2 or p <= policy.berlekamp_enumeration_limit:
        factors = _split_by_enumeration(f, vectors, count)
    else:
        factors = _split_randomly(f, vectors, count)
    return sorted(factors, key=lambda g: (g.degree, g.coeffs))


def factor_polyzp(f: PolyZp, policy: Optional[AlgorithmPolicy] = None) -> Factorization:
    """Complete factorization of ``f`` over F_p.

    Raises:
        ValueError: If f is zero
    """
    _require_nonzero(f)
    factors = []
    with Timer("factor") as timer:
        for part, multiplicity in square_free_decomposition(f):
            for g in berlekamp_factor(part, policy):
                factors.append((g, multiplicity))
    factors.sort(key=lambda entry: (entry[0].degree, entry[0].coeffs, entry[1]))
    logger.debug(f"Factored degree {f.degree} polynomial mod {f.modulus} "
                 f"into {len(factors)} factors ({timer.elapsed_ms():.3f} ms)",
                 extra={'extra_data': dict(timer.fields(), modulus=f.modulus,
                                            factor_count=len(factors))})
    return Factorization(f.leading_coefficient, tuple(factors), f.modulus)
