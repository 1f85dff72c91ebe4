"""GCD of integer polynomials: algorithm dispatcher and modular algorithm.

The modular algorithm computes monic image GCDs modulo pool primes, scales
them by gcd(lc f, lc g), rejects unlucky primes by degree, lifts the images
by CRT with balanced representatives and stops once the lift is stable and
passes trial division.
"""

import logging
import math
from enum import Enum
from typing import List, Optional

from .errors import (
    LeadingCoefficientVanishedError, PrimePoolExhaustedError, TrialDivisionError,
)
from .logging_config import Timer
from .poly_int import IntPoly, RationalPoly
from .poly_primes import pool_primes
from .poly_zp import mod_inverse
from .policy import AlgorithmPolicy, DEFAULT_POLICY

logger = logging.getLogger('symalg.gcd')


class GcdAlgorithm(Enum):
    """Strategies the dispatcher chooses between."""
    INTEGER = "integer"
    TRIVIAL = "trivial"
    EUCLIDEAN = "euclidean"
    MODULAR = "modular"
    MULTIVARIATE = "multivariate"


def select_gcd_algorithm(f: IntPoly, g: IntPoly,
                         policy: AlgorithmPolicy = DEFAULT_POLICY,
                         num_variables: int = 1) -> GcdAlgorithm:
    """Pick the GCD strategy from degree, density and coefficient size."""
    if num_variables > 1:
        return GcdAlgorithm.MULTIVARIATE
    if f.is_constant() and g.is_constant():
        return GcdAlgorithm.INTEGER
    if f.is_zero() or g.is_zero() or f.is_unit() or g.is_unit():
        return GcdAlgorithm.TRIVIAL
    if min(f.density(), g.density()) < policy.sparse_density:
        return GcdAlgorithm.MODULAR
    max_degree = max(f.degree, g.degree)
    coefficient_bits = max(f.max_norm(), g.max_norm()).bit_length()
    if max_degree < policy.euclidean_max_degree and coefficient_bits <= policy.small_coefficient_bits:
        return GcdAlgorithm.EUCLIDEAN
    return GcdAlgorithm.MODULAR


def crt_combine(a: int, m: int, b: int, p: int) -> int:
    """x with x = a mod m and x = b mod p, in [0, m*p)."""
    t = (b - a) * mod_inverse(m, p) % p
    return a + m * t


def coefficient_bound(f: IntPoly, g: IntPoly, gamma: int) -> int:
    """Bound on the coefficients of gamma/lc(h) * h for any common factor h."""
    d = min(f.degree, g.degree)
    return gamma * (1 << d) * min(f.l2_norm_bound(), g.l2_norm_bound())


def euclidean_gcd(f: IntPoly, g: IntPoly) -> IntPoly:
    """Classical path: Euclid over Q on the primitive parts."""
    c = math.gcd(f.content(), g.content())
    h = RationalPoly.from_intpoly(f.primitive_part()).gcd(RationalPoly.from_intpoly(g.primitive_part()))
    return h.to_primitive_intpoly().scalar_mul(c)


def modular_gcd(f: IntPoly, g: IntPoly, policy: AlgorithmPolicy = DEFAULT_POLICY) -> IntPoly:
    """Modular GCD over Z with CRT lifting.

    Raises:
        LeadingCoefficientVanishedError: If every pool prime divides a leading coefficient
        PrimePoolExhaustedError: If the pool runs out before a verified result
        TrialDivisionError: If trial division fails past the coefficient bound
    """
    c = math.gcd(f.content(), g.content())
    ff, gg = f.primitive_part(), g.primitive_part()
    if ff.is_constant() or gg.is_constant():
        return IntPoly.constant(c)

    lc_f, lc_g = ff.leading_coefficient, gg.leading_coefficient
    gamma = math.gcd(lc_f, lc_g)
    bound = coefficient_bound(ff, gg, gamma)

    primes = [p for p in pool_primes(policy.prime_pool_size) if lc_f % p and lc_g % p]
    if not primes:
        raise LeadingCoefficientVanishedError(lc_f, lc_g)

    min_degree: Optional[int] = None
    lifted: Optional[List[int]] = None
    crt_modulus = 1
    previous: Optional[IntPoly] = None

    for used, p in enumerate(primes, start=1):
        image = ff.reduce_mod(p).gcd(gg.reduce_mod(p))
        degree = image.degree
        if degree == 0:
            # Coprime images mean coprime primitive parts
            return IntPoly.constant(c)
        if min_degree is not None and degree > min_degree:
            logger.debug(f"Unlucky prime {p}: image degree {degree} > {min_degree}")
            continue
        if min_degree is None or degree < min_degree:
            if min_degree is not None:
                logger.debug(f"Degree dropped to {degree} at prime {p}; discarding {crt_modulus} lift")
            min_degree = degree
            lifted = None
            previous = None

        scaled = list(image.scalar_mul(gamma).coeffs)
        if lifted is None:
            lifted, crt_modulus = scaled, p
        else:
            lifted = [crt_combine(a, crt_modulus, b, p) for a, b in zip(lifted, scaled)]
            crt_modulus *= p

        candidate = IntPoly.from_balanced(lifted, crt_modulus)
        if candidate == previous:
            h = candidate.primitive_part().normalized()
            if h.divides(ff) and h.divides(gg):
                logger.debug(f"Modular GCD verified after {used} primes",
                             extra={'extra_data': {'degree': h.degree, 'primes': used}})
                return h.scalar_mul(c)
            if crt_modulus > 2 * bound:
                raise TrialDivisionError(bound, crt_modulus)
        previous = candidate

    raise PrimePoolExhaustedError(len(primes))


def int_poly_gcd(f: IntPoly, g: IntPoly, policy: Optional[AlgorithmPolicy] = None) -> IntPoly:
    """GCD over Z[x] with a positive leading coefficient."""
    policy = policy or DEFAULT_POLICY
    algorithm = select_gcd_algorithm(f, g, policy)
    logger.debug(f"GCD algorithm: {algorithm.value}",
                 extra={'extra_data': {'deg_f': f.degree, 'deg_g': g.degree}})

    with Timer("gcd") as timer:
        if algorithm is GcdAlgorithm.INTEGER:
            result = IntPoly.constant(math.gcd(f.content(), g.content()))
        elif algorithm is GcdAlgorithm.TRIVIAL:
            if f.is_zero():
                result = g.normalized()
            elif g.is_zero():
                result = f.normalized()
            else:
                result = IntPoly.one()
        elif algorithm is GcdAlgorithm.EUCLIDEAN:
            result = euclidean_gcd(f, g)
        else:
            try:
                result = modular_gcd(f, g, policy)
            except PrimePoolExhaustedError as e:
                logger.warning(f"Falling back to Euclidean GCD over Q: {e}")
                result = euclidean_gcd(f, g)

    logger.debug(f"GCD computed in {timer.elapsed_ms():.3f} ms",
                 extra={'extra_data': dict(timer.fields(), algorithm=algorithm.value)})
    return result
