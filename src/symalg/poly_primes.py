"""Prime utilities for the polynomial kernel.

Deterministic Miller-Rabin for 64-bit inputs, primitive roots, the named
NTT-friendly primes, and the lazily generated pool of 62-bit primes of the
form c*2^32 + 1 consumed by the modular GCD.
"""

import logging
import threading
from typing import List, Optional

logger = logging.getLogger('symalg.poly')

# p - 1 = 15 * 2^27
NTT_PRIME_1 = 2013265921
# p - 1 = 7 * 2^26
NTT_PRIME_2 = 469762049
# p - 1 = 119 * 2^23
NTT_PRIME_3 = 998244353
# p - 1 = 29 * 2^57, just below 2^62
NTT_PRIME_62 = 4179340454199820289

NTT_PRIMES = (NTT_PRIME_1, NTT_PRIME_2, NTT_PRIME_3, NTT_PRIME_62)

MAX_MODULUS_BITS = 62

# Deterministic witness set for all n < 3.3e24
_MR_BASES = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37)


def is_prime(n: int) -> bool:
    """Deterministic Miller-Rabin primality test for 64-bit integers."""
    if n < 2:
        return False
    for p in _MR_BASES:
        if n % p == 0:
            return n == p
    d = n - 1
    s = 0
    while d % 2 == 0:
        d //= 2
        s += 1
    for a in _MR_BASES:
        x = pow(a, d, n)
        if x == 1 or x == n - 1:
            continue
        for _ in range(s - 1):
            x = x * x % n
            if x == n - 1:
                break
        else:
            return False
    return True


def _prime_factors(n: int) -> List[int]:
    factors = []
    if n % 2 == 0:
        factors.append(2)
        while n % 2 == 0:
            n //= 2
    f = 3
    while f * f <= n:
        if n % f == 0:
            factors.append(f)
            while n % f == 0:
                n //= f
        f += 2
    if n > 1:
        factors.append(n)
    return factors


def primitive_root(p: int) -> int:
    """Smallest generator of the multiplicative group mod prime p.

    The cofactor of p - 1 after removing powers of two is trial-divided, so
    this is meant for NTT-friendly primes where it is small.
    """
    if p == 2:
        return 1
    factors = _prime_factors(p - 1)
    for g in range(2, p):
        if all(pow(g, (p - 1) // q, p) != 1 for q in factors):
            return g
    raise ValueError(f"No primitive root found for {p}")


def two_adicity(p: int) -> int:
    """Largest k with 2^k dividing p - 1."""
    k = 0
    m = p - 1
    while m % 2 == 0:
        m //= 2
        k += 1
    return k


def root_of_unity(p: int, n: int) -> Optional[int]:
    """A primitive n-th root of unity mod p, or None when n does not divide p - 1."""
    if n <= 0 or (p - 1) % n != 0:
        return None
    return pow(primitive_root(p), (p - 1) // n, p)


class PrimePool:
    """Lazily generated, lock-guarded pool of primes c*2^32 + 1 below 2^62.

    Primes are generated in decreasing order of c, so the pool is the same in
    every process.
    """

    SHIFT = 32

    def __init__(self):
        self._primes: List[int] = []
        self._next_c = ((1 << MAX_MODULUS_BITS) - 1) >> self.SHIFT
        self._lock = threading.Lock()

    def get(self, count: int) -> List[int]:
        """The first ``count`` pool primes."""
        if len(self._primes) < count:
            with self._lock:
                while len(self._primes) < count and self._next_c > 0:
                    candidate = (self._next_c << self.SHIFT) + 1
                    self._next_c -= 1
                    if is_prime(candidate):
                        self._primes.append(candidate)
                logger.debug(f"Prime pool extended to {len(self._primes)} primes")
        return list(self._primes[:count])


PRIME_POOL = PrimePool()


def pool_primes(count: int) -> List[int]:
    return PRIME_POOL.get(count)
