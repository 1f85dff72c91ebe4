"""Number-Theoretic Transform with Montgomery arithmetic.

Residues are kept in Montgomery form a*R mod p with R = 2^64. Vectors are
numpy object arrays of Python ints, so the butterflies run as whole-array
operations without overflow for moduli up to 62 bits.
"""

import logging
import threading
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .errors import NTTUnsupportedError, OverflowInFieldError
from .poly_primes import MAX_MODULUS_BITS, root_of_unity

logger = logging.getLogger('symalg.ntt')

R_BITS = 64
R_MASK = (1 << R_BITS) - 1


def _inverse_mod_r(p: int) -> int:
    """p^-1 mod 2^64 by Newton iteration (p odd)."""
    inv = p  # correct to 3 bits since p*p = 1 mod 8
    for _ in range(6):
        inv = (inv * (2 - p * inv)) & R_MASK
    return inv


class MontgomeryContext:
    """Montgomery arithmetic modulo an odd prime p < 2^62."""

    def __init__(self, p: int):
        if p % 2 == 0 or p < 3:
            raise ValueError(f"Montgomery modulus must be an odd prime, got {p}")
        if p.bit_length() > MAX_MODULUS_BITS:
            raise OverflowInFieldError(p)
        self.p = p
        self.r = (1 << R_BITS) % p
        self.r2 = (self.r * self.r) % p
        self.p_inv_neg = (-_inverse_mod_r(p)) & R_MASK

    # Scalar operations

    def reduce(self, t: int) -> int:
        """REDC: t * R^-1 mod p for 0 <= t < p*R."""
        m = ((t & R_MASK) * self.p_inv_neg) & R_MASK
        u = (t + m * self.p) >> R_BITS
        return u - self.p if u >= self.p else u

    def to_montgomery(self, a: int) -> int:
        return self.reduce((a % self.p) * self.r2)

    def from_montgomery(self, a: int) -> int:
        return self.reduce(a)

    def mont_mul(self, a: int, b: int) -> int:
        return self.reduce(a * b)

    def mont_add(self, a: int, b: int) -> int:
        s = a + b
        return s - self.p if s >= self.p else s

    def mont_sub(self, a: int, b: int) -> int:
        return a - b if a >= b else a - b + self.p

    # Array operations on numpy object arrays

    def reduce_array(self, t: np.ndarray) -> np.ndarray:
        m = ((t & R_MASK) * self.p_inv_neg) & R_MASK
        u = (t + m * self.p) >> R_BITS
        return np.where(u >= self.p, u - self.p, u)

    def to_montgomery_array(self, values: Sequence[int]) -> np.ndarray:
        arr = np.array([int(v) % self.p for v in values], dtype=object)
        return self.reduce_array(arr * self.r2) if len(arr) else arr

    def from_montgomery_array(self, values: np.ndarray) -> np.ndarray:
        return self.reduce_array(values) if len(values) else values

    def mont_mul_array(self, a: np.ndarray, b) -> np.ndarray:
        return self.reduce_array(a * b)

    def mont_add_array(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        s = a + b
        return np.where(s >= self.p, s - self.p, s)

    def mont_sub_array(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        d = a - b
        return np.where(d < 0, d + self.p, d)


def _is_power_of_two(n: int) -> bool:
    return n > 0 and n & (n - 1) == 0


def bit_reverse_indices(n: int) -> np.ndarray:
    """Index table i -> reverse of the log2(n) low bits of i."""
    bits = n.bit_length() - 1
    idx = np.arange(n, dtype=np.int64)
    rev = np.zeros(n, dtype=np.int64)
    for bit in range(bits):
        rev |= ((idx >> bit) & 1) << (bits - 1 - bit)
    return rev


class TwiddleTable:
    """Precomputed twiddles for transforms of size n modulo p.

    ``forward[k] = w^k`` and ``inverse[k] = w^-k`` for k < n/2 in Montgomery
    form, where w is a primitive n-th root of unity.
    """

    def __init__(self, n: int, p: int):
        if not _is_power_of_two(n):
            raise NTTUnsupportedError(p, n)
        omega = root_of_unity(p, n)
        if omega is None:
            raise NTTUnsupportedError(p, n)
        self.n = n
        self.p = p
        self.ctx = MontgomeryContext(p)
        omega_inv = pow(omega, p - 2, p)

        half = max(n // 2, 1)
        forward = [1] * half
        inverse = [1] * half
        for k in range(1, half):
            forward[k] = forward[k - 1] * omega % p
            inverse[k] = inverse[k - 1] * omega_inv % p
        self.forward = self.ctx.to_montgomery_array(forward)
        self.inverse = self.ctx.to_montgomery_array(inverse)
        self.n_inv_mont = self.ctx.to_montgomery(pow(n, p - 2, p))
        self.bit_reverse = bit_reverse_indices(n)


_TWIDDLE_CACHE: Dict[Tuple[int, int], TwiddleTable] = {}
_TWIDDLE_LOCK = threading.Lock()


def get_twiddle_table(n: int, p: int) -> TwiddleTable:
    """Shared twiddle table for (p, n), built once on first use."""
    key = (p, n)
    table = _TWIDDLE_CACHE.get(key)
    if table is None:
        with _TWIDDLE_LOCK:
            table = _TWIDDLE_CACHE.get(key)
            if table is None:
                table = TwiddleTable(n, p)
                _TWIDDLE_CACHE[key] = table
                logger.debug(f"Twiddle table built for n={n} p={p}")
    return table


def ntt_supported(p: int, n: int) -> bool:
    return _is_power_of_two(n) and (p - 1) % n == 0


def bit_reverse_permute(values: np.ndarray, table: TwiddleTable) -> np.ndarray:
    """Permute ``values`` in place into bit-reversed order."""
    values[:] = values[table.bit_reverse]
    return values


def _as_vector(values, table: TwiddleTable) -> np.ndarray:
    if not isinstance(values, np.ndarray):
        values = np.array(list(values), dtype=object)
    if len(values) != table.n:
        raise NTTUnsupportedError(table.p, len(values))
    return values


def _butterflies(a: np.ndarray, twiddles: np.ndarray, table: TwiddleTable) -> None:
    ctx = table.ctx
    n = table.n
    length = 2
    while length <= n:
        half = length // 2
        w = twiddles[::n // length][:half]
        blocks = a.reshape(-1, length)
        u = blocks[:, :half].copy()
        v = ctx.mont_mul_array(blocks[:, half:], w)
        blocks[:, :half] = ctx.mont_add_array(u, v)
        blocks[:, half:] = ctx.mont_sub_array(u, v)
        length *= 2


def ntt_forward(values, table: TwiddleTable) -> np.ndarray:
    """Forward transform of a Montgomery-form vector of length table.n.

    Arrays are transformed in place; other sequences are copied.
    """
    a = _as_vector(values, table)
    bit_reverse_permute(a, table)
    _butterflies(a, table.forward, table)
    return a


def ntt_inverse(values, table: TwiddleTable, to_standard: bool = True) -> np.ndarray:
    """Inverse transform, scaled by n^-1; optionally leaves Montgomery form."""
    a = _as_vector(values, table)
    bit_reverse_permute(a, table)
    _butterflies(a, table.inverse, table)
    a[:] = table.ctx.mont_mul_array(a, table.n_inv_mont)
    if to_standard:
        a[:] = table.ctx.from_montgomery_array(a)
    return a


def next_power_of_two(n: int) -> int:
    return 1 if n <= 1 else 1 << (n - 1).bit_length()


def mul_fast(a: Sequence[int], b: Sequence[int], p: int) -> List[int]:
    """Product of two coefficient vectors mod p via NTT convolution.

    Raises:
        NTTUnsupportedError: If no root of unity of the padded size exists mod p
    """
    if not a or not b:
        return []
    size = next_power_of_two(len(a) + len(b) - 1)
    table = get_twiddle_table(size, p)
    ctx = table.ctx

    fa = np.zeros(size, dtype=object)
    fb = np.zeros(size, dtype=object)
    fa[:len(a)] = ctx.to_montgomery_array(a)
    fb[:len(b)] = ctx.to_montgomery_array(b)

    ntt_forward(fa, table)
    ntt_forward(fb, table)
    product = ctx.mont_mul_array(fa, fb)
    ntt_inverse(product, table)

    result = [int(c) for c in product[:len(a) + len(b) - 1]]
    while result and result[-1] == 0:
        result.pop()
    return result
