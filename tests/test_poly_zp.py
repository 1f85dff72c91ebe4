"""
Prime-field polynomial tests: field elements, ring laws, division, GCD and
extended GCD.
"""

import threading

import pytest

from symalg import poly_zp
from symalg.poly_zp import Zp, PolyZp, check_modulus, mod_inverse
from symalg.poly_primes import NTT_PRIME_3
from symalg.policy import AlgorithmPolicy
from symalg.errors import DivisionByZeroError, OverflowInFieldError


P = 10007


def random_poly(rng, degree, p=P):
    return PolyZp(tuple(int(c) for c in rng.integers(0, p, size=degree + 1)), p)


class TestFieldElements:

    def test_inverse(self):
        """a * a^-1 = 1 for every non-zero a."""
        for value in (1, 2, 3, 5000, P - 1):
            a = Zp(value, P)
            assert a * a.inverse() == 1

    def test_arithmetic(self):
        a = Zp(5, 7)
        assert a + 4 == Zp(2, 7)
        assert 3 - a == Zp(5, 7)
        assert a / 5 == 1
        assert a ** -1 == Zp(3, 7)

    def test_zero_has_no_inverse(self):
        with pytest.raises(DivisionByZeroError):
            Zp(0, 7).inverse()
        with pytest.raises(ZeroDivisionError):
            mod_inverse(14, 7)

    def test_moduli_must_agree(self):
        with pytest.raises(ValueError):
            Zp(1, 7) + Zp(1, 11)


class TestModulus:

    def test_composite_rejected(self):
        with pytest.raises(ValueError):
            PolyZp((1, 2), 15)

    def test_oversized_rejected(self):
        with pytest.raises(OverflowInFieldError):
            check_modulus((1 << 62) + 135)

    def test_mismatched_moduli(self):
        with pytest.raises(ValueError):
            PolyZp((1,), 7).add(PolyZp((1,), 11))


class TestRepresentation:

    def test_trailing_zeros_trimmed(self):
        poly = PolyZp((1, 2, 0, 7), 7)
        assert poly.coeffs == (1, 2)
        assert poly.degree == 1

    def test_zero_polynomial(self):
        zero = PolyZp.zero(7)
        assert zero.coeffs == ()
        assert zero.degree is None
        assert zero.is_zero()

    def test_coefficients_reduced(self):
        assert PolyZp((-1, 8), 7).coeffs == (6, 1)

    def test_from_roots(self):
        poly = PolyZp.from_roots([1, 2], 7)
        assert poly.coeffs == (2, 4, 1)
        assert poly(1) == 0
        assert poly(2) == 0


class TestRingLaws:

    def test_add_then_sub(self, rng):
        """(a + b) - b = a."""
        for _ in range(10):
            a = random_poly(rng, int(rng.integers(0, 20)))
            b = random_poly(rng, int(rng.integers(0, 20)))
            assert (a + b) - b == a

    def test_multiplication_commutes(self, rng):
        for _ in range(10):
            a = random_poly(rng, int(rng.integers(0, 15)))
            b = random_poly(rng, int(rng.integers(0, 15)))
            assert a * b == b * a

    def test_scalar_and_negation(self):
        a = PolyZp((1, 2, 3), 7)
        assert 2 * a == PolyZp((2, 4, 6), 7)
        assert a + (-a) == PolyZp.zero(7)

    def test_pow(self):
        a = PolyZp((1, 1), 7)
        assert a ** 3 == a * a * a
        assert a ** 0 == PolyZp.one(7)

    def test_dispatch_uses_ntt_above_threshold(self, rng):
        policy = AlgorithmPolicy.from_dict({'multiplication': {'ntt_threshold': 4}})
        a = random_poly(rng, 20, NTT_PRIME_3)
        b = random_poly(rng, 20, NTT_PRIME_3)
        assert a.fast_mul_applicable(b)
        assert a.mul(b, policy) == a.mul_naive(b)

    def test_derivative(self):
        assert PolyZp((5, 3, 2), 7).derivative() == PolyZp((3, 4), 7)


class TestDivision:

    def test_div_rem(self, rng):
        for _ in range(10):
            a = random_poly(rng, 12)
            b = random_poly(rng, 5)
            q, r = divmod(a, b)
            assert q * b + r == a
            assert r.is_zero() or r.degree < b.degree

    def test_division_by_zero(self):
        with pytest.raises(DivisionByZeroError):
            PolyZp((1, 1), 7).div_rem(PolyZp.zero(7))

    def test_make_monic(self):
        poly = PolyZp((2, 4), 7).make_monic()
        assert poly.leading_coefficient == 1
        assert poly == PolyZp((4, 1), 7)


class TestGcd:

    def test_common_linear_factor(self):
        """gcd(2 + 4x, 3 + 6x) mod 7 is the monic x + 4."""
        g = PolyZp((2, 4), 7).gcd(PolyZp((3, 6), 7))
        assert g.degree == 1
        assert g.leading_coefficient == 1
        assert g == PolyZp((4, 1), 7)
        assert (PolyZp((2, 4), 7) % g).is_zero()
        assert (PolyZp((3, 6), 7) % g).is_zero()

    def test_shared_roots(self):
        a = PolyZp.from_roots([1, 2, 3], P)
        b = PolyZp.from_roots([2, 3, 4], P)
        assert a.gcd(b) == PolyZp.from_roots([2, 3], P)

    def test_both_zero(self):
        assert PolyZp.zero(7).gcd(PolyZp.zero(7)).is_zero()

    def test_gcd_with_zero_is_monic_input(self):
        a = PolyZp((3, 6), 7)
        assert a.gcd(PolyZp.zero(7)) == a.make_monic()

    def test_associative(self, rng):
        """gcd(gcd(a, b), c) = gcd(a, gcd(b, c))."""
        common = PolyZp.from_roots([5, 9], P)
        for _ in range(5):
            a = random_poly(rng, 4) * common
            b = random_poly(rng, 3) * common
            c = random_poly(rng, 5) * PolyZp.from_roots([9], P)
            left = a.gcd(b).gcd(c)
            right = a.gcd(b.gcd(c))
            assert left == right
            assert left.is_zero() or left.leading_coefficient == 1

    def test_extended_gcd(self, rng):
        """s*a + t*b = gcd(a, b)."""
        for _ in range(10):
            a = random_poly(rng, int(rng.integers(1, 12)))
            b = random_poly(rng, int(rng.integers(1, 12)))
            g, s, t = a.extended_gcd(b)
            assert s * a + t * b == g
            assert g == a.gcd(b)

    def test_extended_gcd_of_zeros(self):
        g, s, t = PolyZp.zero(7).extended_gcd(PolyZp.zero(7))
        assert g.is_zero() and s.is_zero() and t.is_zero()


class TestEvaluation:

    def test_horner(self):
        poly = PolyZp((1, 2, 3), 7)
        assert poly.evaluate(2) == (1 + 4 + 12) % 7

    def test_str(self):
        assert str(PolyZp((1, 0, 3), 7)) == "3*x^2 + 1 (mod 7)"
        assert str(PolyZp.zero(7)) == "0"


class TestModulusCache:

    def test_concurrent_validation(self, monkeypatch):
        monkeypatch.setattr(poly_zp, '_VERIFIED_MODULI', set())
        errors = []

        def worker():
            try:
                for _ in range(50):
                    check_modulus(NTT_PRIME_3)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert poly_zp._VERIFIED_MODULI == {NTT_PRIME_3}

    def test_composite_not_cached(self, monkeypatch):
        monkeypatch.setattr(poly_zp, '_VERIFIED_MODULI', set())
        with pytest.raises(ValueError):
            check_modulus(91)
        assert 91 not in poly_zp._VERIFIED_MODULI
