"""
Factorization over prime fields: square-free decomposition, the Berlekamp
null space and complete factorizations.
"""

import numpy as np
import pytest

from symalg.poly_zp import PolyZp
from symalg.poly_factor import (
    Factorization, pth_root, square_free_decomposition, berlekamp_matrix,
    null_space_mod_p, berlekamp_factor, factor_polyzp,
)
from symalg.policy import AlgorithmPolicy


def poly(coeffs, p=7):
    return PolyZp(tuple(coeffs), p)


def linear(root, p=7):
    """x - root"""
    return poly((-root, 1), p)


def by_coeffs(polys):
    return sorted(polys, key=lambda g: g.coeffs)


class TestSquareFree:

    def test_square_free_input(self):
        f = PolyZp.from_roots([1, 2, 3], 7)
        assert square_free_decomposition(f) == [(f, 1)]

    def test_repeated_root(self):
        """(x+1)^2 (x+2) splits into multiplicities 1 and 2."""
        f = linear(-1).pow(2).mul(linear(-2))
        assert square_free_decomposition(f) == [(linear(-2), 1), (linear(-1), 2)]

    def test_pth_power(self):
        """(x+1)^7 = x^7 + 1 mod 7 has a vanishing derivative."""
        f = linear(-1).pow(7)
        assert f == poly((1, 0, 0, 0, 0, 0, 0, 1))
        assert f.derivative().is_zero()
        assert square_free_decomposition(f) == [(linear(-1), 7)]

    def test_multiplicity_above_p(self):
        f = linear(-1).pow(8)
        assert square_free_decomposition(f) == [(linear(-1), 8)]

    def test_mixed_multiplicities(self):
        f = linear(2).mul(linear(3).pow(3)).mul(linear(4).pow(7))
        parts = square_free_decomposition(f.scalar_mul(5))
        assert parts == [(linear(2), 1), (linear(3), 3), (linear(4), 7)]

    def test_constant(self):
        assert square_free_decomposition(poly((4,))) == []

    def test_zero_rejected(self):
        with pytest.raises(ValueError):
            square_free_decomposition(PolyZp.zero(7))

    def test_pth_root(self):
        assert pth_root(poly((3, 0, 0, 0, 0, 0, 0, 2))) == poly((3, 2))
        with pytest.raises(ValueError):
            pth_root(poly((1, 1)))


class TestBerlekampMatrix:

    def test_first_column_is_one(self):
        q = berlekamp_matrix(PolyZp.from_roots([1, 2, 3], 7))
        assert q.shape == (3, 3)
        assert list(q[:, 0]) == [1, 0, 0]

    def test_columns_are_frobenius_powers(self):
        """Column j holds x^(7j) mod f."""
        f = poly((1, 0, 1))
        q = berlekamp_matrix(f)
        x7 = PolyZp.monomial(1, 7, 7).div_rem(f)[1]
        column = tuple(int(c) for c in q[:, 1])
        assert poly(column) == x7

    def test_null_space(self):
        matrix = np.array([[1, 2], [2, 4]], dtype=object)
        basis = null_space_mod_p(matrix, 7)
        assert len(basis) == 1
        v = basis[0]
        assert all(int(c) % 7 == 0 for c in matrix.dot(v))

    def test_null_space_of_zero_matrix(self):
        basis = null_space_mod_p(np.zeros((3, 3), dtype=object), 5)
        assert len(basis) == 3

    def test_null_space_of_identity(self):
        assert null_space_mod_p(np.eye(2, dtype=int), 5) == []


class TestBerlekamp:

    def test_difference_of_squares(self):
        factors = berlekamp_factor(poly((-1, 0, 1)))
        assert factors == [linear(-1), linear(1)]

    def test_irreducible_quadratic(self):
        """x^2 + 1 has no root mod 7."""
        f = poly((1, 0, 1))
        assert berlekamp_factor(f) == [f]

    def test_mixed_degrees(self):
        """x^4 - 1 = (x - 1)(x + 1)(x^2 + 1) mod 7."""
        factors = berlekamp_factor(poly((-1, 0, 0, 0, 1)))
        assert factors == [linear(-1), linear(1), poly((1, 0, 1))]

    def test_all_field_elements(self):
        """x^7 - x is the product of x - a over F_7."""
        factors = berlekamp_factor(poly((0, -1, 0, 0, 0, 0, 0, 1)))
        assert by_coeffs(factors) == by_coeffs([linear(a) for a in range(7)])

    def test_characteristic_two(self):
        assert berlekamp_factor(poly((0, 1, 1), 2)) == [poly((0, 1), 2), poly((1, 1), 2)]
        assert berlekamp_factor(poly((1, 1, 1), 2)) == [poly((1, 1, 1), 2)]

    def test_linear_is_made_monic(self):
        assert berlekamp_factor(poly((2, 3))) == [poly((2, 3)).make_monic()]

    def test_random_splitting_above_enumeration_limit(self):
        roots = [3, 17, 123, 9999]
        f = PolyZp.from_roots(roots, 10007)
        factors = berlekamp_factor(f)
        assert by_coeffs(factors) == by_coeffs([linear(r, 10007) for r in roots])

    def test_random_splitting_forced_by_policy(self):
        policy = AlgorithmPolicy.from_dict({'factor': {'berlekamp_enumeration_limit': 2}})
        f = poly((-1, 0, 0, 0, 1), 11)
        factors = berlekamp_factor(f, policy)
        assert factors == [linear(-1, 11), linear(1, 11), poly((1, 0, 1), 11)]


class TestFactorization:

    def test_unit_and_multiplicities(self):
        f = linear(-1).pow(2).mul(poly((1, 0, 1))).scalar_mul(3)
        result = factor_polyzp(f)
        assert isinstance(result, Factorization)
        assert result.unit == 3
        assert result.factors == ((linear(-1), 2), (poly((1, 0, 1)), 1))
        assert result.expand() == f

    def test_irreducibles(self):
        result = factor_polyzp(poly((-1, 0, 1)))
        assert result.irreducibles == [linear(-1), linear(1)]

    def test_constant(self):
        result = factor_polyzp(poly((5,)))
        assert result.unit == 5
        assert result.factors == ()
        assert result.expand() == poly((5,))

    def test_zero_rejected(self):
        with pytest.raises(ValueError):
            factor_polyzp(PolyZp.zero(7))

    def test_random_polynomials_reassemble(self, rng):
        """Every factor is irreducible and the product gives back f."""
        p = 13
        for degree in (3, 5, 8):
            f = PolyZp(tuple(int(c) for c in rng.integers(0, p, size=degree + 1)), p)
            if f.degree != degree:
                continue
            result = factor_polyzp(f)
            assert result.expand() == f
            for g in result.irreducibles:
                assert g.leading_coefficient == 1
                assert berlekamp_factor(g) == [g]
