"""
Canonical constructor tests: flattening, numeric folding, identity removal,
ordering, like-term combination, non-commuting products, power
normalization and the calculus forms.
"""

from fractions import Fraction

import pytest

from symalg.alg_types import (
    Expression, Number, Add, Mul, Pow, Function, Complex, Derivative, Integral,
    PI, I, INFINITY, NEG_INFINITY, UNDEFINED, ZERO, ONE, MINUS_ONE, HALF,
)
from symalg.alg_construct import (
    integer, rational, add, sub, neg, mul, div, pow, sqrt, function, complex_,
    derivative, integral, limit, map_children, canonicalize,
)


def assert_canonical(expr: Expression):
    """Check the structural canonical-form invariants recursively."""
    if isinstance(expr, Add):
        assert len(expr.terms) >= 2
        assert not any(isinstance(t, Add) for t in expr.terms)
        assert not any(isinstance(t, Number) and t.is_zero() for t in expr.terms)
        assert sum(1 for t in expr.terms if isinstance(t, Number)) <= 1
    if isinstance(expr, Mul):
        assert len(expr.factors) >= 2
        assert not any(isinstance(f, Mul) for f in expr.factors)
        assert not any(isinstance(f, Number) and f.is_one() for f in expr.factors)
        assert not any(isinstance(f, Number) and f.is_zero() for f in expr.factors)
        assert sum(1 for f in expr.factors if isinstance(f, Number)) <= 1
    for child in expr.children:
        assert_canonical(child)


# === Scenarios ===

class TestScenarios:

    def test_x_minus_x_is_zero(self, x):
        """x + (-1)*x folds to 0."""
        result = add([x, mul([-1, x])])
        assert result == Number(0)

    def test_like_terms_combine(self, x):
        """2x + 3x is 5x."""
        assert add([mul([2, x]), mul([3, x])]) == mul([5, x])
        assert add([mul([2, x]), mul([3, x])]) == Mul((Number(5), x))

    def test_matrix_products_keep_order(self, matrices):
        """AB and BA are different canonical forms with different hashes."""
        A, B = matrices
        ab = mul([A, B])
        ba = mul([B, A])
        assert ab != ba
        assert ab.structural_hash != ba.structural_hash
        assert ab.factors == (A, B)
        assert ba.factors == (B, A)


# === Invariants ===

class TestInvariants:

    @pytest.fixture
    def handwritten(self, xy, matrices):
        x, y = xy
        A, B = matrices
        return [
            Add((Add((x, ZERO)), Mul((ONE, y)), Number(3), Number(4))),
            Mul((Mul((Number(2), x)), Mul((Number(3), y)), ONE)),
            Mul((A, Number(2), B, A)),
            Pow(Add((x, x)), Number(1)),
            Function("sin", (Add((y, x, ZERO)),)),
            Add((Mul((x, Pow(x, MINUS_ONE))), Number(-1))),
            Complex(Number(1), Number(0)),
        ]

    def test_canonicalize_is_idempotent(self, handwritten):
        for expr in handwritten:
            once = canonicalize(expr)
            assert canonicalize(once) == once

    def test_canonical_structure(self, handwritten):
        for expr in handwritten:
            assert_canonical(canonicalize(expr))

    def test_equality_matches_hash(self, handwritten):
        for expr in handwritten:
            a = canonicalize(expr)
            b = canonicalize(expr)
            assert a == b
            assert a.structural_hash == b.structural_hash

    def test_scalar_addition_commutes(self, xy):
        x, y = xy
        assert add([x, y]) == add([y, x])
        assert add([mul([2, x]), pow(y, 2), PI]) == add([PI, pow(y, 2), mul([2, x])])

    def test_scalar_multiplication_commutes(self, xy):
        x, y = xy
        assert mul([x, y]) == mul([y, x])

    def test_matrix_multiplication_does_not_commute(self, matrices):
        A, B = matrices
        assert mul([A, B]) != mul([B, A])

    def test_numbers_fold(self):
        assert add([integer(1), rational(1, 2)]) == Number(Fraction(3, 2))
        assert isinstance(add([integer(1), rational(1, 2)]), Number)
        assert mul([integer(2), rational(1, 4)]) == HALF


# === Sums ===

class TestAdd:

    def test_flattening(self, xy):
        x, y = xy
        result = add([add([x, 1]), add([y, 2])])
        assert isinstance(result, Add)
        assert result.terms == (Number(3), x, y)

    def test_identity_and_arity(self, x):
        assert add([]) == ZERO
        assert add([x]) is x
        assert add([x, 0]) is x

    def test_subtraction(self, x):
        assert sub(x, x) == ZERO
        assert sub(mul([2, x]), x) == x

    def test_undefined_absorbs(self, x):
        assert add([x, UNDEFINED]) is UNDEFINED

    def test_infinity_rules(self, x):
        assert add([INFINITY, NEG_INFINITY]) is UNDEFINED
        assert add([INFINITY, 5]) is INFINITY
        assert add([x, INFINITY]) == Add((INFINITY, x))

    def test_numeric_complex_folds(self):
        assert add([complex_(1, 2), 3]) == Complex(Number(4), Number(2))
        assert add([complex_(1, 2), complex_(1, -2)]) == Number(2)

    def test_operator_overloads(self, x):
        assert x + x == mul([2, x])
        assert 1 + x == add([x, 1])
        assert 2 * x - x == x


# === Products ===

class TestMul:

    def test_zero_collapses(self, x):
        assert mul([0, x]) == ZERO

    def test_zero_times_infinity_is_undefined(self):
        assert mul([0, INFINITY]) is UNDEFINED

    def test_identity_and_arity(self, x):
        assert mul([]) == ONE
        assert mul([1, x]) is x

    def test_like_bases(self, x):
        assert mul([x, x]) == Pow(x, Number(2))
        assert mul([x, pow(x, -1)]) == ONE
        assert mul([pow(x, 2), pow(x, 3)]) == Pow(x, Number(5))

    def test_coefficient_first(self, xy):
        x, y = xy
        result = mul([y, 3, x])
        assert result.factors == (Number(3), x, y)

    def test_noncommuting_adjacent_merge(self, matrices):
        A, B = matrices
        assert mul([A, A]) == Pow(A, Number(2))
        assert mul([A, B, A]).factors == (A, B, A)

    def test_noncommuting_cancellation_exposes_neighbours(self, matrices):
        """A * B * B^-1 * A collapses to A^2."""
        A, B = matrices
        assert mul([A, B, pow(B, -1), A]) == Pow(A, Number(2))

    def test_scalars_move_before_matrices(self, x, matrices):
        A, B = matrices
        result = mul([A, x, B, 2])
        assert result.factors == (Number(2), x, A, B)

    def test_infinity_sign(self):
        assert mul([-2, INFINITY]) is NEG_INFINITY
        assert mul([NEG_INFINITY, NEG_INFINITY]) is INFINITY

    def test_imaginary_unit(self):
        assert mul([I, I]) == MINUS_ONE
        assert complex_(1, 2) * complex_(1, -2) == Number(5)

    def test_numeric_coefficient_distributes(self, x):
        assert mul([2, add([x, 1])]) == add([mul([2, x]), 2])

    def test_division(self, x):
        assert div(x, x) == ONE
        assert div(x, 0) is UNDEFINED
        assert div(integer(1), integer(3)) == rational(1, 3)
        assert neg(neg(x)) == x


# === Powers ===

class TestPow:

    def test_normalization(self, x):
        assert pow(x, 0) == ONE
        assert pow(x, 1) is x
        assert pow(1, x) == ONE
        assert pow(0, 3) == ZERO
        assert pow(0, -1) is UNDEFINED

    def test_numeric_powers(self):
        assert pow(2, 10) == Number(1024)
        assert pow(4, HALF) == Number(2)
        assert isinstance(pow(2, HALF), Pow)
        assert pow(-1, HALF) is I

    def test_nested_powers_not_flattened(self, x):
        assert pow(pow(x, 2), 3) == Pow(Pow(x, Number(2)), Number(3))

    def test_imaginary_cycle(self):
        assert pow(I, 2) == MINUS_ONE
        assert pow(I, 3) == mul([-1, I])
        assert pow(I, 4) == ONE
        assert pow(I, -1) == mul([-1, I])

    def test_complex_power(self):
        assert pow(complex_(1, 1), 2) == Complex(Number(0), Number(2))

    def test_infinite_exponents(self):
        assert pow(2, INFINITY) is INFINITY
        assert pow(HALF, INFINITY) == ZERO
        assert pow(INFINITY, -1) == ZERO

    def test_rational_constructor(self):
        assert rational(1, 0) is UNDEFINED
        assert rational(4, 2) == integer(2)

    def test_sqrt_is_function(self, x):
        assert sqrt(x) == Function("sqrt", (x,))


# === Functions, complex values and calculus ===

class TestOtherConstructors:

    def test_function_with_undefined_argument(self):
        assert function("sin", [UNDEFINED]) is UNDEFINED

    def test_complex_with_zero_imaginary_part(self, x):
        assert complex_(x, 0) is x

    def test_derivative(self, x):
        assert derivative(x, x, 0) is x
        nested = derivative(derivative(function("f", [x]), x), x)
        assert isinstance(nested, Derivative)
        assert nested.order == 2

    def test_integral(self, xy):
        x, y = xy
        assert integral(x, x, (1, 1)) == ZERO
        definite = integral(mul([x, y]), x, (0, 1))
        assert isinstance(definite, Integral)
        assert definite.free_symbols == frozenset({y})

    def test_limit_of_expression_free_of_variable(self, xy):
        x, y = xy
        assert limit(y, x, 0) is y


class TestVisitor:

    def test_map_children_keeps_unchanged_node(self, xy):
        x, y = xy
        expr = add([x, y])
        assert map_children(expr, lambda child: child) is expr

    def test_map_children_recanonicalizes(self, xy):
        x, y = xy
        expr = add([x, y])
        result = map_children(expr, lambda child: x)
        assert result == mul([2, x])

    def test_canonicalize_handwritten(self, x):
        tree = Add((Mul((Number(2), x)), Mul((Number(3), x))))
        assert canonicalize(tree) == mul([5, x])
