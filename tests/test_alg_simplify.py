"""
Simplifier tests: fixed-point rule application, function values, power rules,
identities, side conditions and expansion.
"""

import logging
import threading

from symalg.alg_types import (
    Number, Add, Mul, Pow, E, PI, ONE, ZERO, UNDEFINED, HALF, cancelled_bases,
)
from symalg import alg_simplify
from symalg.alg_construct import add, mul, pow, div, function, neg, rational
from symalg.alg_simplify import (
    SymbolicSimplifier, SimplifyResult, RuleId, simplify, simplify_with_conditions, expand,
)
from symalg.policy import AlgorithmPolicy


class TestScenarios:

    def test_power_of_two(self):
        """2^10 simplifies to 1024."""
        assert simplify(pow(2, 10)) == Number(1024)
        assert simplify(Pow(Number(2), Number(10))) == Number(1024)

    def test_sin_zero(self):
        """sin(0) simplifies to 0."""
        assert simplify(function("sin", [0])) == Number(0)

    def test_gamma_five(self):
        """gamma(5) simplifies to 24."""
        assert simplify(function("gamma", [5])) == Number(24)


class TestEngine:

    def test_result_carries_metadata(self, simplifier):
        result = simplifier.simplify(function("cos", [0]))
        assert isinstance(result, SimplifyResult)
        assert result.expr == ONE
        assert result.passes >= 1
        assert result.rules_applied.get(RuleId.FUNCTION_EVALUATE.value) == 1

    def test_fixed_point_leaves_simple_expressions(self, simplifier, xy):
        x, y = xy
        expr = add([x, y])
        assert simplifier.simplify(expr).expr == expr

    def test_handwritten_tree_is_canonicalized(self, simplifier, x):
        tree = Add((Mul((Number(2), x)), Mul((Number(3), x))))
        assert simplifier.simplify(tree).expr == mul([5, x])

    def test_undefined_is_left_alone(self, simplifier):
        assert simplifier.simplify(UNDEFINED).expr is UNDEFINED

    def test_disabled_rule(self, x):
        simplifier = SymbolicSimplifier(disabled=(RuleId.FUNCTION_EVALUATE,))
        expr = function("sin", [0])
        assert simplifier.simplify(expr).expr == expr

    def test_pass_limit_logs_warning(self, caplog):
        """A policy allowing one pass stops before the fixed point is confirmed."""
        policy = AlgorithmPolicy.from_dict({'simplify': {'max_simplify_passes': 1}})
        simplifier = SymbolicSimplifier(policy)
        expr = function("sin", [function("sin", [0])])
        with caplog.at_level(logging.WARNING, logger='symalg.simplify'):
            result = simplifier.simplify(expr)
        assert result.passes == 1
        assert any("stopped" in r.getMessage() for r in caplog.records)


class TestFunctionValues:

    def test_trig_at_multiples_of_pi(self, simplifier):
        assert simplifier.simplify(function("sin", [PI])).expr == ZERO
        assert simplifier.simplify(function("cos", [PI])).expr == Number(-1)
        assert simplifier.simplify(function("sin", [mul([rational(1, 6), PI])])).expr == HALF
        assert simplifier.simplify(function("tan", [mul([rational(1, 4), PI])])).expr == ONE

    def test_log_of_zero_is_undefined(self, simplifier):
        assert simplifier.simplify(function("log", [0])).expr is UNDEFINED

    def test_gamma_pole(self, simplifier):
        assert simplifier.simplify(function("gamma", [0])).expr is UNDEFINED

    def test_gamma_half(self, simplifier):
        assert simplifier.simplify(function("gamma", [HALF])).expr == function("sqrt", [PI])

    def test_sqrt_of_perfect_square(self, simplifier):
        assert simplifier.simplify(function("sqrt", [16])).expr == Number(4)
        assert simplifier.simplify(function("sqrt", [rational(9, 4)])).expr == rational(3, 2)

    def test_float_argument_evaluates_numerically(self, simplifier):
        result = simplifier.simplify(function("exp", [Number(0.0)])).expr
        assert result == Number(1.0)

    def test_exact_argument_stays_symbolic(self, simplifier):
        expr = function("exp", [2])
        assert simplifier.simplify(expr).expr == expr


class TestIdentities:

    def test_parity(self, simplifier, x):
        assert simplifier.simplify(function("sin", [neg(x)])).expr == neg(function("sin", [x]))
        assert simplifier.simplify(function("cos", [neg(x)])).expr == function("cos", [x])

    def test_pythagorean(self, simplifier, x):
        expr = add([pow(function("sin", [x]), 2), pow(function("cos", [x]), 2)])
        assert simplifier.simplify(expr).expr == ONE

    def test_pythagorean_with_remaining_terms(self, simplifier, xy):
        x, y = xy
        expr = add([mul([3, pow(function("sin", [x]), 2)]),
                    mul([3, pow(function("cos", [x]), 2)]), y])
        assert simplifier.simplify(expr).expr == add([y, 3])

    def test_hyperbolic(self, simplifier, x):
        expr = add([pow(function("cosh", [x]), 2), neg(pow(function("sinh", [x]), 2))])
        assert simplifier.simplify(expr).expr == ONE

    def test_inverse_pairs(self, simplifier, x):
        assert simplifier.simplify(function("exp", [function("log", [x])])).expr == x
        assert simplifier.simplify(function("sin", [function("asin", [x])])).expr == x
        abs_abs = function("abs", [function("abs", [x])])
        assert simplifier.simplify(abs_abs).expr == function("abs", [x])

    def test_exp_of_log(self, simplifier, x):
        assert simplifier.simplify(pow(E, function("log", [x]))).expr == x

    def test_log_of_exp_numeric(self, simplifier, x):
        assert simplifier.simplify(function("log", [pow(E, 3)])).expr == Number(3)
        symbolic = function("log", [pow(E, x)])
        assert simplifier.simplify(symbolic).expr == symbolic


class TestPowerRules:

    def test_distribute_over_commuting_product(self, simplifier, xy):
        x, y = xy
        expr = Pow(Mul((x, y)), Number(2))
        assert simplifier.simplify(expr).expr == mul([pow(x, 2), pow(y, 2)])

    def test_noncommuting_product_not_distributed(self, simplifier, matrices):
        A, B = matrices
        expr = pow(mul([A, B]), 2)
        assert simplifier.simplify(expr).expr == expr

    def test_nested_integer_exponent(self, simplifier, x):
        assert simplifier.simplify(pow(pow(x, 2), 3)).expr == pow(x, 6)

    def test_nested_even_root_gives_abs(self, simplifier, x):
        expr = pow(pow(x, 2), HALF)
        assert simplifier.simplify(expr).expr == function("abs", [x])

    def test_nested_odd_power(self, simplifier, x):
        expr = pow(pow(x, 3), rational(1, 3))
        assert simplifier.simplify(expr).expr == x

    def test_sqrt_squared(self, simplifier, x):
        assert simplifier.simplify(pow(function("sqrt", [x]), 2)).expr == x


class TestSideConditions:

    def test_x_over_x(self, x):
        tree = Mul((x, Pow(x, Number(-1))))
        result = simplify_with_conditions(tree)
        assert result.expr == ONE
        assert len(result.side_conditions) == 1
        assert result.side_conditions[0].expr == x

    def test_no_condition_without_cancellation(self, xy):
        x, y = xy
        result = simplify_with_conditions(Mul((x, Pow(y, Number(-1)))))
        assert result.side_conditions == ()

    def test_constructed_quotient(self, x):
        """div(x, x) folds to 1 at construction but still records x != 0."""
        quotient = div(x, x)
        assert quotient == ONE
        result = simplify_with_conditions(quotient)
        assert result.expr == ONE
        assert len(result.side_conditions) == 1
        assert result.side_conditions[0].expr == x
        assert result.side_conditions[0].relation == "!="

    def test_constructed_quotient_of_sums(self, x):
        base = add([x, 1])
        result = simplify_with_conditions(div(base, add([x, 1])))
        assert result.expr == ONE
        assert len(result.side_conditions) == 1
        assert result.side_conditions[0].expr == base

    def test_cancellation_survives_enclosing_sum(self, xy):
        x, y = xy
        result = simplify_with_conditions(add([div(mul([x, y]), x), 2]))
        assert result.expr == add([y, 2])
        assert [c.expr for c in result.side_conditions] == [x]

    def test_cancellation_inside_function_argument(self, x):
        result = simplify_with_conditions(function("f", [div(x, x)]))
        assert result.expr == function("f", [1])
        assert [c.expr for c in result.side_conditions] == [x]

    def test_provenance_is_invisible_to_equality(self, x):
        marked = div(x, x)
        assert cancelled_bases(marked) == frozenset([x])
        assert cancelled_bases(ONE) == frozenset()
        assert marked == ONE
        assert hash(marked) == hash(ONE)

    def test_numeric_cancellation_has_no_condition(self):
        result = simplify_with_conditions(div(Number(3), Number(3)))
        assert result.expr == ONE
        assert result.side_conditions == ()


class TestDefaultSimplifier:

    def test_shared_across_threads(self, monkeypatch):
        monkeypatch.setattr(alg_simplify, '_DEFAULT_SIMPLIFIER', None)
        seen = []

        def worker():
            seen.append(alg_simplify._simplifier(None))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(seen) == 8
        assert all(s is seen[0] for s in seen)

    def test_explicit_policy_gets_own_instance(self):
        policy = AlgorithmPolicy()
        assert alg_simplify._simplifier(policy) is not alg_simplify._simplifier(None)


class TestExpand:

    def test_distribute(self, xy):
        x, y = xy
        result = expand(mul([x, add([y, 1])]))
        assert result == add([mul([x, y]), x])

    def test_binomial_square(self, x):
        result = expand(pow(add([x, 1]), 2))
        assert result == add([pow(x, 2), mul([2, x]), 1])

    def test_noncommuting_order_preserved(self, matrices):
        A, B = matrices
        result = expand(pow(add([A, B]), 2))
        expected = add([pow(A, 2), mul([A, B]), mul([B, A]), pow(B, 2)])
        assert result == expected

    def test_exponent_bound(self, x):
        policy = AlgorithmPolicy.from_dict({'simplify': {'max_expand_exponent': 2}})
        expr = pow(add([x, 1]), 3)
        assert expand(expr, policy) == expr

    def test_equivalent(self, simplifier, xy):
        x, y = xy
        lhs = pow(add([x, y]), 2)
        rhs = add([pow(x, 2), mul([2, x, y]), pow(y, 2)])
        assert simplifier.equivalent(lhs, rhs)
        assert not simplifier.equivalent(lhs, add([pow(x, 2), pow(y, 2)]))

