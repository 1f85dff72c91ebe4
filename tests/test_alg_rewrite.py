"""
Pattern matching and rewriting tests.
"""

import pytest

from symalg.alg_types import Number, Symbol, Function, PI, ONE, ZERO
from symalg.alg_construct import add, mul, pow, function
from symalg.alg_rewrite import (
    Wildcard, Exact, AddPattern, MulPattern, PowPattern, FunctionPattern, Constraints,
    compile_pattern, match, substitute, replace, subs, ExprRewriter, RewriteRule,
    is_integer, is_positive, is_symbol, is_free_of,
)
from symalg.errors import UnboundWildcardError, SymalgError


@pytest.fixture
def a():
    return Symbol("a")


@pytest.fixture
def b():
    return Symbol("b")


@pytest.fixture
def rewriter():
    return ExprRewriter()


class TestCompile:

    def test_wildcard_symbols_become_wildcards(self, a, x):
        pattern = compile_pattern(function("sin", [a]), ["a"])
        assert isinstance(pattern, FunctionPattern)
        assert pattern.args == (Wildcard("a"),)

    def test_wildcard_free_subtrees_collapse(self, a, x):
        pattern = compile_pattern(add([pow(x, 2), a]), ["a"])
        assert isinstance(pattern, AddPattern)
        assert Exact(pow(x, 2)) in pattern.terms

    def test_template_without_wildcards(self, x):
        assert compile_pattern(add([x, 1])) == Exact(add([x, 1]))

    def test_power_pattern(self, a):
        pattern = compile_pattern(pow(a, 2), [a])
        assert pattern == PowPattern(Wildcard("a"), Exact(Number(2)))


class TestMatch:

    def test_function_match(self, a, x):
        pattern = compile_pattern(function("sin", [a]), ["a"])
        assert match(pattern, function("sin", [pow(x, 2)])) == {"a": pow(x, 2)}
        assert match(pattern, function("cos", [x])) is None

    def test_consistent_binding(self, a, xy):
        x, y = xy
        pattern = compile_pattern(mul([function("f", [a]), function("g", [a])]), ["a"])
        assert match(pattern, mul([function("f", [x]), function("g", [x])])) == {"a": x}
        assert match(pattern, mul([function("f", [x]), function("g", [y])])) is None

    def test_add_operands_match_in_any_order(self, a, b, xy):
        x, y = xy
        pattern = AddPattern((Wildcard("a"), Exact(function("sin", [y]))))
        bindings = match(pattern, add([function("sin", [y]), pow(x, 2)]))
        assert bindings == {"a": pow(x, 2)}

    def test_arity_must_agree(self, a, b, xy):
        x, y = xy
        pattern = AddPattern((Wildcard("a"), Wildcard("b")))
        assert match(pattern, add([x, y, 1])) is None

    def test_noncommuting_order(self, matrices):
        A, B = matrices
        pattern = MulPattern((Wildcard("p"), Wildcard("q")))
        bindings = match(pattern, mul([A, B]))
        assert bindings == {"p": A, "q": B}

    def test_noncommuting_pattern_cannot_swap(self, matrices):
        A, B = matrices
        pattern = MulPattern((Exact(B), Wildcard("q")))
        assert match(pattern, mul([A, B])) is None

    def test_commuting_factors_can_swap(self, xy):
        x, y = xy
        pattern = MulPattern((Exact(y), Wildcard("q")))
        assert match(pattern, mul([x, y])) == {"q": x}

    def test_initial_bindings(self, a, x):
        pattern = compile_pattern(function("sin", [a]), ["a"])
        assert match(pattern, function("sin", [x]), {"a": x}) == {"a": x}
        assert match(pattern, function("sin", [x]), {"a": ONE}) is None


class TestConstraints:

    def test_predicate(self, x):
        n = Wildcard("n", Constraints(predicates=(is_integer,)))
        pattern = PowPattern(Exact(x), n)
        assert match(pattern, pow(x, 3)) == {"n": Number(3)}
        assert match(pattern, pow(x, Number(0.5))) is None

    def test_exclusion_includes_subexpressions(self, xy):
        x, y = xy
        c = Wildcard("c", Constraints(exclude=(x,)))
        pattern = MulPattern((c, Exact(x)))
        assert match(pattern, mul([y, x])) == {"c": y}
        assert match(pattern, mul([function("f", [x]), x])) is None

    def test_free_of(self, xy):
        x, y = xy
        predicate = is_free_of(x)
        assert predicate(add([y, 1]))
        assert not predicate(function("sin", [x]))

    def test_other_predicates(self, x):
        assert is_positive(PI)
        assert is_symbol(x)
        assert not is_symbol(Number(1))


class TestSubstitute:

    def test_recanonicalizes(self, a, x):
        result = substitute(add([a, a]), {"a": x})
        assert result == mul([2, x])

    def test_pattern_template(self):
        template = AddPattern((Wildcard("a"), Exact(ONE)))
        assert substitute(template, {"a": Number(-1)}) == ZERO

    def test_unbound_wildcard(self, a):
        template = compile_pattern(add([a, 1]), ["a"])
        with pytest.raises(UnboundWildcardError) as excinfo:
            substitute(template, {})
        assert excinfo.value.name == "a"
        assert isinstance(excinfo.value, SymalgError)
        assert isinstance(excinfo.value, KeyError)


class TestReplace:

    def test_replace_everywhere(self, a, x):
        pattern = compile_pattern(function("f", [a]), ["a"])
        expr = add([function("f", [x]), function("g", [function("f", [1])])])
        result = replace(expr, pattern, pow(a, 2))
        assert result == add([pow(x, 2), function("g", [ONE])])

    def test_outermost_first(self, a, x):
        pattern = compile_pattern(function("f", [a]), ["a"])
        expr = function("f", [function("f", [x])])
        assert replace(expr, pattern, a) == function("f", [x])

    def test_subs(self, xy):
        x, y = xy
        expr = add([pow(x, 2), y])
        assert subs(expr, {x: 3}) == add([y, 9])
        assert subs(expr, {pow(x, 2): y}) == mul([2, y])


class TestRewriter:

    def test_fixed_point(self, rewriter, a, x):
        rewriter.add_rule(function("f", [a]), function("g", [a]), ["a"])
        rewriter.add_rule(function("g", [a]), a, ["a"])
        assert rewriter.rewrite(function("f", [function("f", [x])])) == x

    def test_priority(self, rewriter, a, x):
        rewriter.add_rule(function("f", [a]), Number(1), ["a"], priority=0)
        rewriter.add_rule(function("f", [a]), Number(2), ["a"], priority=10)
        assert rewriter.rewrite(function("f", [x])) == Number(2)

    def test_condition(self, rewriter, a, x):
        rewriter.add_rule(function("f", [a]), ZERO, ["a"],
                          condition=lambda bindings: bindings["a"].is_number())
        assert rewriter.rewrite(function("f", [3])) == ZERO
        assert rewriter.rewrite(function("f", [x])) == function("f", [x])

    def test_callable_replacement(self, rewriter, a):
        rewriter.add_rule(function("double", [a]), lambda bindings: mul([2, bindings["a"]]), ["a"])
        assert rewriter.rewrite(function("double", [5])) == Number(10)

    def test_rule_apply(self, a, x):
        rule = RewriteRule(compile_pattern(function("f", [a]), ["a"]), compile_pattern(a, ["a"]))
        assert rule.apply(function("f", [x])) == x
        assert rule.apply(x) is None

    def test_nonterminating_rules_stop(self, rewriter, a, x, caplog):
        rewriter.add_rule(function("f", [a]), function("f", [add([a, 1])]), ["a"])
        result = rewriter.rewrite(function("f", [x]))
        assert isinstance(result, Function)
        assert any("stopped" in r.getMessage() for r in caplog.records)
