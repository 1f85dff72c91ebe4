"""
symalg: Pattern Matching and Rewriting

Patterns mirror the expression variants with an extra Wildcard leaf.
Matching backtracks over operand assignments of sums and products, keeping
non-commuting factors in their relative order. Substitution rebuilds through
the canonical constructors.
"""

import logging
from abc import ABC
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from .alg_types import (
    Expression, Number, Symbol, Add, Mul, Pow, Function, Complex, as_expression,
)
from .alg_construct import add, mul, pow, function, complex_, map_children
from .errors import UnboundWildcardError
from .policy import AlgorithmPolicy, DEFAULT_POLICY

logger = logging.getLogger('symalg.rewrite')

Bindings = Dict[str, Expression]
Predicate = Callable[[Expression], bool]


# === Predicates ===

def is_integer(expr: Expression) -> bool:
    return expr.is_integer()


def is_rational(expr: Expression) -> bool:
    return expr.is_rational()


def is_number(expr: Expression) -> bool:
    return isinstance(expr, Number)


def is_positive(expr: Expression) -> bool:
    return expr.is_positive()


def is_negative(expr: Expression) -> bool:
    return expr.is_negative()


def is_symbol(expr: Expression) -> bool:
    return isinstance(expr, Symbol)


def is_free_of(var: Expression) -> Predicate:
    """Predicate: the candidate does not contain ``var``."""
    def predicate(expr: Expression) -> bool:
        return not expr.contains(var)
    predicate.__name__ = f"is_free_of_{var}"
    return predicate


# === Patterns ===

@dataclass(frozen=True)
class Constraints:
    """Wildcard constraints: excluded subexpressions and predicates."""
    exclude: Tuple[Expression, ...] = ()
    predicates: Tuple[Predicate, ...] = ()

    def allows(self, expr: Expression) -> bool:
        if any(expr.contains(excluded) for excluded in self.exclude):
            return False
        return all(predicate(expr) for predicate in self.predicates)


class Pattern(ABC):
    """Base class for patterns."""


@dataclass(frozen=True)
class Wildcard(Pattern):
    name: str
    constraints: Constraints = field(default_factory=Constraints)


@dataclass(frozen=True)
class Exact(Pattern):
    expr: Expression


@dataclass(frozen=True)
class AddPattern(Pattern):
    terms: Tuple[Pattern, ...]


@dataclass(frozen=True)
class MulPattern(Pattern):
    factors: Tuple[Pattern, ...]


@dataclass(frozen=True)
class PowPattern(Pattern):
    base: Pattern
    exponent: Pattern


@dataclass(frozen=True)
class FunctionPattern(Pattern):
    name: str
    args: Tuple[Pattern, ...]


@dataclass(frozen=True)
class ComplexPattern(Pattern):
    real: Pattern
    imag: Pattern


WildcardSpec = Union[str, Symbol, Wildcard]


def _wildcard_table(wildcards: Sequence[WildcardSpec]) -> Dict[str, Wildcard]:
    table = {}
    for spec in wildcards:
        if isinstance(spec, Wildcard):
            table[spec.name] = spec
        elif isinstance(spec, Symbol):
            table[spec.name] = Wildcard(spec.name)
        else:
            table[spec] = Wildcard(spec)
    return table


def compile_pattern(template: Expression, wildcards: Sequence[WildcardSpec] = ()) -> Pattern:
    """Turn ``template`` into a Pattern; symbols named in ``wildcards`` become wildcards.

    Subtrees free of wildcards collapse into Exact. Calculus forms never hold
    wildcards and always compile to Exact.
    """
    table = _wildcard_table(wildcards)
    return _compile(as_expression(template), table)


def _compile(expr: Expression, table: Dict[str, Wildcard]) -> Pattern:
    if isinstance(expr, Symbol) and expr.name in table:
        return table[expr.name]
    if not any(sym.name in table for sym in expr.free_symbols):
        return Exact(expr)
    if isinstance(expr, Add):
        return AddPattern(tuple(_compile(t, table) for t in expr.terms))
    if isinstance(expr, Mul):
        return MulPattern(tuple(_compile(f, table) for f in expr.factors))
    if isinstance(expr, Pow):
        return PowPattern(_compile(expr.base, table), _compile(expr.exponent, table))
    if isinstance(expr, Function):
        return FunctionPattern(expr.name, tuple(_compile(a, table) for a in expr.args))
    if isinstance(expr, Complex):
        return ComplexPattern(_compile(expr.real, table), _compile(expr.imag, table))
    return Exact(expr)


# === Matching ===

def _match(pattern: Pattern, expr: Expression, bindings: Bindings) -> Iterator[Bindings]:
    if isinstance(pattern, Wildcard):
        bound = bindings.get(pattern.name)
        if bound is not None:
            if bound == expr:
                yield bindings
        elif pattern.constraints.allows(expr):
            extended = dict(bindings)
            extended[pattern.name] = expr
            yield extended

    elif isinstance(pattern, Exact):
        if pattern.expr == expr:
            yield bindings

    elif isinstance(pattern, AddPattern):
        if isinstance(expr, Add) and len(expr.terms) == len(pattern.terms):
            yield from _match_sequence(pattern.terms, expr.terms, bindings, ordered=False)

    elif isinstance(pattern, MulPattern):
        if isinstance(expr, Mul) and len(expr.factors) == len(pattern.factors):
            yield from _match_sequence(pattern.factors, expr.factors, bindings, ordered=True)

    elif isinstance(pattern, PowPattern):
        if isinstance(expr, Pow):
            for b in _match(pattern.base, expr.base, bindings):
                yield from _match(pattern.exponent, expr.exponent, b)

    elif isinstance(pattern, FunctionPattern):
        if (isinstance(expr, Function) and expr.name == pattern.name
                and len(expr.args) == len(pattern.args)):
            yield from _match_pointwise(pattern.args, expr.args, bindings)

    elif isinstance(pattern, ComplexPattern):
        if isinstance(expr, Complex):
            yield from _match_pointwise((pattern.real, pattern.imag), (expr.real, expr.imag), bindings)


def _match_pointwise(patterns, exprs, bindings: Bindings) -> Iterator[Bindings]:
    if not patterns:
        yield bindings
        return
    for b in _match(patterns[0], exprs[0], bindings):
        yield from _match_pointwise(patterns[1:], exprs[1:], b)


def _match_sequence(patterns: Tuple[Pattern, ...], exprs: Tuple[Expression, ...],
                    bindings: Bindings, ordered: bool) -> Iterator[Bindings]:
    """Backtrack over injective assignments of patterns to operands.

    With ``ordered`` set, non-commuting operands must be consumed in their
    original left-to-right order.
    """
    used = [False] * len(exprs)

    def assign(i: int, last_noncommuting: int, current: Bindings) -> Iterator[Bindings]:
        if i == len(patterns):
            yield current
            return
        for j, candidate in enumerate(exprs):
            if used[j]:
                continue
            noncommuting = ordered and not candidate.is_commutative
            if noncommuting and j < last_noncommuting:
                continue
            used[j] = True
            for b in _match(patterns[i], candidate, current):
                yield from assign(i + 1, j if noncommuting else last_noncommuting, b)
            used[j] = False

    yield from assign(0, -1, bindings)


def match(pattern: Pattern, expr: Expression,
          bindings: Optional[Mapping[str, Expression]] = None) -> Optional[Bindings]:
    """Match ``expr`` against ``pattern``; None when there is no match."""
    for result in _match(pattern, expr, dict(bindings or {})):
        return result
    return None


# === Substitution ===

def _instantiate(pattern: Pattern, bindings: Mapping[str, Expression]) -> Expression:
    if isinstance(pattern, Wildcard):
        if pattern.name not in bindings:
            raise UnboundWildcardError(pattern.name)
        return bindings[pattern.name]
    if isinstance(pattern, Exact):
        return pattern.expr
    if isinstance(pattern, AddPattern):
        return add([_instantiate(t, bindings) for t in pattern.terms])
    if isinstance(pattern, MulPattern):
        return mul([_instantiate(f, bindings) for f in pattern.factors])
    if isinstance(pattern, PowPattern):
        return pow(_instantiate(pattern.base, bindings), _instantiate(pattern.exponent, bindings))
    if isinstance(pattern, FunctionPattern):
        return function(pattern.name, [_instantiate(a, bindings) for a in pattern.args])
    if isinstance(pattern, ComplexPattern):
        return complex_(_instantiate(pattern.real, bindings), _instantiate(pattern.imag, bindings))
    raise TypeError(f"Unknown pattern type: {type(pattern).__name__}")


def substitute(template: Union[Pattern, Expression], bindings: Mapping[str, Expression],
               wildcards: Optional[Sequence[WildcardSpec]] = None) -> Expression:
    """Replace wildcards in ``template`` by their bindings and re-canonicalize.

    An Expression template is compiled first, with ``wildcards`` defaulting to
    the bound names.

    Raises:
        UnboundWildcardError: If the template names a wildcard with no binding
    """
    if not isinstance(template, Pattern):
        template = compile_pattern(template, list(bindings) if wildcards is None else wildcards)
    return _instantiate(template, bindings)


def replace(expr: Expression, pattern: Pattern, template: Union[Pattern, Expression]) -> Expression:
    """Rewrite every match of ``pattern``, outermost first.

    A replaced subtree is not searched again.
    """
    bindings = match(pattern, expr)
    if bindings is not None:
        return substitute(template, bindings)
    return map_children(expr, lambda child: replace(child, pattern, template))


def subs(expr: Expression, mapping: Mapping) -> Expression:
    """Substitute subexpressions (typically symbols) by values."""
    table = {as_expression(k): as_expression(v) for k, v in mapping.items()}

    def visit(node: Expression) -> Expression:
        replacement = table.get(node)
        if replacement is not None:
            return replacement
        return map_children(node, visit)

    return visit(expr)


# === Rule-based rewriting ===

Replacement = Union[Pattern, Expression, Callable[[Bindings], Optional[Expression]]]


@dataclass
class RewriteRule:
    """A single rewrite rule."""
    pattern: Pattern
    replacement: Replacement
    condition: Optional[Callable[[Bindings], bool]] = None
    priority: int = 0  # Higher priority rules applied first
    name: str = ""

    def apply(self, expr: Expression) -> Optional[Expression]:
        bindings = match(self.pattern, expr)
        if bindings is None:
            return None
        if self.condition is not None and not self.condition(bindings):
            return None
        if callable(self.replacement) and not isinstance(self.replacement, (Pattern, Expression)):
            return self.replacement(bindings)
        return substitute(self.replacement, bindings)


class ExprRewriter:
    """Expression rewriting with pattern matching."""

    def __init__(self, policy: AlgorithmPolicy = DEFAULT_POLICY):
        self.rules: List[RewriteRule] = []
        self.max_iterations = policy.max_simplify_passes

    def add_rule(self, template: Expression, replacement: Replacement,
                 wildcards: Sequence[WildcardSpec] = (),
                 condition: Optional[Callable[[Bindings], bool]] = None,
                 priority: int = 0, name: str = "") -> RewriteRule:
        """Add a rule ``template -> replacement``.

        Examples:
            x, = symbols("x")
            rewriter.add_rule(function("exp", [function("log", [x])]), x, ["x"])
        """
        pattern = compile_pattern(template, wildcards)
        if isinstance(replacement, Expression):
            replacement = compile_pattern(replacement, wildcards)
        rule = RewriteRule(pattern, replacement, condition, priority, name)
        self.rules.append(rule)
        return rule

    def rewrite(self, expr: Expression) -> Expression:
        """Apply all rules to expression until fixed point."""
        # Sort rules by priority (highest first)
        sorted_rules = sorted(self.rules, key=lambda r: -r.priority)

        result = expr
        for _ in range(self.max_iterations):
            new_result = self._apply_rules(result, sorted_rules)
            if new_result == result:
                return result
            result = new_result

        logger.warning(f"Rewriting stopped after {self.max_iterations} iterations")
        return result

    def _apply_rules(self, expr: Expression, rules: List[RewriteRule]) -> Expression:
        """Apply rules bottom-up: children first, then this node."""
        if expr.is_undefined():
            return expr
        expr = map_children(expr, lambda child: self._apply_rules(child, rules))
        for rule in rules:
            rewritten = rule.apply(expr)
            if rewritten is not None:
                return rewritten
        return expr
