"""
symalg: Symbolic Simplifier

Table-driven simplification to a fixed point. Rules are registered once in a
table keyed by RuleId; each entry names the node type it applies to and a
rewrite function. A single bottom-up visitor applies them, rebuilding every
node through the canonical constructors.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Type

from .alg_types import (
    Expression, Number, Symbol, Add, Mul, Pow, Function, SideCondition,
    E, TWO, cancelled_bases,
)
from .alg_construct import (
    add, mul, pow, function, sub, canonicalize, map_children, split_coefficient,
)
from .alg_number import number_neg
from .alg_functions import evaluate_function, apply_parity
from .alg_rewrite import ExprRewriter, Wildcard, Constraints, is_number
from .logging_config import Timer
from .policy import AlgorithmPolicy, DEFAULT_POLICY

logger = logging.getLogger('symalg.simplify')


class RuleId(Enum):
    """Identifiers of the simplification rules."""
    FUNCTION_EVALUATE = "function_evaluate"
    FUNCTION_PARITY = "function_parity"
    FUNCTION_IDENTITY = "function_identity"
    POWER_DISTRIBUTE = "power_distribute"
    POWER_NESTED = "power_nested"
    POWER_LOG = "power_log"
    TRIG_PYTHAGOREAN = "trig_pythagorean"


@dataclass
class SimplificationRule:
    """A rewrite function bound to the node type it inspects."""
    rule_id: RuleId
    node_type: Type[Expression]
    rewrite: Callable[[Expression, 'SymbolicSimplifier'], Optional[Expression]]


@dataclass
class SimplifyResult:
    """Simplified expression and the assumptions the rewrites relied on."""
    expr: Expression
    side_conditions: Tuple[SideCondition, ...] = ()
    passes: int = 0
    rules_applied: Dict[str, int] = field(default_factory=dict)


# === Identities via the pattern rewriter ===

_a = Symbol("a")
_n = Symbol("n")


def _identity_rewriter(policy: AlgorithmPolicy) -> ExprRewriter:
    """Inverse pairs and logarithm/exponential identities."""
    rewriter = ExprRewriter(policy)
    for outer, inner in (("exp", "log"), ("sin", "asin"), ("cos", "acos"), ("tan", "atan")):
        rewriter.add_rule(function(outer, [function(inner, [_a])]), _a, ["a"], name=f"{outer}_{inner}")
    rewriter.add_rule(function("abs", [function("abs", [_a])]), function("abs", [_a]), ["a"],
                      name="abs_abs")

    real_number = Wildcard("n", Constraints(predicates=(is_number,)))
    rewriter.add_rule(function("log", [pow(E, _n)]), _n, [real_number], name="log_exp_power")
    rewriter.add_rule(function("log", [function("exp", [_n])]), _n, [real_number], name="log_exp")
    return rewriter


# === Rule implementations ===

def _rule_function_evaluate(expr: Function, s: 'SymbolicSimplifier') -> Optional[Expression]:
    return evaluate_function(expr, s.policy)


def _rule_function_parity(expr: Function, s: 'SymbolicSimplifier') -> Optional[Expression]:
    return apply_parity(expr)


def _rule_function_identity(expr: Function, s: 'SymbolicSimplifier') -> Optional[Expression]:
    for rule in s.identities.rules:
        rewritten = rule.apply(expr)
        if rewritten is not None:
            return rewritten
    return None


def _rule_power_distribute(expr: Pow, s: 'SymbolicSimplifier') -> Optional[Expression]:
    """(x*y)^n -> x^n * y^n for commuting factors and integer n."""
    base, exponent = expr.base, expr.exponent
    if not isinstance(base, Mul) or not base.is_commutative:
        return None
    if not (isinstance(exponent, Number) and exponent.is_integer()):
        return None
    return mul([pow(factor, exponent) for factor in base.factors])


def _rule_power_nested(expr: Pow, s: 'SymbolicSimplifier') -> Optional[Expression]:
    """(x^a)^b -> x^(a*b) where the principal branch allows it."""
    base, b = expr.base, expr.exponent
    if isinstance(base, Pow):
        x, a = base.base, base.exponent
        if b.is_integer():
            return pow(x, mul([a, b]))
        if isinstance(a, Number) and a.is_integer() and a.value > 0:
            if a.value % 2:
                return pow(x, mul([a, b]))
            if x.is_commutative:
                # (x^2)^(1/2) is |x|
                return pow(function("abs", [x]), mul([a, b]))
        return None
    if (isinstance(base, Function) and base.name == "sqrt" and len(base.args) == 1
            and isinstance(b, Number) and b.is_integer() and b.value % 2 == 0):
        return pow(base.args[0], Number(b.value // 2))
    return None


def _rule_power_log(expr: Pow, s: 'SymbolicSimplifier') -> Optional[Expression]:
    """e^(log a) -> a."""
    if expr.base == E and isinstance(expr.exponent, Function) and expr.exponent.name == "log":
        if len(expr.exponent.args) == 1:
            return expr.exponent.args[0]
    return None


_PYTHAGOREAN_PAIRS = (
    ("sin", "cos", 1),     # sin^2 a + cos^2 a = 1
    ("cosh", "sinh", -1),  # cosh^2 a - sinh^2 a = 1
)


def _squared_function(rest: Expression) -> Optional[Tuple[str, Expression]]:
    if (isinstance(rest, Pow) and rest.exponent == TWO and isinstance(rest.base, Function)
            and len(rest.base.args) == 1):
        return rest.base.name, rest.base.args[0]
    return None


def _rule_trig_pythagorean(expr: Add, s: 'SymbolicSimplifier') -> Optional[Expression]:
    terms = expr.terms
    index = {}
    for i, term in enumerate(terms):
        if not term.is_commutative:
            continue
        coeff, rest = split_coefficient(term)
        squared = _squared_function(rest)
        if squared is not None:
            index[squared] = (i, coeff)

    for first, second, sign in _PYTHAGOREAN_PAIRS:
        for (name, arg), (i, coeff) in index.items():
            if name != first:
                continue
            partner = index.get((second, arg))
            if partner is None:
                continue
            j, other = partner
            expected = coeff if sign > 0 else number_neg(coeff)
            if other != expected:
                continue
            remaining = [t for k, t in enumerate(terms) if k != i and k != j]
            return add(remaining + [coeff])
    return None


_RULE_TABLE: Tuple[SimplificationRule, ...] = (
    SimplificationRule(RuleId.FUNCTION_EVALUATE, Function, _rule_function_evaluate),
    SimplificationRule(RuleId.FUNCTION_PARITY, Function, _rule_function_parity),
    SimplificationRule(RuleId.FUNCTION_IDENTITY, Function, _rule_function_identity),
    SimplificationRule(RuleId.POWER_DISTRIBUTE, Pow, _rule_power_distribute),
    SimplificationRule(RuleId.POWER_NESTED, Pow, _rule_power_nested),
    SimplificationRule(RuleId.POWER_LOG, Pow, _rule_power_log),
    SimplificationRule(RuleId.TRIG_PYTHAGOREAN, Add, _rule_trig_pythagorean),
)


# === Side conditions ===

def _collect_side_conditions(expr: Expression, found: Dict[Expression, SideCondition]) -> None:
    """Record b != 0 for every base that cancels against its reciprocal.

    Bases cancelled while the tree was being built are read from the
    provenance the constructors attach; hand-built products that still hold
    both b and b^-n are scanned directly.
    """
    for base in cancelled_bases(expr):
        if base not in found:
            found[base] = SideCondition(base)
    if isinstance(expr, Mul):
        positive, negative = set(), set()
        for factor in expr.factors:
            if isinstance(factor, Pow) and isinstance(factor.exponent, Number):
                target = negative if factor.exponent.is_negative() else positive
                target.add(factor.base)
            else:
                positive.add(factor)
        for base in positive & negative:
            if not isinstance(base, Number) and base not in found:
                found[base] = SideCondition(base)
    for child in expr.children:
        _collect_side_conditions(child, found)


# === Engine ===

class SymbolicSimplifier:
    """Simplify expressions to a fixed point of the rule table."""

    def __init__(self, policy: Optional[AlgorithmPolicy] = None,
                 disabled: Tuple[RuleId, ...] = ()):
        self.policy = policy or DEFAULT_POLICY
        self.identities = _identity_rewriter(self.policy)
        self.rules: Dict[Type[Expression], List[SimplificationRule]] = {}
        for rule in _RULE_TABLE:
            if rule.rule_id not in disabled:
                self.rules.setdefault(rule.node_type, []).append(rule)

    def simplify(self, expr: Expression) -> SimplifyResult:
        """Simplify ``expr``; the result carries recorded side conditions."""
        found: Dict[Expression, SideCondition] = {}
        _collect_side_conditions(expr, found)
        applied: Dict[str, int] = {}

        with Timer("simplify") as timer:
            current = canonicalize(expr)
            _collect_side_conditions(current, found)
            passes = 0
            max_passes = self.policy.max_simplify_passes
            while passes < max_passes:
                passes += 1
                rewritten = self._visit(current, applied)
                _collect_side_conditions(rewritten, found)
                if rewritten == current:
                    break
                current = rewritten
            else:
                logger.warning(f"Simplification stopped after {max_passes} passes",
                               extra={'extra_data': {'node_count': current.node_count()}})

        logger.debug(f"Simplified in {passes} passes ({timer.elapsed_ms():.3f} ms)",
                     extra={'extra_data': dict(timer.fields(), rules_applied=dict(applied))})
        return SimplifyResult(current, tuple(found.values()), passes, applied)

    def _visit(self, expr: Expression, applied: Dict[str, int]) -> Expression:
        if expr.is_undefined():
            return expr
        expr = map_children(expr, lambda child: self._visit(child, applied))
        for rule in self.rules.get(type(expr), ()):
            rewritten = rule.rewrite(expr, self)
            if rewritten is not None and rewritten != expr:
                name = rule.rule_id.value
                applied[name] = applied.get(name, 0) + 1
                return rewritten
        return expr

    def expand(self, expr: Expression) -> Expression:
        """Distribute products over sums and expand integer powers of sums."""
        if expr.is_undefined():
            return expr
        expr = map_children(expr, self.expand)
        if isinstance(expr, Mul):
            return self._expand_product(expr.factors)
        if isinstance(expr, Pow):
            return self._expand_power(expr)
        return expr

    def _expand_product(self, factors) -> Expression:
        """Distribute left to right; operand order inside every product is kept."""
        sequences: List[List[Expression]] = [[]]
        for factor in factors:
            if isinstance(factor, Add):
                sequences = [seq + [term] for seq in sequences for term in factor.terms]
            else:
                sequences = [seq + [factor] for seq in sequences]
        return add([mul(seq) for seq in sequences])

    def _expand_power(self, expr: Pow) -> Expression:
        base, exponent = expr.base, expr.exponent
        if not (isinstance(exponent, Number) and exponent.is_integer() and exponent.value > 1):
            return expr
        n = exponent.value
        if isinstance(base, Mul) and base.is_commutative:
            return self.expand(mul([pow(f, exponent) for f in base.factors]))
        if not isinstance(base, Add) or n > self.policy.max_expand_exponent:
            return expr
        result: Expression = base
        for _ in range(n - 1):
            factors = list(result.terms) if isinstance(result, Add) else [result]
            result = add([self._expand_product((term, base)) for term in factors])
        return result

    def equivalent(self, a: Expression, b: Expression) -> bool:
        """True when a - b simplifies to zero."""
        difference = self.simplify(self.expand(sub(a, b))).expr
        return isinstance(difference, Number) and difference.is_zero()


_DEFAULT_SIMPLIFIER: Optional[SymbolicSimplifier] = None
_DEFAULT_LOCK = threading.Lock()


def _simplifier(policy: Optional[AlgorithmPolicy]) -> SymbolicSimplifier:
    global _DEFAULT_SIMPLIFIER
    if policy is not None:
        return SymbolicSimplifier(policy)
    if _DEFAULT_SIMPLIFIER is None:
        with _DEFAULT_LOCK:
            if _DEFAULT_SIMPLIFIER is None:
                _DEFAULT_SIMPLIFIER = SymbolicSimplifier()
    return _DEFAULT_SIMPLIFIER


def simplify(expr: Expression, policy: Optional[AlgorithmPolicy] = None) -> Expression:
    """Simplify expression to normal form."""
    return _simplifier(policy).simplify(expr).expr


def simplify_with_conditions(expr: Expression,
                             policy: Optional[AlgorithmPolicy] = None) -> SimplifyResult:
    return _simplifier(policy).simplify(expr)


def expand(expr: Expression, policy: Optional[AlgorithmPolicy] = None) -> Expression:
    """Expand expression."""
    return _simplifier(policy).expand(expr)
