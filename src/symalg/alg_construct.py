"""
symalg: Canonical Constructors

Every public constructor returns an expression in canonical form:

- flat: no Add directly inside Add, no Mul inside Mul
- at most one numeric term in an Add and one numeric factor in a Mul
- no 0 in an Add, no 1 in a Mul, a zero factor collapses the product
- like terms and like bases combined for commuting operands
- Add terms sorted; Mul keeps the coefficient first, then the sorted
  commuting factors, then the non-commuting factors in their original order
- Undefined absorbs everything

Constructors are total: domain failures produce the Undefined constant.
"""

from fractions import Fraction
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from .alg_types import (
    Expression, Number, Symbol, Constant, ConstantKind, Add, Mul, Pow,
    Function, Complex, Derivative, Integral, Limit, LimitDirection,
    UNDEFINED, INFINITY, NEG_INFINITY, I, ZERO, ONE, MINUS_ONE, HALF,
    as_expression, is_numeric_complex, cancelled_bases, with_cancelled,
)
from .alg_number import number_add, number_mul, number_pow, number_sign
from .policy import DEFAULT_POLICY


# === Number constructors ===

def integer(n: int) -> Number:
    return Number(int(n))


def rational(numerator: int, denominator: int = 1) -> Expression:
    """Reduced rational; a zero denominator is Undefined."""
    if denominator == 0:
        return UNDEFINED
    return Number(Fraction(numerator, denominator))


def float_(value: float) -> Expression:
    return as_expression(float(value))


def number(value) -> Expression:
    return as_expression(value)


# === Helpers ===

def _flatten(items: Sequence[Expression], node_type) -> List[Expression]:
    flat = []
    for item in items:
        item = as_expression(item)
        if isinstance(item, node_type):
            flat.extend(item.children)
        else:
            flat.append(item)
    return flat


def _is_finite_constant(expr: Expression) -> bool:
    return isinstance(expr, Constant) and expr.kind in (
        ConstantKind.PI, ConstantKind.E, ConstantKind.EULER_GAMMA, ConstantKind.I)


def split_coefficient(term: Expression) -> Tuple[Number, Expression]:
    """Split c*rest into (c, rest); terms without a coefficient get 1."""
    if isinstance(term, Mul) and isinstance(term.factors[0], Number):
        rest = term.factors[1:]
        if len(rest) == 1:
            return term.factors[0], rest[0]
        return term.factors[0], Mul(rest)
    return ONE, term


def _make_term(coeff: Expression, rest: Expression) -> Optional[Expression]:
    if not isinstance(coeff, Number):
        return mul([coeff, rest])
    if coeff.is_zero():
        return None
    if coeff.is_one():
        return rest
    if isinstance(rest, Mul):
        return Mul((coeff,) + rest.factors)
    return Mul((coeff, rest))


def _sorted(items: List[Expression]) -> List[Expression]:
    return sorted(items, key=lambda e: e.sort_key)


# === Sums ===

def _inherited(items: Sequence[Expression]) -> FrozenSet[Expression]:
    marks: FrozenSet[Expression] = frozenset()
    for item in items:
        if isinstance(item, Expression):
            marks |= cancelled_bases(item)
    return marks


def add(terms: Sequence[Expression]) -> Expression:
    """Canonical sum of ``terms``."""
    terms = list(terms)
    return with_cancelled(_add(terms), _inherited(terms))


def _add(terms: List[Expression]) -> Expression:
    flat = _flatten(terms, Add)
    if not flat:
        return ZERO
    if any(t.is_undefined() for t in flat):
        return UNDEFINED

    total: Number = ZERO
    infinities = set()
    complex_parts: Optional[Tuple[List[Expression], List[Expression]]] = None
    groups: Dict[Expression, Expression] = {}

    for term in flat:
        if isinstance(term, Number):
            folded = number_add(total, term)
            if isinstance(folded, Number):
                total = folded
            else:
                infinities.add(folded.kind)
        elif term.is_infinite():
            infinities.add(term.kind)
        elif isinstance(term, Complex):
            if complex_parts is None:
                complex_parts = ([], [])
            complex_parts[0].append(term.real)
            complex_parts[1].append(term.imag)
        else:
            coeff, rest = split_coefficient(term)
            if rest in groups:
                previous = groups[rest]
                if isinstance(previous, Number):
                    groups[rest] = number_add(previous, coeff)
                else:
                    groups[rest] = add([previous, coeff])
            else:
                groups[rest] = coeff

    if ConstantKind.INFINITY in infinities and ConstantKind.NEG_INFINITY in infinities:
        return UNDEFINED

    result = []
    for rest, coeff in groups.items():
        term = _make_term(coeff, rest)
        if term is not None:
            result.append(term)

    if infinities:
        # Infinity absorbs every finite numeric term
        result = [t for t in result if not _is_finite_constant(split_coefficient(t)[1])]
        result.append(INFINITY if ConstantKind.INFINITY in infinities else NEG_INFINITY)
        if complex_parts is not None:
            imag = add(complex_parts[1])
            if not imag.is_number():
                result.append(complex_(ZERO, imag))
    else:
        if complex_parts is not None:
            real = add(complex_parts[0] + [total])
            folded = complex_(real, add(complex_parts[1]))
            if isinstance(folded, Add):
                result.extend(folded.terms)
            elif not folded.is_zero():
                result.append(folded)
        elif not total.is_zero():
            result.append(total)

    if any(t.is_undefined() for t in result):
        return UNDEFINED
    if not result:
        return ZERO if complex_parts is not None else total
    if len(result) == 1:
        return result[0]
    return Add(tuple(_sorted(result)))


def sub(a: Expression, b: Expression) -> Expression:
    return add([a, neg(b)])


def neg(a: Expression) -> Expression:
    return mul([MINUS_ONE, a])


# === Products ===

def _base_exponent(factor: Expression) -> Tuple[Expression, Expression]:
    if isinstance(factor, Pow):
        return factor.base, factor.exponent
    return factor, ONE


def _complex_mul(a: Complex, b: Expression) -> Expression:
    if isinstance(b, Complex):
        real = add([mul([a.real, b.real]), neg(mul([a.imag, b.imag]))])
        imag = add([mul([a.real, b.imag]), mul([a.imag, b.real])])
        return complex_(real, imag)
    return complex_(mul([a.real, b]), mul([a.imag, b]))


def _needs_restart(result: Expression) -> bool:
    return (isinstance(result, (Mul, Complex)) or result.is_infinite()
            or result.is_undefined())


def mul(factors: Sequence[Expression]) -> Expression:
    """Canonical product of ``factors``; non-commuting order is preserved."""
    factors = list(factors)
    cancelled: Set[Expression] = set()
    result = _mul(factors, cancelled)
    return with_cancelled(result, _inherited(factors) | frozenset(cancelled))


def _mul(factors: List[Expression], cancelled: Set[Expression]) -> Expression:
    """Fold ``factors``; non-numeric bases whose exponents sum to zero go to ``cancelled``."""
    flat = _flatten(factors, Mul)
    if not flat:
        return ONE
    if any(f.is_undefined() for f in flat):
        return UNDEFINED

    coeff: Number = ONE
    numeric_complex: Optional[Expression] = None
    infinite_signs = []
    others = []

    for factor in flat:
        if isinstance(factor, Number):
            folded = number_mul(coeff, factor)
            if isinstance(folded, Number):
                coeff = folded
            else:
                infinite_signs.append(1 if folded == INFINITY else -1)
                coeff = ONE
        elif factor.is_infinite():
            infinite_signs.append(1 if factor.kind is ConstantKind.INFINITY else -1)
        elif is_numeric_complex(factor):
            numeric_complex = factor if numeric_complex is None else _complex_mul(numeric_complex, factor)
        else:
            others.append(factor)

    if isinstance(numeric_complex, Number):
        # i*i and the like fold back into the coefficient
        folded = number_mul(coeff, numeric_complex)
        if isinstance(folded, Number):
            coeff, numeric_complex = folded, None

    if coeff.is_zero():
        if infinite_signs:
            return UNDEFINED
        return coeff

    if infinite_signs:
        sign = number_sign(coeff)
        for s in infinite_signs:
            sign *= s
        coeff = ONE
        others.append(INFINITY if sign > 0 else NEG_INFINITY)
        if numeric_complex is not None:
            others.append(numeric_complex)
            numeric_complex = None

    # Like bases: commuting factors anywhere, non-commuting only when adjacent
    commuting: Dict[Expression, List[Expression]] = {}
    singles: Dict[Expression, Expression] = {}
    noncommuting: List[List] = []
    for factor in others:
        base, exponent = _base_exponent(factor)
        if factor.is_commutative:
            if base in commuting:
                commuting[base].append(exponent)
            else:
                commuting[base] = [exponent]
                singles[base] = factor
        elif noncommuting and noncommuting[-1][0] == base:
            noncommuting[-1][1].append(exponent)
        else:
            noncommuting.append([base, [exponent], factor])

    restart = False
    rebuilt_commuting = []
    for base, exponents in commuting.items():
        if len(exponents) == 1:
            rebuilt_commuting.append(singles[base])
            continue
        total = add(exponents)
        if total.is_zero() and not isinstance(base, Number):
            cancelled.add(base)
        combined = pow(base, total)
        if isinstance(combined, Number):
            folded = number_mul(coeff, combined)
            if isinstance(folded, Number):
                coeff = folded
                continue
            restart = True
        restart = restart or _needs_restart(combined)
        rebuilt_commuting.append(combined)

    rebuilt_noncommuting = []
    for base, exponents, factor in noncommuting:
        if len(exponents) == 1:
            rebuilt_noncommuting.append(factor)
            continue
        total = add(exponents)
        if total.is_zero() and not isinstance(base, Number):
            cancelled.add(base)
        combined = pow(base, total)
        if isinstance(combined, Number):
            if not combined.is_one():
                rebuilt_noncommuting.append(combined)
            # Neighbours of a cancelled pair may now be adjacent
            restart = True
        else:
            restart = restart or _needs_restart(combined)
            rebuilt_noncommuting.append(combined)

    if restart:
        head = [coeff] if numeric_complex is None else [coeff, numeric_complex]
        return _mul(head + rebuilt_commuting + rebuilt_noncommuting, cancelled)

    if numeric_complex is not None and not coeff.is_one():
        numeric_complex = _complex_mul(numeric_complex, coeff)
        coeff = ONE
        if isinstance(numeric_complex, Number):
            coeff, numeric_complex = numeric_complex, None
            if coeff.is_zero():
                return coeff

    result: List[Expression] = []
    if not coeff.is_one() or (coeff.is_float() and not rebuilt_commuting and not rebuilt_noncommuting
                              and numeric_complex is None):
        result.append(coeff)
    if numeric_complex is not None:
        result.append(numeric_complex)
    result.extend(_sorted(rebuilt_commuting))
    result.extend(rebuilt_noncommuting)

    if not result:
        return ONE
    if len(result) == 1:
        return result[0]
    if len(result) == 2 and isinstance(result[0], Number) and isinstance(result[1], Add):
        # Numeric coefficient distributes over a sum
        return add([mul([result[0], term]) for term in result[1].terms])
    return Mul(tuple(result))


def div(a: Expression, b: Expression) -> Expression:
    """a / b as a * b^-1; division by zero is Undefined."""
    return mul([a, pow(b, MINUS_ONE)])


# === Powers ===

# i^0, i^1, i^2, i^3
_I_CYCLE = (ONE, I, MINUS_ONE, Mul((MINUS_ONE, I)))


def _complex_power(base: Complex, n: int) -> Expression:
    """Numeric complex to an integer power by repeated squaring."""
    if n < 0:
        # 1/(a+bi) = (a-bi)/(a^2+b^2)
        norm = add([mul([base.real, base.real]), mul([base.imag, base.imag])])
        inverse = complex_(div(base.real, norm), div(neg(base.imag), norm))
        if not isinstance(inverse, Complex):
            return pow(inverse, integer(-n))
        return _complex_power(inverse, -n)
    result: Expression = ONE
    square: Expression = base
    while n:
        if n & 1:
            result = mul([result, square])
        n >>= 1
        if n:
            square = mul([square, square])
    return result


def _pow_infinite_exponent(base: Expression, exponent: Constant) -> Expression:
    if base.is_infinite():
        if exponent.kind is ConstantKind.INFINITY and base.kind is ConstantKind.INFINITY:
            return INFINITY
        if exponent.kind is ConstantKind.NEG_INFINITY and base.kind is ConstantKind.INFINITY:
            return ZERO
        return UNDEFINED
    if not isinstance(base, Number):
        return Pow(base, exponent)
    growing = exponent.kind is ConstantKind.INFINITY
    if base.value > 1:
        return INFINITY if growing else ZERO
    if 0 <= base.value < 1:
        if base.value == 0:
            return ZERO if growing else UNDEFINED
        return ZERO if growing else INFINITY
    return UNDEFINED


def pow(base: Expression, exponent: Expression) -> Expression:
    """Canonical base ** exponent. Nested powers are left to the simplifier."""
    base = as_expression(base)
    exponent = as_expression(exponent)
    return with_cancelled(_pow(base, exponent), _inherited((base, exponent)))


def _pow(base: Expression, exponent: Expression) -> Expression:
    if base.is_undefined() or exponent.is_undefined():
        return UNDEFINED
    if isinstance(exponent, Number):
        if exponent.is_zero():
            return ONE
        if exponent.is_one():
            return base
    if exponent.is_infinite():
        return _pow_infinite_exponent(base, exponent)

    if isinstance(base, Number):
        if base.is_one():
            return ONE
        if base.is_zero():
            if exponent.is_positive():
                return base
            if exponent.is_negative():
                return UNDEFINED
            return Pow(base, exponent)
        if isinstance(exponent, Number):
            value = number_pow(base, exponent, DEFAULT_POLICY.max_exact_power_bits)
            if value is not None:
                return value
            if base == MINUS_ONE and exponent == HALF:
                return I
        return Pow(base, exponent)

    if base.is_infinite():
        if exponent.is_negative():
            return ZERO
        if exponent.is_positive():
            if base.kind is ConstantKind.INFINITY:
                return INFINITY
            if isinstance(exponent, Number) and exponent.is_integer():
                return NEG_INFINITY if exponent.value % 2 else INFINITY
        return Pow(base, exponent)

    if isinstance(exponent, Number) and exponent.is_integer():
        if base == I:
            return _I_CYCLE[exponent.value % 4]
        if is_numeric_complex(base) and abs(exponent.value) <= DEFAULT_POLICY.max_expand_exponent:
            return _complex_power(base, exponent.value)

    return Pow(base, exponent)


def sqrt(a: Expression) -> Expression:
    return function("sqrt", [a])


# === Functions and complex values ===

def function(name: str, args: Sequence[Expression]) -> Expression:
    args = tuple(as_expression(a) for a in args)
    if any(a.is_undefined() for a in args):
        return UNDEFINED
    return with_cancelled(Function(name, args), _inherited(args))


def complex_(real: Expression, imag: Expression) -> Expression:
    """real + imag*i; a zero imaginary part collapses to the real part."""
    real = as_expression(real)
    imag = as_expression(imag)
    if real.is_undefined() or imag.is_undefined():
        return UNDEFINED
    if isinstance(imag, Number) and imag.is_zero():
        return with_cancelled(real, cancelled_bases(imag))
    return with_cancelled(Complex(real, imag), _inherited((real, imag)))


# === Calculus forms ===

def derivative(expr: Expression, var: Symbol, order: int = 1) -> Expression:
    if order < 0:
        raise ValueError("Derivative order must be non-negative")
    if order == 0:
        return expr
    if expr.is_undefined():
        return UNDEFINED
    if isinstance(expr, Derivative) and expr.var == var:
        return Derivative(expr.expr, var, expr.order + order)
    return Derivative(expr, var, order)


def integral(integrand: Expression, var: Symbol,
             bounds: Optional[Tuple[Expression, Expression]] = None) -> Expression:
    if integrand.is_undefined():
        return UNDEFINED
    if bounds is not None:
        lower, upper = (as_expression(b) for b in bounds)
        if lower.is_undefined() or upper.is_undefined():
            return UNDEFINED
        if lower == upper:
            return ZERO
        return Integral(integrand, var, (lower, upper))
    return Integral(integrand, var)


def limit(expr: Expression, var: Symbol, approach: Expression,
          direction: LimitDirection = LimitDirection.BOTH) -> Expression:
    approach = as_expression(approach)
    if expr.is_undefined() or approach.is_undefined():
        return UNDEFINED
    if var not in expr.free_symbols:
        return expr
    return Limit(expr, var, approach, direction)


# === Visitor contract ===

def rebuild(expr: Expression, children: Sequence[Expression]) -> Expression:
    """Reconstruct ``expr`` with new children through the constructors."""
    if isinstance(expr, Add):
        return add(children)
    if isinstance(expr, Mul):
        return mul(children)
    if isinstance(expr, Pow):
        return pow(children[0], children[1])
    if isinstance(expr, Function):
        return function(expr.name, children)
    if isinstance(expr, Complex):
        return complex_(children[0], children[1])
    if isinstance(expr, Derivative):
        return derivative(children[0], expr.var, expr.order)
    if isinstance(expr, Integral):
        bounds = None if len(children) == 1 else (children[1], children[2])
        return integral(children[0], expr.var, bounds)
    if isinstance(expr, Limit):
        return limit(children[0], expr.var, children[1], expr.direction)
    return expr


def map_children(expr: Expression, fn: Callable[[Expression], Expression]) -> Expression:
    """Apply ``fn`` to each child and rebuild; unchanged children keep ``expr``."""
    children = expr.children
    if not children:
        return expr
    new_children = [fn(child) for child in children]
    if all(new is old for new, old in zip(new_children, children)):
        return expr
    return rebuild(expr, new_children)


def canonicalize(expr: Expression) -> Expression:
    """Recursively rebuild a (possibly handwritten) tree into canonical form."""
    children = expr.children
    if not children:
        return expr
    return rebuild(expr, [canonicalize(child) for child in children])
