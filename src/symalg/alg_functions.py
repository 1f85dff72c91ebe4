"""
symalg: Function Table

Process-wide table of the built-in elementary functions. Each entry carries
its parity, an exact-value handler for exact arguments and a numpy evaluator
that fires only for Float arguments. The table is built once behind a lock
and read-only afterwards.
"""

import logging
import math
import threading
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import Callable, Dict, Mapping, Optional, Union

import numpy as np

from .alg_types import (
    Expression, Number, Symbol, Constant, ConstantKind, Add, Mul, Pow,
    Function, Complex, Calculus, PI, E, I, INFINITY, NEG_INFINITY, UNDEFINED,
    ZERO, ONE, MINUS_ONE, HALF,
)
from .alg_construct import add, mul, neg, function, complex_, integer, rational
from .alg_number import integer_root, number_abs, number_sign, float_result
from .policy import AlgorithmPolicy, DEFAULT_POLICY

logger = logging.getLogger('symalg.functions')


class Parity(Enum):
    NONE = "none"
    EVEN = "even"
    ODD = "odd"


@dataclass(frozen=True)
class FunctionInfo:
    """Metadata and evaluators of one built-in function."""
    name: str
    parity: Parity = Parity.NONE
    exact: Optional[Callable[[Expression, AlgorithmPolicy], Optional[Expression]]] = None
    ufunc: Optional[Callable] = None
    domain: Optional[Callable[[float], bool]] = None
    inverse: Optional[str] = None


# === Exact values at rational multiples of pi ===

def _pi_coefficient(arg: Expression) -> Optional[Fraction]:
    if arg == PI:
        return Fraction(1)
    if isinstance(arg, Number) and arg.is_rational() and arg.is_zero():
        return Fraction(0)
    if (isinstance(arg, Mul) and len(arg.factors) == 2 and arg.factors[1] == PI
            and isinstance(arg.factors[0], Number) and arg.factors[0].is_rational()):
        return Fraction(arg.factors[0].value)
    return None


def _sqrt_of(n: int) -> Expression:
    return function("sqrt", [integer(n)])


# Exact values at q*pi for q in [0, 1/2]
_SIN_TABLE: Dict[Fraction, Expression] = {
    Fraction(0): ZERO,
    Fraction(1, 6): HALF,
    Fraction(1, 4): mul([HALF, _sqrt_of(2)]),
    Fraction(1, 3): mul([HALF, _sqrt_of(3)]),
    Fraction(1, 2): ONE,
}
_TAN_TABLE: Dict[Fraction, Expression] = {
    Fraction(0): ZERO,
    Fraction(1, 6): mul([rational(1, 3), _sqrt_of(3)]),
    Fraction(1, 4): ONE,
    Fraction(1, 3): _sqrt_of(3),
    Fraction(1, 2): UNDEFINED,
}


def sin_pi(q: Fraction) -> Optional[Expression]:
    """sin(q*pi) for tabulated q, reduced by symmetry."""
    r = q % 2
    negative = r >= 1
    if negative:
        r -= 1
    if r > Fraction(1, 2):
        r = 1 - r
    value = _SIN_TABLE.get(r)
    if value is None:
        return None
    return neg(value) if negative else value


def cos_pi(q: Fraction) -> Optional[Expression]:
    return sin_pi(q + Fraction(1, 2))


def tan_pi(q: Fraction) -> Optional[Expression]:
    r = q % 1
    negative = r > Fraction(1, 2)
    if negative:
        r = 1 - r
    value = _TAN_TABLE.get(r)
    if value is None or value is UNDEFINED:
        return value
    return neg(value) if negative else value


# === Exact handlers ===

def _exact_fraction(arg: Expression) -> Optional[Fraction]:
    if isinstance(arg, Number) and arg.is_rational():
        return Fraction(arg.value)
    return None


def _sin_exact(arg, policy):
    q = _pi_coefficient(arg)
    return sin_pi(q) if q is not None else None


def _cos_exact(arg, policy):
    q = _pi_coefficient(arg)
    return cos_pi(q) if q is not None else None


def _tan_exact(arg, policy):
    q = _pi_coefficient(arg)
    return tan_pi(q) if q is not None else None


def _zero_to(value: Expression):
    def handler(arg, policy):
        if isinstance(arg, Number) and arg.is_zero():
            return value
        return None
    return handler


def _table_handler(table: Dict[Fraction, Callable[[], Expression]]):
    def handler(arg, policy):
        q = _exact_fraction(arg)
        if q is None or q not in table:
            return None
        return table[q]()
    return handler


_asin_exact = _table_handler({
    Fraction(0): lambda: ZERO,
    Fraction(1, 2): lambda: mul([rational(1, 6), PI]),
    Fraction(1): lambda: mul([HALF, PI]),
})

_acos_exact = _table_handler({
    Fraction(1): lambda: ZERO,
    Fraction(1, 2): lambda: mul([rational(1, 3), PI]),
    Fraction(0): lambda: mul([HALF, PI]),
    Fraction(-1, 2): lambda: mul([rational(2, 3), PI]),
    Fraction(-1): lambda: PI,
})

_atan_exact = _table_handler({
    Fraction(0): lambda: ZERO,
    Fraction(1): lambda: mul([rational(1, 4), PI]),
})


def _exp_exact(arg, policy):
    if isinstance(arg, Number) and arg.is_rational():
        if arg.is_zero():
            return ONE
        if arg.is_one():
            return E
    if arg == NEG_INFINITY:
        return ZERO
    if arg == INFINITY:
        return INFINITY
    return None


def _log_exact(arg, policy):
    if isinstance(arg, Number) and arg.is_rational():
        if arg.is_zero():
            return UNDEFINED
        if arg.is_one():
            return ZERO
    if arg == E:
        return ONE
    if arg == INFINITY:
        return INFINITY
    return None


def _sqrt_exact(arg, policy):
    if isinstance(arg, Number):
        if arg.is_float():
            if arg.value < 0:
                return complex_(ZERO, Number(math.sqrt(-arg.value)))
            return None
        q = Fraction(arg.value)
        magnitude = abs(q)
        num = integer_root(magnitude.numerator, 2)
        den = integer_root(magnitude.denominator, 2)
        if num is None or den is None:
            if q < 0:
                return mul([I, function("sqrt", [Number(magnitude)])])
            return None
        root = Number(Fraction(num, den))
        return complex_(ZERO, root) if q < 0 else root
    if isinstance(arg, Pow) and arg.exponent == Number(2) and arg.base.is_commutative:
        return function("abs", [arg.base])
    if arg == INFINITY:
        return INFINITY
    return None


def _abs_exact(arg, policy):
    if isinstance(arg, Number):
        return number_abs(arg)
    if isinstance(arg, Constant):
        if arg.is_positive():
            return arg
        if arg == NEG_INFINITY:
            return INFINITY
        if arg == I:
            return ONE
    if isinstance(arg, Complex) and arg.is_numeric():
        norm = add([mul([arg.real, arg.real]), mul([arg.imag, arg.imag])])
        return _sqrt_exact(norm, policy) or function("sqrt", [norm])
    return None


def _sign_exact(arg, policy):
    if isinstance(arg, Number):
        return integer(number_sign(arg))
    if isinstance(arg, Constant):
        if arg.is_positive():
            return ONE
        if arg.is_negative():
            return MINUS_ONE
    return None


def _gamma_exact(arg, policy):
    if arg == INFINITY:
        return INFINITY
    q = _exact_fraction(arg)
    if q is None:
        return None
    bound = policy.max_factorial_argument
    if q.denominator == 1:
        n = q.numerator
        if n <= 0:
            return UNDEFINED
        if n - 1 <= bound:
            return integer(math.factorial(n - 1))
        return None
    if q.denominator == 2:
        # gamma(m + 1/2) = (2m)! / (4^m m!) * sqrt(pi)
        m = q.numerator // 2
        if abs(m) > bound:
            return None
        sqrt_pi = function("sqrt", [PI])
        if m >= 0:
            coeff = Fraction(math.factorial(2 * m), 4 ** m * math.factorial(m))
        else:
            k = -m
            coeff = Fraction((-4) ** k * math.factorial(k), math.factorial(2 * k))
        return mul([Number(coeff), sqrt_pi])
    return None


def _factorial_exact(arg, policy):
    if arg == INFINITY:
        return INFINITY
    q = _exact_fraction(arg)
    if q is None or q.denominator != 1:
        return None
    n = q.numerator
    if n < 0:
        return UNDEFINED
    if n <= policy.max_factorial_argument:
        return integer(math.factorial(n))
    return None


# === Float evaluators ===

def _scalar_gamma(x: float) -> float:
    try:
        return math.gamma(x)
    except ValueError:
        return math.nan
    except OverflowError:
        return math.inf


_gamma_ufunc = np.vectorize(_scalar_gamma, otypes=[float])


def _factorial_ufunc(x):
    return _gamma_ufunc(np.asarray(x, dtype=float) + 1.0)


def _log_ufunc(x):
    x = np.asarray(x, dtype=float)
    return np.where(x == 0.0, np.nan, np.log(np.where(x == 0.0, 1.0, x)))


def _unit_interval(x: float) -> bool:
    return -1.0 <= x <= 1.0


# === Registry ===

_REGISTRY: Optional[Dict[str, FunctionInfo]] = None
_REGISTRY_LOCK = threading.Lock()


def _build_registry() -> Dict[str, FunctionInfo]:
    infos = [
        FunctionInfo("sin", Parity.ODD, _sin_exact, np.sin, inverse="asin"),
        FunctionInfo("cos", Parity.EVEN, _cos_exact, np.cos, inverse="acos"),
        FunctionInfo("tan", Parity.ODD, _tan_exact, np.tan, inverse="atan"),
        FunctionInfo("sinh", Parity.ODD, _zero_to(ZERO), np.sinh),
        FunctionInfo("cosh", Parity.EVEN, _zero_to(ONE), np.cosh),
        FunctionInfo("tanh", Parity.ODD, _zero_to(ZERO), np.tanh),
        FunctionInfo("asin", Parity.ODD, _asin_exact, np.arcsin, _unit_interval),
        FunctionInfo("acos", Parity.NONE, _acos_exact, np.arccos, _unit_interval),
        FunctionInfo("atan", Parity.ODD, _atan_exact, np.arctan),
        FunctionInfo("exp", Parity.NONE, _exp_exact, np.exp, inverse="log"),
        FunctionInfo("log", Parity.NONE, _log_exact, _log_ufunc, lambda x: x >= 0.0),
        FunctionInfo("sqrt", Parity.NONE, _sqrt_exact, np.sqrt, lambda x: x >= 0.0),
        FunctionInfo("abs", Parity.EVEN, _abs_exact, np.abs),
        FunctionInfo("sign", Parity.ODD, _sign_exact, np.sign),
        FunctionInfo("gamma", Parity.NONE, _gamma_exact, _gamma_ufunc),
        FunctionInfo("factorial", Parity.NONE, _factorial_exact, _factorial_ufunc),
    ]
    return {info.name: info for info in infos}


def function_registry() -> Dict[str, FunctionInfo]:
    """The shared function table, built on first use."""
    global _REGISTRY
    if _REGISTRY is None:
        with _REGISTRY_LOCK:
            if _REGISTRY is None:
                _REGISTRY = _build_registry()
                logger.debug(f"Function table initialized with {len(_REGISTRY)} entries")
    return _REGISTRY


def lookup(name: str) -> Optional[FunctionInfo]:
    return function_registry().get(name)


# === Evaluation ===

def _looks_negative(arg: Expression) -> bool:
    if isinstance(arg, Number):
        return arg.is_negative()
    if isinstance(arg, Mul):
        lead = arg.factors[0]
        return isinstance(lead, Number) and lead.is_negative()
    return arg == NEG_INFINITY


def apply_parity(fn: Function) -> Optional[Expression]:
    """sin(-x) -> -sin(x), cos(-x) -> cos(x) and the like."""
    info = lookup(fn.name)
    if info is None or info.parity is Parity.NONE or len(fn.args) != 1:
        return None
    arg = fn.args[0]
    if not _looks_negative(arg):
        return None
    flipped = function(fn.name, [neg(arg)])
    return flipped if info.parity is Parity.EVEN else neg(flipped)


def evaluate_function(fn: Function, policy: AlgorithmPolicy = DEFAULT_POLICY) -> Optional[Expression]:
    """Exact value for exact arguments, numeric value for Float arguments.

    Returns None when the application stays symbolic.
    """
    info = lookup(fn.name)
    if info is None or len(fn.args) != 1:
        return None
    arg = fn.args[0]

    if isinstance(arg, Number) and arg.is_float():
        # Handlers that special-case floats (complex square roots)
        if info.exact is not None and info.name == "sqrt" and arg.value < 0:
            return info.exact(arg, policy)
        if info.ufunc is None:
            return None
        if info.domain is not None and not info.domain(arg.value):
            return None
        with np.errstate(all='ignore'):
            value = float(np.asarray(info.ufunc(np.float64(arg.value))))
        return float_result(value)

    if info.exact is None:
        return None
    return info.exact(arg, policy)


_CONSTANT_VALUES = {
    ConstantKind.PI: np.pi,
    ConstantKind.E: np.e,
    ConstantKind.EULER_GAMMA: np.euler_gamma,
    ConstantKind.INFINITY: np.inf,
    ConstantKind.NEG_INFINITY: -np.inf,
    ConstantKind.UNDEFINED: np.nan,
}


def _numeric(expr: Expression, values: Mapping[str, object]):
    if isinstance(expr, Number):
        return float(expr.value)
    if isinstance(expr, Constant):
        if expr.kind not in _CONSTANT_VALUES:
            raise ValueError(f"Cannot evaluate {expr} as a real number")
        return _CONSTANT_VALUES[expr.kind]
    if isinstance(expr, Symbol):
        if expr.name not in values:
            raise ValueError(f"No value bound for symbol {expr.name}")
        return np.asarray(values[expr.name], dtype=float)
    if isinstance(expr, Add):
        total = 0.0
        for term in expr.terms:
            total = total + _numeric(term, values)
        return total
    if isinstance(expr, Mul):
        product = 1.0
        for factor in expr.factors:
            product = product * _numeric(factor, values)
        return product
    if isinstance(expr, Pow):
        return np.float_power(_numeric(expr.base, values), _numeric(expr.exponent, values))
    if isinstance(expr, Function):
        info = lookup(expr.name)
        if info is None or info.ufunc is None or len(expr.args) != 1:
            raise ValueError(f"No numeric evaluator for function {expr.name}")
        return info.ufunc(_numeric(expr.args[0], values))
    if isinstance(expr, (Complex, Calculus)):
        raise ValueError(f"Cannot evaluate {type(expr).__name__} numerically")
    raise ValueError(f"Unknown expression type: {type(expr).__name__}")


def evaluate_numeric(expr: Expression,
                     values: Optional[Mapping[Union[Symbol, str], object]] = None):
    """Evaluate ``expr`` in floating point.

    Symbol values may be floats or numpy arrays; arrays broadcast, so one call
    evaluates the expression over a whole grid.

    Raises:
        ValueError: If a free symbol is unbound or a node has no real value
    """
    bound = {}
    for key, value in (values or {}).items():
        bound[key.name if isinstance(key, Symbol) else key] = value
    with np.errstate(all='ignore'):
        result = _numeric(expr, bound)
    result = np.asarray(result, dtype=float)
    if result.ndim == 0:
        return float(result)
    return result
