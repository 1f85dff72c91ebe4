"""
symalg: Expression Types

Defines the immutable expression tree: numbers, symbols, interned constants,
n-ary sums and products, powers, function applications, rectangular complex
values and the unevaluated calculus forms.

Node classes constructed directly are "handwritten" trees and may be
non-canonical; the canonical constructors live in ``alg_construct``. Every
node caches its structural hash on construction and its ordering key on first
use.
"""

import copy
import numbers
import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Dict, FrozenSet, Optional, Tuple, Union

from .alg_hash import HashTag, leaf_hash, node_hash

SMALL_INT_MIN = -(1 << 63)
SMALL_INT_MAX = (1 << 63) - 1


class SymbolType(Enum):
    """Algebraic class of a symbol; decides commutativity under multiplication."""
    SCALAR = "scalar"
    MATRIX = "matrix"
    OPERATOR = "operator"
    QUATERNION = "quaternion"


_SYMBOL_TYPE_ORDER = {
    SymbolType.SCALAR: 0,
    SymbolType.MATRIX: 1,
    SymbolType.OPERATOR: 2,
    SymbolType.QUATERNION: 3,
}


class NumberKind(Enum):
    """Representation cases of the number tower."""
    SMALL_INT = "small_int"
    BIG_INTEGER = "big_integer"
    RATIONAL = "rational"
    FLOAT = "float"


class ConstantKind(Enum):
    """Interned named constants."""
    PI = "pi"
    E = "e"
    I = "i"  # noqa: E741
    INFINITY = "oo"
    NEG_INFINITY = "-oo"
    EULER_GAMMA = "EulerGamma"
    UNDEFINED = "undefined"


_CONSTANT_ORDER = {kind: i for i, kind in enumerate(ConstantKind)}


class LimitDirection(Enum):
    """Side from which a limit approaches its point."""
    BOTH = "both"
    LEFT = "left"
    RIGHT = "right"


# Ranks of the total canonical order
RANK_NUMBER = 0
RANK_CONSTANT = 1
RANK_SYMBOL = 2
RANK_POW = 3
RANK_FUNCTION = 4
RANK_COMPOUND = 5
RANK_CALCULUS = 6


def _set(obj, name, value):
    object.__setattr__(obj, name, value)


# === Base Expression ===

class Expression(ABC):
    """Base class for all expression nodes."""

    @property
    @abstractmethod
    def children(self) -> Tuple['Expression', ...]:
        """Child expressions in canonical order."""

    @abstractmethod
    def _compute_hash(self) -> int:
        pass

    @abstractmethod
    def _compute_key(self) -> tuple:
        pass

    @abstractmethod
    def _same_payload(self, other) -> bool:
        pass

    def _finish(self) -> None:
        _set(self, '_hash', self._compute_hash())

    @property
    def structural_hash(self) -> int:
        """Stable 64-bit content hash."""
        return self._hash

    @property
    def sort_key(self) -> tuple:
        """Key of the total canonical order."""
        key = self.__dict__.get('_key')
        if key is None:
            key = self._compute_key()
            _set(self, '_key', key)
        return key

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other) -> bool:
        if self is other:
            return True
        if not isinstance(other, Expression):
            return NotImplemented
        if type(self) is not type(other) or self._hash != other._hash:
            return False
        return self._same_payload(other)

    def __ne__(self, other) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    # --- structural queries ---

    @property
    def is_commutative(self) -> bool:
        """True when no non-scalar symbol occurs in the expression."""
        cached = self.__dict__.get('_commutative')
        if cached is None:
            cached = all(child.is_commutative for child in self.children)
            _set(self, '_commutative', cached)
        return cached

    @property
    def free_symbols(self) -> FrozenSet['Symbol']:
        cached = self.__dict__.get('_free')
        if cached is None:
            result = set()
            for child in self.children:
                result |= child.free_symbols
            cached = frozenset(result)
            _set(self, '_free', cached)
        return cached

    def contains(self, sub: 'Expression') -> bool:
        """True if ``sub`` occurs as a subexpression."""
        if self == sub:
            return True
        return any(child.contains(sub) for child in self.children)

    def node_count(self) -> int:
        return 1 + sum(child.node_count() for child in self.children)

    def is_number(self) -> bool:
        return False

    def is_integer(self) -> bool:
        return False

    def is_rational(self) -> bool:
        return False

    def is_zero(self) -> bool:
        return False

    def is_one(self) -> bool:
        return False

    def is_positive(self) -> bool:
        return False

    def is_negative(self) -> bool:
        return False

    def is_undefined(self) -> bool:
        return False

    def is_infinite(self) -> bool:
        return False

    # --- operators route through the canonical constructors ---

    def __add__(self, other):
        from . import alg_construct as C
        other = as_expression(other)
        return C.add([self, other])

    def __radd__(self, other):
        from . import alg_construct as C
        return C.add([as_expression(other), self])

    def __sub__(self, other):
        from . import alg_construct as C
        return C.sub(self, as_expression(other))

    def __rsub__(self, other):
        from . import alg_construct as C
        return C.sub(as_expression(other), self)

    def __mul__(self, other):
        from . import alg_construct as C
        return C.mul([self, as_expression(other)])

    def __rmul__(self, other):
        from . import alg_construct as C
        return C.mul([as_expression(other), self])

    def __truediv__(self, other):
        from . import alg_construct as C
        return C.div(self, as_expression(other))

    def __rtruediv__(self, other):
        from . import alg_construct as C
        return C.div(as_expression(other), self)

    def __pow__(self, other):
        from . import alg_construct as C
        return C.pow(self, as_expression(other))

    def __rpow__(self, other):
        from . import alg_construct as C
        return C.pow(as_expression(other), self)

    def __neg__(self):
        from . import alg_construct as C
        return C.neg(self)


def _paren(expr: Expression) -> str:
    if isinstance(expr, (Add, Mul)) or (isinstance(expr, Number) and expr.is_negative()):
        return f"({expr})"
    return str(expr)


# === Numbers ===

@dataclass(frozen=True, eq=False)
class Number(Expression):
    """Numeric literal: small int, big integer, reduced rational or float."""
    value: Union[int, Fraction, float]
    kind: NumberKind = field(init=False)

    def __post_init__(self):
        value = self.value
        if isinstance(value, bool):
            value = int(value)
        if isinstance(value, Fraction):
            if value.denominator == 1:
                value = int(value.numerator)
        elif isinstance(value, numbers.Integral):
            value = int(value)
        elif isinstance(value, numbers.Real):
            value = float(value)
            if value != value:
                raise ValueError("NaN is not a Number; use Undefined")
            if value in (float('inf'), float('-inf')):
                raise ValueError("Infinite floats are not Numbers; use the infinity constants")
            if value == 0.0:
                value = 0.0
        else:
            raise TypeError(f"Unsupported number value: {value!r}")

        if isinstance(value, int):
            kind = NumberKind.SMALL_INT if SMALL_INT_MIN <= value <= SMALL_INT_MAX else NumberKind.BIG_INTEGER
        elif isinstance(value, Fraction):
            kind = NumberKind.RATIONAL
        else:
            kind = NumberKind.FLOAT
        _set(self, 'value', value)
        _set(self, 'kind', kind)
        self._finish()

    @property
    def children(self) -> Tuple[Expression, ...]:
        return ()

    def _payload(self) -> str:
        if self.kind is NumberKind.FLOAT:
            return f"f:{self.value.hex()}"
        if self.kind is NumberKind.RATIONAL:
            return f"q:{self.value.numerator}/{self.value.denominator}"
        return f"z:{self.value}"

    def _compute_hash(self) -> int:
        return leaf_hash(HashTag.NUMBER, self._payload())

    def _compute_key(self) -> tuple:
        return (RANK_NUMBER, self.value, self.kind is NumberKind.FLOAT)

    def _same_payload(self, other) -> bool:
        return self.kind is other.kind and self.value == other.value

    @property
    def is_commutative(self) -> bool:
        return True

    @property
    def free_symbols(self) -> FrozenSet['Symbol']:
        return frozenset()

    def is_number(self) -> bool:
        return True

    def is_integer(self) -> bool:
        return self.kind in (NumberKind.SMALL_INT, NumberKind.BIG_INTEGER)

    def is_rational(self) -> bool:
        return self.kind is not NumberKind.FLOAT

    def is_float(self) -> bool:
        return self.kind is NumberKind.FLOAT

    def is_zero(self) -> bool:
        return self.value == 0

    def is_one(self) -> bool:
        return self.value == 1

    def is_positive(self) -> bool:
        return self.value > 0

    def is_negative(self) -> bool:
        return self.value < 0

    def __str__(self) -> str:
        if self.kind is NumberKind.RATIONAL:
            return f"{self.value.numerator}/{self.value.denominator}"
        return repr(self.value) if self.kind is NumberKind.FLOAT else str(self.value)


# === Symbols ===

@dataclass(frozen=True, eq=False)
class Symbol(Expression):
    """Variable or named quantity with an algebraic-class tag."""
    name: str
    symbol_type: SymbolType = SymbolType.SCALAR

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Symbol name must be a non-empty string")
        _set(self, 'name', sys.intern(self.name))
        self._finish()

    @classmethod
    def scalar(cls, name: str) -> 'Symbol':
        return intern_symbol(name, SymbolType.SCALAR)

    @classmethod
    def matrix(cls, name: str) -> 'Symbol':
        return intern_symbol(name, SymbolType.MATRIX)

    @classmethod
    def operator(cls, name: str) -> 'Symbol':
        return intern_symbol(name, SymbolType.OPERATOR)

    @classmethod
    def quaternion(cls, name: str) -> 'Symbol':
        return intern_symbol(name, SymbolType.QUATERNION)

    @property
    def children(self) -> Tuple[Expression, ...]:
        return ()

    def _compute_hash(self) -> int:
        return leaf_hash(HashTag.SYMBOL, f"{self.symbol_type.value}:{self.name}")

    def _compute_key(self) -> tuple:
        return (RANK_SYMBOL, self.name, _SYMBOL_TYPE_ORDER[self.symbol_type])

    def _same_payload(self, other) -> bool:
        return self.name == other.name and self.symbol_type is other.symbol_type

    @property
    def is_commutative(self) -> bool:
        return self.symbol_type is SymbolType.SCALAR

    @property
    def free_symbols(self) -> FrozenSet['Symbol']:
        return frozenset((self,))

    def __str__(self) -> str:
        return self.name


_SYMBOL_POOL: Dict[Tuple[str, SymbolType], Symbol] = {}
_SYMBOL_POOL_LOCK = threading.Lock()


def intern_symbol(name: str, symbol_type: SymbolType = SymbolType.SCALAR) -> Symbol:
    """Return the shared Symbol for (name, symbol_type)."""
    key = (name, symbol_type)
    sym = _SYMBOL_POOL.get(key)
    if sym is None:
        with _SYMBOL_POOL_LOCK:
            sym = _SYMBOL_POOL.get(key)
            if sym is None:
                sym = Symbol(name, symbol_type)
                _SYMBOL_POOL[key] = sym
    return sym


def symbols(names: str, symbol_type: SymbolType = SymbolType.SCALAR) -> Tuple[Symbol, ...]:
    """Create several symbols from a whitespace or comma separated string."""
    parts = [p for p in names.replace(",", " ").split() if p]
    return tuple(intern_symbol(p, symbol_type) for p in parts)


# === Constants ===

@dataclass(frozen=True, eq=False)
class Constant(Expression):
    """Interned named constant (pi, e, i, +-infinity, Euler gamma, Undefined)."""
    kind: ConstantKind

    def __post_init__(self):
        self._finish()

    @property
    def children(self) -> Tuple[Expression, ...]:
        return ()

    def _compute_hash(self) -> int:
        return leaf_hash(HashTag.CONSTANT, self.kind.value)

    def _compute_key(self) -> tuple:
        return (RANK_CONSTANT, _CONSTANT_ORDER[self.kind])

    def _same_payload(self, other) -> bool:
        return self.kind is other.kind

    @property
    def is_commutative(self) -> bool:
        return True

    @property
    def free_symbols(self) -> FrozenSet[Symbol]:
        return frozenset()

    def is_positive(self) -> bool:
        return self.kind in (ConstantKind.PI, ConstantKind.E,
                             ConstantKind.EULER_GAMMA, ConstantKind.INFINITY)

    def is_negative(self) -> bool:
        return self.kind is ConstantKind.NEG_INFINITY

    def is_undefined(self) -> bool:
        return self.kind is ConstantKind.UNDEFINED

    def is_infinite(self) -> bool:
        return self.kind in (ConstantKind.INFINITY, ConstantKind.NEG_INFINITY)

    def __str__(self) -> str:
        return self.kind.value


PI = Constant(ConstantKind.PI)
E = Constant(ConstantKind.E)
I = Constant(ConstantKind.I)  # noqa: E741
INFINITY = Constant(ConstantKind.INFINITY)
NEG_INFINITY = Constant(ConstantKind.NEG_INFINITY)
EULER_GAMMA = Constant(ConstantKind.EULER_GAMMA)
UNDEFINED = Constant(ConstantKind.UNDEFINED)

ZERO = Number(0)
ONE = Number(1)
MINUS_ONE = Number(-1)
TWO = Number(2)
HALF = Number(Fraction(1, 2))


# === Algebraic Operations ===

@dataclass(frozen=True, eq=False)
class Add(Expression):
    """n-ary sum."""
    terms: Tuple[Expression, ...]

    def __post_init__(self):
        _set(self, 'terms', tuple(self.terms))
        self._finish()

    @property
    def children(self) -> Tuple[Expression, ...]:
        return self.terms

    def _compute_hash(self) -> int:
        return node_hash(HashTag.ADD, (t._hash for t in self.terms))

    def _compute_key(self) -> tuple:
        return (RANK_COMPOUND, 0, tuple(t.sort_key for t in self.terms))

    def _same_payload(self, other) -> bool:
        return self.terms == other.terms

    def __str__(self) -> str:
        return " + ".join(str(t) for t in self.terms)


@dataclass(frozen=True, eq=False)
class Mul(Expression):
    """n-ary product; factor order is significant for non-commuting factors."""
    factors: Tuple[Expression, ...]

    def __post_init__(self):
        _set(self, 'factors', tuple(self.factors))
        self._finish()

    @property
    def children(self) -> Tuple[Expression, ...]:
        return self.factors

    def _compute_hash(self) -> int:
        return node_hash(HashTag.MUL, (f._hash for f in self.factors))

    def _compute_key(self) -> tuple:
        return (RANK_COMPOUND, 1, tuple(f.sort_key for f in self.factors))

    def _same_payload(self, other) -> bool:
        return self.factors == other.factors

    def __str__(self) -> str:
        return "*".join(_paren(f) for f in self.factors)


@dataclass(frozen=True, eq=False)
class Pow(Expression):
    """base ** exponent."""
    base: Expression
    exponent: Expression

    def __post_init__(self):
        self._finish()

    @property
    def children(self) -> Tuple[Expression, ...]:
        return (self.base, self.exponent)

    def _compute_hash(self) -> int:
        return node_hash(HashTag.POW, (self.base._hash, self.exponent._hash))

    def _compute_key(self) -> tuple:
        return (RANK_POW, self.base.sort_key, self.exponent.sort_key)

    def _same_payload(self, other) -> bool:
        return self.base == other.base and self.exponent == other.exponent

    def __str__(self) -> str:
        base = _paren(self.base) if not isinstance(self.base, (Symbol, Constant, Function)) else str(self.base)
        if isinstance(self.base, Pow):
            base = f"({self.base})"
        return f"{base}^{_paren(self.exponent)}"


@dataclass(frozen=True, eq=False)
class Function(Expression):
    """Named function application."""
    name: str
    args: Tuple[Expression, ...]

    def __post_init__(self):
        _set(self, 'name', sys.intern(self.name))
        _set(self, 'args', tuple(self.args))
        self._finish()

    @property
    def children(self) -> Tuple[Expression, ...]:
        return self.args

    def _compute_hash(self) -> int:
        return node_hash(HashTag.FUNCTION, (a._hash for a in self.args), extra=self.name)

    def _compute_key(self) -> tuple:
        return (RANK_FUNCTION, self.name, tuple(a.sort_key for a in self.args))

    def _same_payload(self, other) -> bool:
        return self.name == other.name and self.args == other.args

    def __str__(self) -> str:
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


@dataclass(frozen=True, eq=False)
class Complex(Expression):
    """real + imag*i in rectangular form."""
    real: Expression
    imag: Expression

    def __post_init__(self):
        self._finish()

    @property
    def children(self) -> Tuple[Expression, ...]:
        return (self.real, self.imag)

    def _compute_hash(self) -> int:
        return node_hash(HashTag.COMPLEX, (self.real._hash, self.imag._hash))

    def _compute_key(self) -> tuple:
        return (RANK_COMPOUND, 2, self.real.sort_key, self.imag.sort_key)

    def _same_payload(self, other) -> bool:
        return self.real == other.real and self.imag == other.imag

    def is_numeric(self) -> bool:
        return isinstance(self.real, Number) and isinstance(self.imag, Number)

    def is_number(self) -> bool:
        return self.is_numeric()

    def __str__(self) -> str:
        return f"({self.real} + {_paren(self.imag)}*i)"


# === Unevaluated Calculus Forms ===

class Calculus(Expression):
    """Base of the unevaluated calculus forms."""


@dataclass(frozen=True, eq=False)
class Derivative(Calculus):
    """d^order expr / d var^order."""
    expr: Expression
    var: Symbol
    order: int = 1

    def __post_init__(self):
        if self.order < 0:
            raise ValueError("Derivative order must be non-negative")
        self._finish()

    @property
    def children(self) -> Tuple[Expression, ...]:
        return (self.expr,)

    def _compute_hash(self) -> int:
        return node_hash(HashTag.DERIVATIVE, (self.expr._hash, self.var._hash), extra=str(self.order))

    def _compute_key(self) -> tuple:
        return (RANK_CALCULUS, 0, self.expr.sort_key, self.var.sort_key, self.order)

    def _same_payload(self, other) -> bool:
        return self.expr == other.expr and self.var == other.var and self.order == other.order

    @property
    def free_symbols(self) -> FrozenSet[Symbol]:
        return self.expr.free_symbols | {self.var}

    def __str__(self) -> str:
        return f"Derivative({self.expr}, {self.var}, {self.order})"


@dataclass(frozen=True, eq=False)
class Integral(Calculus):
    """Indefinite or definite integral of integrand d var."""
    integrand: Expression
    var: Symbol
    bounds: Optional[Tuple[Expression, Expression]] = None

    def __post_init__(self):
        if self.bounds is not None:
            _set(self, 'bounds', tuple(self.bounds))
            if len(self.bounds) != 2:
                raise ValueError("Integral bounds must be a (lower, upper) pair")
        self._finish()

    @property
    def children(self) -> Tuple[Expression, ...]:
        if self.bounds is None:
            return (self.integrand,)
        return (self.integrand,) + self.bounds

    def _compute_hash(self) -> int:
        hashes = [c._hash for c in self.children]
        hashes.append(self.var._hash)
        return node_hash(HashTag.INTEGRAL, hashes, extra="definite" if self.bounds else "indefinite")

    def _compute_key(self) -> tuple:
        bounds_key = () if self.bounds is None else tuple(b.sort_key for b in self.bounds)
        return (RANK_CALCULUS, 1, self.integrand.sort_key, self.var.sort_key, bounds_key)

    def _same_payload(self, other) -> bool:
        return (self.integrand == other.integrand and self.var == other.var
                and self.bounds == other.bounds)

    @property
    def free_symbols(self) -> FrozenSet[Symbol]:
        if self.bounds is None:
            return self.integrand.free_symbols | {self.var}
        result = self.integrand.free_symbols - {self.var}
        for b in self.bounds:
            result |= b.free_symbols
        return frozenset(result)

    def __str__(self) -> str:
        if self.bounds is None:
            return f"Integral({self.integrand}, {self.var})"
        return f"Integral({self.integrand}, ({self.var}, {self.bounds[0]}, {self.bounds[1]}))"


@dataclass(frozen=True, eq=False)
class Limit(Calculus):
    """lim_{var -> approach} expr from the given direction."""
    expr: Expression
    var: Symbol
    approach: Expression
    direction: LimitDirection = LimitDirection.BOTH

    def __post_init__(self):
        self._finish()

    @property
    def children(self) -> Tuple[Expression, ...]:
        return (self.expr, self.approach)

    def _compute_hash(self) -> int:
        return node_hash(HashTag.LIMIT, (self.expr._hash, self.var._hash, self.approach._hash),
                         extra=self.direction.value)

    def _compute_key(self) -> tuple:
        return (RANK_CALCULUS, 2, self.expr.sort_key, self.var.sort_key,
                self.approach.sort_key, self.direction.value)

    def _same_payload(self, other) -> bool:
        return (self.expr == other.expr and self.var == other.var
                and self.approach == other.approach and self.direction is other.direction)

    @property
    def free_symbols(self) -> FrozenSet[Symbol]:
        return (self.expr.free_symbols - {self.var}) | self.approach.free_symbols

    def __str__(self) -> str:
        return f"Limit({self.expr}, {self.var}, {self.approach}, {self.direction.value})"


# === Side conditions recorded by the simplifier ===

@dataclass(frozen=True)
class SideCondition:
    """Assumption a rewrite relied on, e.g. x != 0 for x/x -> 1."""
    expr: Expression
    relation: str = "!="
    value: Expression = ZERO

    def __str__(self) -> str:
        return f"{self.expr} {self.relation} {self.value}"


def cancelled_bases(expr: Expression) -> FrozenSet[Expression]:
    """Bases whose reciprocal pairs cancelled while ``expr`` was built."""
    return expr.__dict__.get('_cancelled', frozenset())


def with_cancelled(expr: Expression, bases: FrozenSet[Expression]) -> Expression:
    """``expr`` carrying ``bases`` as cancellation provenance.

    Provenance is invisible to equality, hashing and ordering. Interned
    constants are returned unmarked so they stay singletons.
    """
    if not bases or isinstance(expr, Constant):
        return expr
    existing = cancelled_bases(expr)
    if bases <= existing:
        return expr
    marked = copy.copy(expr)
    _set(marked, '_cancelled', existing | bases)
    return marked


# === Type Utilities ===

def as_expression(value) -> Expression:
    """Coerce Python numbers to Number nodes; pass expressions through."""
    if isinstance(value, Expression):
        return value
    if isinstance(value, (numbers.Rational, numbers.Real)):
        if isinstance(value, float) and (value != value):
            return UNDEFINED
        if isinstance(value, float) and value in (float('inf'), float('-inf')):
            return INFINITY if value > 0 else NEG_INFINITY
        return Number(value)
    raise TypeError(f"Cannot convert {type(value).__name__} to Expression")


def is_numeric_complex(expr: Expression) -> bool:
    return isinstance(expr, Complex) and expr.is_numeric()


def get_expr_type_name(expr: Expression) -> str:
    """Get the variant name of an expression."""
    return type(expr).__name__
