"""
symalg: canonical expression algebra and polynomial arithmetic kernel.

The expression layer builds immutable, hash-consed trees through canonical
constructors and simplifies them with a table-driven rule engine. The
polynomial layer provides dense polynomials over prime fields, NTT
multiplication and the modular GCD over the integers.
"""

__version__ = "0.1.0"

from .alg_types import (
    Expression, Number, Symbol, Constant, Add, Mul, Pow, Function, Complex,
    Calculus, Derivative, Integral, Limit, SideCondition,
    SymbolType, NumberKind, ConstantKind, LimitDirection,
    PI, E, I, INFINITY, NEG_INFINITY, EULER_GAMMA, UNDEFINED,
    ZERO, ONE, MINUS_ONE, TWO, HALF,
    symbols, intern_symbol, as_expression, cancelled_bases,
)
from .alg_construct import (
    integer, rational, float_, number,
    add, sub, neg, mul, div, pow, sqrt, function, complex_,
    derivative, integral, limit, map_children, canonicalize,
)
from .alg_simplify import (
    SymbolicSimplifier, SimplifyResult, RuleId, simplify, simplify_with_conditions, expand,
)
from .alg_functions import evaluate_function, evaluate_numeric, function_registry
from .alg_rewrite import (
    Pattern, Wildcard, Exact, Constraints, compile_pattern, match, substitute,
    replace, subs, RewriteRule, ExprRewriter,
)
from .poly_zp import Zp, PolyZp
from .poly_int import IntPoly, RationalPoly
from .poly_gcd import GcdAlgorithm, select_gcd_algorithm, int_poly_gcd
from .poly_factor import (
    Factorization, square_free_decomposition, berlekamp_factor, factor_polyzp,
)
from .poly_bridge import (
    expression_to_polyzp, polyzp_to_expression,
    expression_to_intpoly, intpoly_to_expression,
    expression_to_rationalpoly, rationalpoly_to_expression,
    polynomial_gcd, polynomial_div, polynomial_quo, polynomial_rem,
)
from .policy import AlgorithmPolicy, DEFAULT_POLICY
from .logging_config import setup_logging
from .errors import (
    SymalgError, ErrorKind, NotAPolynomialError, DivisionByZeroError,
    ModularFailureError, PrimePoolExhaustedError, LeadingCoefficientVanishedError,
    NTTUnsupportedError, ConvergenceFailedError, OverflowInFieldError,
    TrialDivisionError, UnboundWildcardError, UnsupportedError,
)
