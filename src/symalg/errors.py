"""
Error classes for the symalg expression algebra and polynomial kernel.

Arithmetic never raises: domain failures are encoded as the Undefined
constant inside expressions. Structural operations (polynomial extraction,
division, modular GCD) raise the typed errors below.
"""

from enum import Enum


class ErrorKind(Enum):
    """Classification of core failures."""
    UNDEFINED = "undefined"
    NOT_A_POLYNOMIAL = "not_a_polynomial"
    DIVISION_BY_ZERO = "division_by_zero"
    MODULAR_FAILURE = "modular_failure"
    CONVERGENCE_FAILED = "convergence_failed"
    OVERFLOW_IN_FIELD = "overflow_in_field"
    PATTERN = "pattern"
    UNSUPPORTED = "unsupported"
    FATAL = "fatal"


class SymalgError(Exception):
    """Base error for the core."""

    kind = ErrorKind.FATAL

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"[{self.kind.value}] {message}")


class NotAPolynomialError(SymalgError):
    """Expression cannot be viewed as a polynomial in the requested variable."""

    kind = ErrorKind.NOT_A_POLYNOMIAL

    def __init__(self, message: str, expr=None):
        self.expr = expr
        super().__init__(message)


class DivisionByZeroError(SymalgError, ZeroDivisionError):
    """Polynomial or field division by zero."""

    kind = ErrorKind.DIVISION_BY_ZERO

    def __init__(self, message: str = "Division by zero"):
        super().__init__(message)


class ModularFailureError(SymalgError):
    """Modular algorithm could not produce a result."""

    kind = ErrorKind.MODULAR_FAILURE


class PrimePoolExhaustedError(ModularFailureError):
    """Every prime in the pool was consumed without a verified result."""

    def __init__(self, primes_used: int):
        self.primes_used = primes_used
        super().__init__(f"Prime pool exhausted after {primes_used} primes")


class LeadingCoefficientVanishedError(ModularFailureError):
    """Every pool prime divides one of the leading coefficients."""

    def __init__(self, lc_f: int, lc_g: int):
        self.lc_f = lc_f
        self.lc_g = lc_g
        super().__init__(
            f"Leading coefficients {lc_f}, {lc_g} vanish modulo every pool prime"
        )


class NTTUnsupportedError(ModularFailureError):
    """No root of unity of the required order exists for the modulus."""

    def __init__(self, modulus: int, size: int):
        self.modulus = modulus
        self.size = size
        super().__init__(f"No NTT of size {size} modulo {modulus}")


class ConvergenceFailedError(SymalgError):
    """Iterative numeric method did not converge."""

    kind = ErrorKind.CONVERGENCE_FAILED


class OverflowInFieldError(SymalgError):
    """Modulus too large for the 64-bit field element representation."""

    kind = ErrorKind.OVERFLOW_IN_FIELD

    def __init__(self, modulus: int):
        self.modulus = modulus
        super().__init__(f"Modulus {modulus} does not fit in 62 bits")


class TrialDivisionError(SymalgError):
    """Candidate GCD failed trial division past the coefficient bound."""

    kind = ErrorKind.FATAL

    def __init__(self, bound: int, crt_modulus: int):
        self.bound = bound
        self.crt_modulus = crt_modulus
        super().__init__(
            f"Trial division failed with CRT modulus {crt_modulus} above bound {bound}"
        )


class UnboundWildcardError(SymalgError, KeyError):
    """Substitution template names a wildcard the bindings do not contain."""

    kind = ErrorKind.PATTERN

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unbound wildcard in template: {name}")


class UnsupportedError(SymalgError, NotImplementedError):
    """Operation outside the supported domain, such as a multivariate GCD."""

    kind = ErrorKind.UNSUPPORTED

    def __init__(self, message: str, symbols=()):
        self.symbols = tuple(symbols)
        super().__init__(message)
