"""Algorithm policy: externalized thresholds for the core.

Centralizes every tunable bound used by the simplifier and the polynomial
kernel so hosts can load them from a JSON file and export them for
reproducibility.
"""

import json
import logging
from typing import Dict, Any
from pathlib import Path

logger = logging.getLogger('symalg.policy')


class AlgorithmPolicy:
    """Thresholds for algorithm selection and exact-evaluation bounds.

    Supports:
    - Default initialization
    - Loading from JSON config files
    - Validation of threshold values
    - Export to dict
    """

    # Keys that must be positive integers
    INTEGER_KEYS = (
        'ntt_threshold',
        'euclidean_max_degree',
        'small_coefficient_bits',
        'prime_pool_size',
        'max_simplify_passes',
        'max_exact_power_bits',
        'max_factorial_argument',
        'max_expand_exponent',
        'berlekamp_enumeration_limit',
    )

    def __init__(self):
        """Initialize AlgorithmPolicy with default values."""
        self.multiplication = {
            'ntt_threshold': 64,          # naive below, NTT above (degree)
        }
        self.gcd = {
            'euclidean_max_degree': 10,   # classical path only below this degree
            'sparse_density': 0.3,        # modular path below this density
            'small_coefficient_bits': 32,  # classical path only for small coefficients
            'prime_pool_size': 64,        # primes available to the modular path
        }
        self.simplify = {
            'max_simplify_passes': 32,
            'max_exact_power_bits': 65536,
            'max_factorial_argument': 170,
            'max_expand_exponent': 64,
        }
        self.factor = {
            'berlekamp_enumeration_limit': 256,  # enumerate shifts up to this prime, split randomly above
        }

    # Flat accessors used by the kernel

    @property
    def ntt_threshold(self) -> int:
        return self.multiplication['ntt_threshold']

    @property
    def euclidean_max_degree(self) -> int:
        return self.gcd['euclidean_max_degree']

    @property
    def sparse_density(self) -> float:
        return self.gcd['sparse_density']

    @property
    def small_coefficient_bits(self) -> int:
        return self.gcd['small_coefficient_bits']

    @property
    def prime_pool_size(self) -> int:
        return self.gcd['prime_pool_size']

    @property
    def max_simplify_passes(self) -> int:
        return self.simplify['max_simplify_passes']

    @property
    def max_exact_power_bits(self) -> int:
        return self.simplify['max_exact_power_bits']

    @property
    def max_factorial_argument(self) -> int:
        return self.simplify['max_factorial_argument']

    @property
    def max_expand_exponent(self) -> int:
        return self.simplify['max_expand_exponent']

    @property
    def berlekamp_enumeration_limit(self) -> int:
        return self.factor['berlekamp_enumeration_limit']

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'AlgorithmPolicy':
        """Build a policy from a (possibly partial) nested dict."""
        policy = cls()
        for section in ('multiplication', 'gcd', 'simplify', 'factor'):
            if section in config_dict:
                unknown = set(config_dict[section]) - set(getattr(policy, section))
                if unknown:
                    raise ValueError(f"Unknown {section} keys: {sorted(unknown)}")
                getattr(policy, section).update(config_dict[section])
        policy.validate()
        return policy

    @classmethod
    def from_file(cls, config_path: str) -> 'AlgorithmPolicy':
        """Load AlgorithmPolicy from JSON config file.

        Args:
            config_path: Path to JSON config file

        Returns:
            AlgorithmPolicy instance with loaded values

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config format is invalid
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        try:
            with open(config_path, 'r') as f:
                config_dict = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file: {e}")

        policy = cls.from_dict(config_dict)
        logger.info(f"Loaded algorithm policy from {config_path}")
        return policy

    def to_dict(self) -> Dict[str, Any]:
        """Export policy to dict.

        Returns:
            Dictionary containing all threshold values
        """
        return {
            'multiplication': dict(self.multiplication),
            'gcd': dict(self.gcd),
            'simplify': dict(self.simplify),
            'factor': dict(self.factor),
        }

    def validate(self) -> None:
        """Validate that all thresholds are in range.

        Raises:
            ValueError: If any threshold is invalid
        """
        flat = {}
        for section in (self.multiplication, self.gcd, self.simplify, self.factor):
            flat.update(section)

        for name in self.INTEGER_KEYS:
            value = flat[name]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {type(value)}")
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        density = flat['sparse_density']
        if not isinstance(density, (int, float)) or isinstance(density, bool):
            raise ValueError(f"sparse_density must be numeric, got {type(density)}")
        if not (0 < density <= 1):
            raise ValueError(f"sparse_density must be in (0,1], got {density}")


DEFAULT_POLICY = AlgorithmPolicy()
