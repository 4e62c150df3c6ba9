"""
A simple integer obfuscation module to prevent sequential scraping of IDs.

This uses a prime multiplication and XOR to permute integers within a
2**bits space (31 bits by default). It is not cryptographically secure but is
more than sufficient to make database IDs appear random and non-sequential.

    encoded = ((n * prime) mod 2**bits) XOR mask
    n       = ((encoded XOR mask) * mod_inverse) mod 2**bits

All parameters live in an immutable `Seed`, which is passed explicitly so that
several independent configurations can coexist in one process.
"""
import logging
import secrets
import threading
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from mymath import mod_inverse

logger = logging.getLogger(__name__)

# We operate within a 31-bit integer space (positive integers for a 32-bit signed int).
DEFAULT_BITS = 31
MIN_BITS = 2
# Keeps every id * prime product within 64 bits.
MAX_BITS = 32

# Candidates must fit a signed 64-bit integer before any domain check.
CANDIDATE_LIMIT = 2**63


class ObfuscationError(ValueError):
    """Base class for obfuscation errors."""


class OutOfDomainError(ObfuscationError):
    """Raised when a value falls outside [0, max_id)."""

    def __init__(self, value: int, max_id: int):
        self.value = value
        self.max_id = max_id
        super().__init__(f"{value} is outside the obfuscation domain [0, {max_id - 1}]")


class PrecisionOverflowError(ObfuscationError):
    """Raised when a candidate prime cannot be represented without loss. Retry with another candidate."""


class Seed(BaseModel):
    """
    Immutable (prime, mod_inverse, mask) triple parameterizing one permutation.

    The prime/inverse relationship is checked on construction; a mismatched
    pair would otherwise decode to garbage without any error.
    """
    model_config = ConfigDict(frozen=True, strict=True)

    prime: int
    mod_inverse: int
    mask: int
    bits: int = DEFAULT_BITS

    @model_validator(mode="after")
    def check_parameters(self) -> "Seed":
        if not MIN_BITS <= self.bits <= MAX_BITS:
            raise ValueError(f"bits must be between {MIN_BITS} and {MAX_BITS}")
        max_id = self.max_id
        if not 0 < self.prime < max_id:
            raise ValueError(f"prime must be in [1, {max_id - 1}]")
        if not 0 < self.mod_inverse < max_id:
            raise ValueError(f"mod_inverse must be in [1, {max_id - 1}]")
        if not 0 <= self.mask < max_id:
            raise ValueError(f"mask must be in [0, {max_id - 1}]")
        if (self.prime * self.mod_inverse) % max_id != 1:
            raise ValueError("mod_inverse is not the inverse of prime for this domain")
        return self

    @property
    def max_id(self) -> int:
        """Domain modulus: one more than the largest obfuscatable value."""
        return 1 << self.bits

    @classmethod
    def from_prime(cls, prime: int, mask: int, bits: int = DEFAULT_BITS) -> "Seed":
        """Builds a seed from known-good values, deriving the inverse."""
        return cls(prime=prime, mod_inverse=mod_inverse(prime, 1 << bits), mask=mask, bits=bits)

    def as_record(self) -> dict:
        return {"prime": self.prime, "mod_inverse": self.mod_inverse, "mask": self.mask, "bits": self.bits}


def _check_domain(value: int, max_id: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"Expected an integer, got {type(value).__name__}")
    if not 0 <= value < max_id:
        raise OutOfDomainError(value, max_id)


def encode(seed: Seed, n: int) -> int:
    """Scrambles a sequential integer ID to make it appear random."""
    max_id = seed.max_id
    _check_domain(n, max_id)
    return ((n * seed.prime) % max_id) ^ seed.mask


def decode(seed: Seed, n: int) -> int:
    """Reverses the scrambling to retrieve the original sequential ID."""
    max_id = seed.max_id
    _check_domain(n, max_id)
    return ((n ^ seed.mask) * seed.mod_inverse) % max_id


class Obfuscator:
    """
    Shares one seed between any number of callers.

    Readers take the current seed reference once per call, so a concurrent
    `reseed` is observed either entirely or not at all.
    """

    def __init__(self, seed: Seed):
        self._seed = seed
        self._lock = threading.Lock()

    @property
    def seed(self) -> Seed:
        return self._seed

    def encode(self, n: int) -> int:
        return encode(self._seed, n)

    def decode(self, n: int) -> int:
        return decode(self._seed, n)

    def reseed(self, seed: Seed) -> Seed:
        """Publishes a new seed and returns the one it replaced."""
        with self._lock:
            previous, self._seed = self._seed, seed
        logger.info(f"Obfuscator reseeded (prime {previous.prime} -> {seed.prime})")
        return previous


def random_mask(bits: int = DEFAULT_BITS, random_source: Callable[[int], int] = secrets.randbelow) -> int:
    """Returns a uniformly random mask in [1, 2**bits - 1]. Zero is skipped as it masks nothing."""
    return random_source((1 << bits) - 1) + 1


def build_seed(
    candidate: int,
    bits: int = DEFAULT_BITS,
    mask: Optional[int] = None,
    random_source: Callable[[int], int] = secrets.randbelow,
) -> Seed:
    """
    Turns a candidate prime into a Seed.

    Raises:
        PrecisionOverflowError: the candidate does not fit the domain; pick another.
        NotInvertibleError: the candidate shares a factor with 2**bits; pick another.
    """
    if not isinstance(candidate, int) or isinstance(candidate, bool):
        raise TypeError(f"Candidate prime must be an integer, got {type(candidate).__name__}")
    if not MIN_BITS <= bits <= MAX_BITS:
        raise ValueError(f"bits must be between {MIN_BITS} and {MAX_BITS}")

    max_id = 1 << bits
    if candidate < 0 or candidate >= CANDIDATE_LIMIT:
        raise PrecisionOverflowError(f"Candidate {candidate} does not fit a signed 64-bit integer. Try another candidate.")
    if candidate >= max_id:
        raise PrecisionOverflowError(f"Candidate {candidate} does not fit the {bits}-bit domain. Try another candidate.")

    inverse = mod_inverse(candidate, max_id)
    if mask is None:
        mask = random_mask(bits, random_source)

    seed = Seed(prime=candidate, mod_inverse=inverse, mask=mask, bits=bits)
    logger.info(f"Built seed with prime {seed.prime} for a {bits}-bit domain")
    return seed
