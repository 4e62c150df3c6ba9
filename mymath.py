"""
Modular arithmetic helpers for the ID permutation.
"""
from typing import Tuple


class NotInvertibleError(ValueError):
    """Raised when a multiplier shares a factor with the modulus."""

    def __init__(self, a: int, n: int, gcd: int):
        self.a = a
        self.n = n
        self.gcd = gcd
        super().__init__(f"{a} has no inverse modulo {n} (gcd is {gcd})")


def extended_gcd(a: int, b: int) -> Tuple[int, int, int]:
    """
    Returns (g, x, y) such that a*x + b*y == g == gcd(a, b).
    """
    old_r, r = a, b
    old_x, x = 1, 0
    old_y, y = 0, 1
    while r:
        q = old_r // r
        old_r, r = r, old_r - q * r
        old_x, x = x, old_x - q * x
        old_y, y = y, old_y - q * y
    return old_r, old_x, old_y


def mod_inverse(a: int, n: int) -> int:
    """
    Computes the multiplicative inverse of `a` modulo `n`, in [0, n-1].

    Inputs outside [0, n-1] are rejected rather than reduced.
    """
    if n < 2:
        raise ValueError("Modulus must be at least 2")
    if not 0 <= a < n:
        raise ValueError(f"Multiplier {a} is outside [0, {n - 1}]")

    g, x, _ = extended_gcd(a, n)
    if g != 1:
        raise NotInvertibleError(a, n, g)
    # The coefficient can come back negative.
    return x % n
