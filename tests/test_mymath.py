import os
import sys

import pytest

# Add the project root to sys.path to resolve module imports correctly
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from mymath import NotInvertibleError, extended_gcd, mod_inverse

MAX_ID = 2**31


def test_extended_gcd_bezout_identity():
    """Tests that the returned coefficients satisfy a*x + b*y == gcd."""
    for a, b in [(240, 46), (17, 3120), (1580030173, MAX_ID), (0, 9), (12, 0)]:
        g, x, y = extended_gcd(a, b)
        assert a * x + b * y == g
    assert extended_gcd(240, 46)[0] == 2


def test_mod_inverse_known_values():
    """Tests inverses that can be checked by hand."""
    assert mod_inverse(3, 16) == 11
    assert mod_inverse(17, 3120) == 2753
    assert mod_inverse(1, MAX_ID) == 1


def test_mod_inverse_is_normalized():
    """Tests that the inverse is always in [0, n-1] and actually inverts."""
    for prime in [3, 7, 65537, 999999937, 1580030173, MAX_ID - 1]:
        inverse = mod_inverse(prime, MAX_ID)
        assert 0 <= inverse < MAX_ID
        assert (prime * inverse) % MAX_ID == 1


def test_mod_inverse_rejects_common_factor():
    """Tests that an even multiplier has no inverse modulo a power of two."""
    with pytest.raises(NotInvertibleError) as exc_info:
        mod_inverse(2, MAX_ID)
    assert exc_info.value.gcd == 2
    assert exc_info.value.n == MAX_ID

    with pytest.raises(NotInvertibleError):
        mod_inverse(6, 9)


def test_mod_inverse_rejects_zero():
    """Tests that zero is reported as not invertible."""
    with pytest.raises(NotInvertibleError):
        mod_inverse(0, MAX_ID)


def test_mod_inverse_rejects_out_of_range_input():
    """Tests that inputs are never silently reduced modulo n."""
    with pytest.raises(ValueError):
        mod_inverse(MAX_ID, MAX_ID)
    with pytest.raises(ValueError):
        mod_inverse(MAX_ID + 3, MAX_ID)
    with pytest.raises(ValueError):
        mod_inverse(-3, MAX_ID)
    with pytest.raises(ValueError):
        mod_inverse(0, 1)


def test_not_invertible_is_a_value_error():
    assert issubclass(NotInvertibleError, ValueError)
