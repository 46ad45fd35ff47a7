"""Integer and angle utilities for the nonce audit."""

from __future__ import annotations

import math
from collections.abc import Iterable
from fractions import Fraction

import numpy as np
from numpy.typing import NDArray

from nonce_audit.utils.constants import ANGLE_BITS
from nonce_audit.utils.errors import InvalidSignature

# 2 * pi / 2^52
ANGLE_SCALE: float = 2.0 * math.pi / (1 << ANGLE_BITS)


def inverse_mod(value: int, modulus: int) -> int:
    """Inverse of value modulo modulus.

    Raises InvalidSignature when gcd(value, modulus) != 1, which includes
    value == 0 mod modulus.
    """
    if modulus <= 0:
        raise ValueError(f"Modulus must be positive, got {modulus}")
    if math.gcd(value % modulus, modulus) != 1:
        raise InvalidSignature(
            f"{value:#x} is not invertible modulo {modulus:#x}"
        )
    return pow(value, -1, modulus)


def unit_circle_angles(
    values: Iterable[int], modulus: int, multiplier: int = 1
) -> NDArray[np.float64]:
    """Map each value to the angle 2*pi*(value*multiplier mod modulus)/modulus.

    The quotient is taken in integer arithmetic with ANGLE_BITS bits of
    fraction before converting to float, so orders up to 1024 bits keep the
    fractional part of the angle.
    """
    fractions = [
        ((v * multiplier % modulus) << ANGLE_BITS) // modulus for v in values
    ]
    return np.asarray(fractions, dtype=np.float64) * ANGLE_SCALE


def mean_of_ints(values: Iterable[int]) -> tuple[int, Fraction]:
    """Count and exact mean of arbitrary-precision integers.

    The mean stays a Fraction; scalars of 1024 bits and more do not fit a float.
    """
    total = 0
    count = 0
    for v in values:
        total += v
        count += 1
    if count == 0:
        return 0, Fraction(0)
    return count, Fraction(total, count)
