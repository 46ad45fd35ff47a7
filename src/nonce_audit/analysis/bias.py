"""Characteristic-function bias test for integer samples modulo an order.

For samples drawn uniformly from [0, n) the normalized sum

    |sum(exp(2*pi*i * (k*m mod n) / n)) / sqrt(N)|

approximates the modulus of a standard complex normal variable Z, so
P(|Z| > L) ~ exp(-L^2) once N is well above L^2. A large score for any
multiplier m means the samples are not uniform.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from nonce_audit.utils.constants import BIAS_MULTIPLIER_BITS, BIAS_THRESHOLD
from nonce_audit.utils.errors import StatisticalAnomaly
from nonce_audit.utils.math_helpers import unit_circle_angles
from nonce_audit.utils.types import BiasResult

logger = logging.getLogger(__name__)


def bias(samples: Sequence[int], modulus: int, multiplier: int = 1) -> float:
    """Normalized magnitude of the empirical characteristic function."""
    if modulus <= 0:
        raise ValueError(f"Modulus must be positive, got {modulus}")
    if len(samples) == 0:
        raise ValueError("Cannot compute a bias over zero samples")
    angles = unit_circle_angles(samples, modulus, multiplier)
    sum_real = float(np.sum(np.cos(angles)))
    sum_imag = float(np.sum(np.sin(angles)))
    return float(np.sqrt((sum_real * sum_real + sum_imag * sum_imag) / len(samples)))


def default_multipliers(
    modulus: int, word_bits: Sequence[int] = BIAS_MULTIPLIER_BITS
) -> list[tuple[str, int]]:
    """Labelled multipliers, one per bias shape.

    1 catches k or n-k small, 2 the same shifted by one bit, n/2 the
    min(s, n-s) normalization pattern, and 2^b-1 correlated top bytes,
    words, dwords or qwords.
    """
    multipliers = [("m1", 1), ("m2", 2), ("half_order", modulus >> 1)]
    for bits in word_bits:
        multipliers.append((f"word{bits}", (1 << bits) - 1))
    return multipliers


class BiasStatistic:
    """Run the bias score over a fixed set of multipliers."""

    def __init__(
        self,
        modulus: int,
        threshold: float = BIAS_THRESHOLD,
        word_bits: Sequence[int] = BIAS_MULTIPLIER_BITS,
    ) -> None:
        self.modulus = modulus
        self.threshold = threshold
        self.multipliers = default_multipliers(modulus, word_bits)

    def score(self, samples: Sequence[int], multiplier: int, label: str = "") -> BiasResult:
        value = bias(samples, self.modulus, multiplier)
        logger.debug("bias %s (m=%#x): %.4f", label or multiplier, multiplier, value)
        return BiasResult(score=value, multiplier=multiplier, label=label)

    def scores(self, samples: Sequence[int]) -> list[BiasResult]:
        return [self.score(samples, m, label) for label, m in self.multipliers]

    def anomalies(self, results: Sequence[BiasResult]) -> list[StatisticalAnomaly]:
        found = []
        for result in results:
            if result.score > self.threshold:
                found.append(
                    StatisticalAnomaly(
                        f"bias_{result.label}",
                        value=result.score,
                        threshold=self.threshold,
                        message=(
                            f"Bias for k detected. {result.label} = {result.score:.4f}"
                        ),
                        details={"multiplier": result.multiplier},
                    )
                )
        return found

    def check(self, samples: Sequence[int]) -> list[BiasResult]:
        """Score every multiplier; raise StatisticalAnomaly on the first excess."""
        results = self.scores(samples)
        for anomaly in self.anomalies(results):
            raise anomaly
        return results
