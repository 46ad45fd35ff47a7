"""Dataclass definitions for the nonce audit."""

from __future__ import annotations

from dataclasses import dataclass, field

from nonce_audit.utils.constants import (
    BIAS_MULTIPLIER_BITS,
    BIAS_THRESHOLD,
    CUTOFF_DIVISOR,
    MIN_CUTOFF_INDEX,
    NUM_BIAS_SAMPLES,
    NUM_TIMING_SAMPLES,
    SIGMA_THRESHOLD,
)
from nonce_audit.utils.errors import StatisticalAnomaly


@dataclass
class AuditConfig:
    """Detector settings for one audit run.

    The curve, hash and nonce mode belong to the signer under audit.
    min_count=None derives the bit-count bound from the sample size.
    """

    num_samples: int = NUM_BIAS_SAMPLES
    timing_samples: int = NUM_TIMING_SAMPLES
    min_count: int | None = None
    bias_threshold: float = BIAS_THRESHOLD
    bias_multiplier_bits: tuple[int, ...] = BIAS_MULTIPLIER_BITS
    sigma_threshold: float = SIGMA_THRESHOLD
    cutoff_divisor: int = CUTOFF_DIVISOR
    min_cutoff_index: int = MIN_CUTOFF_INDEX
    truncate_digest: bool = False


@dataclass(frozen=True)
class CurveParameters:
    """Group order of the signing key's curve."""

    order: int
    bit_length: int

    @classmethod
    def from_order(cls, order: int) -> CurveParameters:
        if order <= 0:
            raise ValueError(f"Curve order must be positive, got {order}")
        return cls(order=order, bit_length=order.bit_length())

    @property
    def half_order(self) -> int:
        return self.order >> 1


@dataclass(frozen=True)
class Signature:
    """The (r, s) pair of an ECDSA signature."""

    r: int
    s: int


@dataclass
class Sample:
    """Raw material and recovered nonce from one signing operation."""

    index: int
    message: bytes
    signature: bytes
    challenge: int
    nonce: int
    elapsed_ns: int | None = None


@dataclass(frozen=True)
class BiasResult:
    """Characteristic-function bias score for one multiplier."""

    score: float
    multiplier: int
    label: str = ""


@dataclass(frozen=True)
class TimingPartition:
    """Nonce statistics of the samples at or below one timing cutoff."""

    cutoff: int | float
    count: int
    average: int
    relative_average: float
    z_score: float


@dataclass(frozen=True)
class BitCounts:
    """LSB and MSB occurrence counts over a nonce sample set."""

    total: int
    lsb: int
    msb: int


@dataclass
class AuditReport:
    """Evidence gathered by one audit run."""

    curve: str
    algorithm: str
    num_samples: int = 0
    deterministic: bool = False
    nonces: list[int] = field(default_factory=list)
    bit_counts: BitCounts | None = None
    bias_results: list[BiasResult] = field(default_factory=list)
    timing_partitions: list[TimingPartition] = field(default_factory=list)
    max_z_score: float | None = None
    timing_skipped: str | None = None
    anomalies: list[StatisticalAnomaly] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.anomalies

    def raise_for_anomalies(self) -> None:
        """Raise the first recorded anomaly, if any."""
        if self.anomalies:
            raise self.anomalies[0]

    def as_rows(self) -> list[tuple[str, object]]:
        """Flatten the report into (metric, value) rows for export."""
        rows: list[tuple[str, object]] = [
            ("curve", self.curve),
            ("algorithm", self.algorithm),
            ("num_samples", self.num_samples),
            ("deterministic", self.deterministic),
        ]
        if self.bit_counts is not None:
            rows.append(("lsb_count", self.bit_counts.lsb))
            rows.append(("msb_count", self.bit_counts.msb))
        for result in self.bias_results:
            rows.append((f"bias_{result.label}", result.score))
        if self.max_z_score is not None:
            rows.append(("timing_max_sigma", self.max_z_score))
        if self.timing_skipped:
            rows.append(("timing_skipped", self.timing_skipped))
        rows.append(("anomalies", len(self.anomalies)))
        return rows
