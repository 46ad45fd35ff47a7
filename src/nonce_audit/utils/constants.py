"""Calibrated thresholds and schedules for the nonce audit."""

# -- Bit distribution --
NUM_BIAS_SAMPLES: int = 1024
# P(count < 410 or count > 614) < 2^-32 for 1024 fair coin flips
MIN_BIT_COUNT: int = 410
FALSE_POSITIVE_RATE: float = 2.0 ** -32

# -- Characteristic function bias --
BIAS_THRESHOLD: float = 5.0  # P(|Z| > 5) ~ e^-25
# 2^b - 1 multipliers: byte, word, dword and qword correlation
BIAS_MULTIPLIER_BITS: tuple[int, ...] = (8, 16, 32, 64)
# Angle scaling: (r << ANGLE_BITS) // n stays exact in a float64 mantissa
ANGLE_BITS: int = 52

# -- Timing --
NUM_TIMING_SAMPLES: int = 50000
SIGMA_THRESHOLD: float = 7.0  # false positive < 10^-10
CUTOFF_DIVISOR: int = 2
MIN_CUTOFF_INDEX: int = 10
MAX_CLOCK_RESOLUTION_NS: int = 1000

# -- Probes --
NUM_PROBE_SAMPLES: int = 8
PROBE_MESSAGE: bytes = bytes(4)
RANDOMIZATION_MESSAGE: bytes = bytes(8)
DETERMINISM_MESSAGE: bytes = bytes(1)

DEFAULT_ALGORITHM: str = "SHA256WithECDSA"
DEFAULT_CURVE: str = "secp256r1"
