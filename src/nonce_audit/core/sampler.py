"""Sample collection and randomness probes over a signing capability.

The signer is any callable sign(message) -> DER bytes. Samples are
collected in index order so timings and nonces stay paired.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from nonce_audit.core.der_codec import extract_r
from nonce_audit.core.nonce_recovery import NonceRecoverer
from nonce_audit.utils.constants import (
    DETERMINISM_MESSAGE,
    NUM_PROBE_SAMPLES,
    PROBE_MESSAGE,
    RANDOMIZATION_MESSAGE,
)
from nonce_audit.utils.errors import StatisticalAnomaly
from nonce_audit.utils.types import Sample

logger = logging.getLogger(__name__)

SignFunction = Callable[[bytes], bytes]


def is_deterministic(sign: SignFunction) -> bool:
    """True if signing the same message twice gives the same signature.

    A randomized scheme can in principle repeat a signature, but never does
    in practice.
    """
    first = sign(DETERMINISM_MESSAGE)
    second = sign(DETERMINISM_MESSAGE)
    return first == second


def messages_to_sign(count: int, deterministic: bool) -> list[bytes]:
    """Messages for count signatures.

    Deterministic schemes get distinct 4-byte counters. Randomized schemes
    sign the same message every time, which makes a bias easier to see.
    """
    if deterministic:
        return [i.to_bytes(4, "big") for i in range(count)]
    return [PROBE_MESSAGE] * count


def collect_samples(
    sign: SignFunction,
    recoverer: NonceRecoverer,
    messages: list[bytes],
    clock: Callable[[], int] | None = None,
) -> list[Sample]:
    """Sign each message and recover its nonce.

    With a clock, the elapsed time of each sign call is recorded. Only the
    sign call is timed; digesting and nonce recovery happen outside.
    """
    samples = []
    for index, message in enumerate(messages):
        if clock is not None:
            start = clock()
            signature = sign(message)
            elapsed = clock() - start
        else:
            signature = sign(message)
            elapsed = None
        challenge, nonce = recoverer.recover_from_message(signature, message)
        samples.append(
            Sample(
                index=index,
                message=message,
                signature=signature,
                challenge=challenge,
                nonce=nonce,
                elapsed_ns=elapsed,
            )
        )
    logger.info("Collected %d samples (timed=%s)", len(samples), clock is not None)
    return samples


def check_distinct_r(
    sign: SignFunction,
    messages: list[bytes] | None = None,
    count: int = NUM_PROBE_SAMPLES,
) -> set[int]:
    """Every signature must use a fresh r.

    Holds for randomized schemes with a fixed message and for deterministic
    schemes with distinct messages.
    """
    if messages is None:
        messages = messages_to_sign(count, is_deterministic(sign))
    seen: set[int] = set()
    for i, message in enumerate(messages):
        r = extract_r(sign(message))
        if r in seen:
            raise StatisticalAnomaly(
                "distinct_r",
                value=i,
                threshold=len(messages),
                message=f"Same r computed twice after {i + 1} signatures",
                details={"r": r, "signatures": i + 1},
            )
        seen.add(r)
    return seen


def check_randomized(
    sign: SignFunction,
    count: int = NUM_PROBE_SAMPLES,
    message: bytes = RANDOMIZATION_MESSAGE,
) -> set[bytes]:
    """A randomized scheme (e.g. RSA-PSS) must never repeat a signature."""
    seen: set[bytes] = set()
    for i in range(count):
        signature = sign(message)
        if signature in seen:
            raise StatisticalAnomaly(
                "randomized",
                value=i,
                threshold=count,
                message=f"Same signature computed twice after {i + 1} signatures",
                details={"signature": signature.hex(), "signatures": i + 1},
            )
        seen.add(signature)
    return seen
