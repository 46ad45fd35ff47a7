"""Recover the ephemeral ECDSA nonce from a signature and the private key.

Test-only instrumentation: it needs the signer's private scalar, so it can
only be used by an audit that owns the key. It exposes the ground-truth
nonce to the bias detectors; it is not an attack.
"""

from __future__ import annotations

import hashlib

from nonce_audit.core.der_codec import decode_signature
from nonce_audit.utils.math_helpers import inverse_mod
from nonce_audit.utils.types import CurveParameters, Signature


def hash_name_for_algorithm(algorithm: str) -> str:
    """Digest name used by a JCA-style signature algorithm name.

    "SHA256WithECDSA" -> "sha256", "SHA512/256WithECDSA" -> "sha512_256",
    "SHA3-256WithECDSA" -> "sha3_256". Returns "" when there is no "WITH".
    """
    idx = algorithm.upper().find("WITH")
    if idx <= 0:
        return ""
    name = algorithm[:idx].lower()
    if name.startswith("sha3"):
        return name.replace("-", "_")
    return name.replace("-", "").replace("/", "_")


def digest_message(message: bytes, hash_name: str) -> bytes:
    return hashlib.new(hash_name, message).digest()


def challenge_from_digest(
    digest: bytes,
    curve: CurveParameters | None = None,
    truncate: bool = False,
) -> int:
    """Interpret a digest as the unsigned big-endian challenge h.

    By default the full digest is used even when it is longer than the
    order, which is what several providers do. With truncate=True the
    leftmost curve.bit_length bits are kept, as FIPS 186-4 prescribes.
    """
    h = int.from_bytes(digest, "big")
    if truncate:
        if curve is None:
            raise ValueError("Truncating the digest needs the curve parameters")
        excess = len(digest) * 8 - curve.bit_length
        if excess > 0:
            h >>= excess
    return h


def recover_nonce(
    signature: Signature,
    challenge: int,
    private_scalar: int,
    curve: CurveParameters,
) -> int:
    """Solve s = k^-1 (h + x*r) mod n for k.

    Raises InvalidSignature if s has no inverse modulo n.
    """
    n = curve.order
    s_inv = inverse_mod(signature.s, n)
    return (private_scalar * signature.r + challenge) * s_inv % n


class NonceRecoverer:
    """Recover nonces for signatures made with one private key."""

    def __init__(
        self,
        private_scalar: int,
        curve: CurveParameters,
        hash_name: str = "sha256",
        truncate_digest: bool = False,
    ) -> None:
        self._private_scalar = private_scalar
        self.curve = curve
        self.hash_name = hash_name
        self.truncate_digest = truncate_digest

    def challenge(self, message: bytes) -> int:
        digest = digest_message(message, self.hash_name)
        return challenge_from_digest(digest, self.curve, self.truncate_digest)

    def recover(self, signature: bytes | Signature, challenge: int) -> int:
        if not isinstance(signature, Signature):
            signature = decode_signature(signature)
        return recover_nonce(signature, challenge, self._private_scalar, self.curve)

    def recover_from_message(self, signature: bytes, message: bytes) -> tuple[int, int]:
        """Return (challenge, nonce) for a signature over message."""
        h = self.challenge(message)
        return h, self.recover(signature, h)

    def __repr__(self) -> str:
        return f"NonceRecoverer(order_bits={self.curve.bit_length}, hash={self.hash_name})"
