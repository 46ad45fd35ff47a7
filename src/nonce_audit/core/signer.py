"""python-ecdsa backed signer used as the implementation under audit."""

from __future__ import annotations

import functools
import hashlib
from collections.abc import Callable

from ecdsa import (
    BRAINPOOLP256r1,
    NIST224p,
    NIST256p,
    NIST384p,
    NIST521p,
    SECP256k1,
    SigningKey,
)
from ecdsa.curves import Curve
from ecdsa.util import sigencode_der

from nonce_audit.core.nonce_recovery import hash_name_for_algorithm
from nonce_audit.utils.types import CurveParameters

CURVES: dict[str, Curve] = {
    "secp224r1": NIST224p,
    "secp256r1": NIST256p,
    "secp384r1": NIST384p,
    "secp521r1": NIST521p,
    "secp256k1": SECP256k1,
    "brainpoolP256r1": BRAINPOOLP256r1,
}

# Maps the curve order to the nonce the signer should use.
NonceSource = Callable[[int], int]


def curve_by_name(name: str) -> Curve:
    try:
        return CURVES[name]
    except KeyError:
        raise ValueError(
            f"Unsupported curve {name!r}, expected one of {sorted(CURVES)}"
        ) from None


def _hashfunc(hash_name: str) -> Callable:
    if hasattr(hashlib, hash_name):
        return getattr(hashlib, hash_name)
    return functools.partial(hashlib.new, hash_name)


class EcdsaSigner:
    """Sign messages with a python-ecdsa SigningKey and emit DER signatures.

    deterministic=True uses RFC 6979 nonces. A nonce_source replaces the
    library's random nonce, which lets tests model a weak implementation.
    """

    def __init__(
        self,
        signing_key: SigningKey,
        hash_name: str = "sha256",
        deterministic: bool = False,
        nonce_source: NonceSource | None = None,
        algorithm: str | None = None,
    ) -> None:
        if deterministic and nonce_source is not None:
            raise ValueError("A nonce source cannot be combined with deterministic signing")
        self._key = signing_key
        self.hash_name = hash_name
        self.algorithm = algorithm or f"{hash_name.upper()}WithECDSA"
        self.deterministic = deterministic
        self.nonce_source = nonce_source
        self._hashfunc = _hashfunc(hash_name)

    @classmethod
    def generate(
        cls,
        curve: str = "secp256r1",
        algorithm: str = "SHA256WithECDSA",
        deterministic: bool = False,
        nonce_source: NonceSource | None = None,
    ) -> EcdsaSigner:
        """Fresh key pair on the named curve, hash taken from the algorithm name."""
        hash_name = hash_name_for_algorithm(algorithm)
        if not hash_name:
            raise ValueError(f"Cannot derive a hash from algorithm {algorithm!r}")
        key = SigningKey.generate(curve=curve_by_name(curve))
        return cls(key, hash_name, deterministic, nonce_source, algorithm=algorithm)

    @property
    def curve_parameters(self) -> CurveParameters:
        return CurveParameters.from_order(self._key.curve.order)

    @property
    def private_scalar(self) -> int:
        return self._key.privkey.secret_multiplier

    @property
    def curve_name(self) -> str:
        """Standard name of the key's curve, e.g. secp256r1."""
        curve = self._key.curve
        for name, known in CURVES.items():
            if known == curve:
                return name
        return curve.name

    def sign(self, message: bytes) -> bytes:
        if self.deterministic:
            return self._key.sign_deterministic(
                message, hashfunc=self._hashfunc, sigencode=sigencode_der
            )
        k = None
        if self.nonce_source is not None:
            k = self.nonce_source(self._key.curve.order)
        return self._key.sign(
            message, hashfunc=self._hashfunc, sigencode=sigencode_der, k=k
        )

    def __call__(self, message: bytes) -> bytes:
        return self.sign(message)

    def __repr__(self) -> str:
        mode = "deterministic" if self.deterministic else "randomized"
        return f"EcdsaSigner({self.curve_name}, {self.hash_name}, {mode})"
