"""Tests for nonce recovery and challenge derivation."""

import hashlib
import random

import pytest
from ecdsa import BRAINPOOLP256r1, NIST256p, NIST521p, SigningKey
from ecdsa.util import sigencode_der

from nonce_audit.core.nonce_recovery import (
    NonceRecoverer,
    challenge_from_digest,
    hash_name_for_algorithm,
    recover_nonce,
)
from nonce_audit.utils.errors import InvalidSignature
from nonce_audit.utils.types import CurveParameters, Signature


def forge(k, h, x, r, n):
    """Signature equation s = k^-1 (h + x*r) mod n for an arbitrary r."""
    return Signature(r=r, s=pow(k, -1, n) * (h + x * r) % n)


@pytest.fixture
def p256():
    return CurveParameters.from_order(NIST256p.order)


class TestRecoverNonce:
    def test_algebraic_inverse(self, p256):
        rng = random.Random(3)
        n = p256.order
        for _ in range(25):
            k, x, r = rng.randrange(1, n), rng.randrange(1, n), rng.randrange(1, n)
            h = rng.getrandbits(256)
            assert recover_nonce(forge(k, h, x, r, n), h, x, p256) == k

    def test_unreduced_challenge(self, p256):
        # h larger than n is used as-is; the result is still reduced mod n
        n = p256.order
        h = (1 << 300) + 17
        sig = forge(42, h, 7, 99, n)
        assert recover_nonce(sig, h, 7, p256) == 42

    def test_zero_s_rejected(self, p256):
        with pytest.raises(InvalidSignature):
            recover_nonce(Signature(r=1, s=0), 5, 3, p256)

    def test_s_sharing_factor_with_composite_order(self):
        curve = CurveParameters.from_order(15)
        with pytest.raises(InvalidSignature):
            recover_nonce(Signature(r=2, s=5), 1, 1, curve)

    def test_invalid_signature_is_arithmetic_error(self):
        curve = CurveParameters.from_order(15)
        with pytest.raises(ArithmeticError):
            recover_nonce(Signature(r=2, s=6), 1, 1, curve)


class TestWithPythonEcdsa:
    def test_recovers_explicit_nonce(self):
        sk = SigningKey.generate(curve=NIST256p)
        curve = CurveParameters.from_order(NIST256p.order)
        recoverer = NonceRecoverer(sk.privkey.secret_multiplier, curve, "sha256")
        for k in (1, 12345, NIST256p.order - 1, 1 << 200):
            message = b"message %d" % k
            signature = sk.sign(message, hashfunc=hashlib.sha256, sigencode=sigencode_der, k=k)
            _, nonce = recoverer.recover_from_message(signature, message)
            assert nonce == k

    def test_p521_with_sha512(self):
        sk = SigningKey.generate(curve=NIST521p)
        curve = CurveParameters.from_order(NIST521p.order)
        recoverer = NonceRecoverer(sk.privkey.secret_multiplier, curve, "sha512")
        k = (1 << 519) + 3
        signature = sk.sign(b"abc", hashfunc=hashlib.sha512, sigencode=sigencode_der, k=k)
        assert recoverer.recover(signature, recoverer.challenge(b"abc")) == k

    def test_truncation_matches_truncating_signer(self):
        # python-ecdsa truncates a 512-bit digest to the 256-bit order
        sk = SigningKey.generate(curve=BRAINPOOLP256r1)
        curve = CurveParameters.from_order(BRAINPOOLP256r1.order)
        k = 987654321
        signature = sk.sign(b"msg", hashfunc=hashlib.sha512, sigencode=sigencode_der, k=k)

        truncating = NonceRecoverer(
            sk.privkey.secret_multiplier, curve, "sha512", truncate_digest=True
        )
        assert truncating.recover(signature, truncating.challenge(b"msg")) == k

        full = NonceRecoverer(sk.privkey.secret_multiplier, curve, "sha512")
        assert full.recover(signature, full.challenge(b"msg")) != k

    def test_accepts_decoded_signature(self, p256):
        recoverer = NonceRecoverer(5, p256)
        sig = forge(77, 1000, 5, 31, p256.order)
        assert recoverer.recover(sig, 1000) == 77


class TestChallenge:
    def test_full_digest_by_default(self, p256):
        digest = hashlib.sha512(b"x").digest()
        assert challenge_from_digest(digest, p256) == int.from_bytes(digest, "big")

    def test_truncated_to_order_bits(self, p256):
        digest = hashlib.sha512(b"x").digest()
        expected = int.from_bytes(digest, "big") >> 256
        assert challenge_from_digest(digest, p256, truncate=True) == expected

    def test_short_digest_not_truncated(self):
        curve = CurveParameters.from_order(NIST521p.order)
        digest = hashlib.sha256(b"x").digest()
        assert challenge_from_digest(digest, curve, truncate=True) == int.from_bytes(digest, "big")

    def test_truncate_needs_curve(self):
        with pytest.raises(ValueError):
            challenge_from_digest(b"\x01", truncate=True)

    def test_recoverer_challenge(self, p256):
        recoverer = NonceRecoverer(1, p256, "sha384")
        expected = int.from_bytes(hashlib.sha384(b"hello").digest(), "big")
        assert recoverer.challenge(b"hello") == expected


class TestHashName:
    @pytest.mark.parametrize(
        "algorithm, expected",
        [
            ("SHA256WithECDSA", "sha256"),
            ("SHA512WithECDSA", "sha512"),
            ("SHA256WithECDDSA", "sha256"),
            ("SHA-384withECDSA", "sha384"),
            ("SHA512/256WithECDSA", "sha512_256"),
            ("SHA3-256WithECDSA", "sha3_256"),
            ("ECDSA", ""),
        ],
    )
    def test_names(self, algorithm, expected):
        assert hash_name_for_algorithm(algorithm) == expected


class TestCurveParameters:
    def test_bit_length(self, p256):
        assert p256.bit_length == 256
        assert p256.half_order == NIST256p.order >> 1

    def test_non_positive_order(self):
        with pytest.raises(ValueError):
            CurveParameters.from_order(0)
