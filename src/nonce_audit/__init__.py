"""Statistical nonce-bias and timing side-channel audit for ECDSA signers."""

__version__ = "0.1.0"
