"""
Batch signatures.

Batches are signed with ECDSA over P-256 and SHA-256. Signatures travel in
fixed-width form: 64 bytes, r || s, each a 32-byte big-endian integer.

Signing keys are PKCS#8 DER documents; verifying keys are uncompressed
P-256 points (65 bytes). Either may be given raw or base64 encoded.
"""

import base64

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from facilitator.errors import CryptographyError

SCALAR_SIZE = 32
SIGNATURE_SIZE = 2 * SCALAR_SIZE


def generate_signing_key() -> ec.EllipticCurvePrivateKey:
    """Generate a new P-256 signing key."""
    return ec.generate_private_key(ec.SECP256R1())


def load_signing_key(pkcs8: bytes) -> ec.EllipticCurvePrivateKey:
    """Load a P-256 signing key from PKCS#8 DER bytes."""
    key = serialization.load_der_private_key(pkcs8, password=None)
    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
        raise ValueError("signing key must be a P-256 key")
    return key


def load_signing_key_b64(b64_str: str) -> ec.EllipticCurvePrivateKey:
    return load_signing_key(base64.b64decode(b64_str))


def signing_key_to_pkcs8(key: ec.EllipticCurvePrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def load_verifying_key(point: bytes) -> ec.EllipticCurvePublicKey:
    """Load a P-256 public key from an uncompressed point."""
    return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), point)


def load_verifying_key_b64(b64_str: str) -> ec.EllipticCurvePublicKey:
    return load_verifying_key(base64.b64decode(b64_str))


def public_key_bytes(key: ec.EllipticCurvePrivateKey | ec.EllipticCurvePublicKey) -> bytes:
    """Uncompressed point of a key (or of a private key's public half)."""
    if isinstance(key, ec.EllipticCurvePrivateKey):
        key = key.public_key()
    return key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)


def sign(private_key: ec.EllipticCurvePrivateKey, message: bytes) -> bytes:
    """
    Sign ``message``.

    Returns:
        The 64-byte fixed-width signature.

    Raises:
        CryptographyError: If the key cannot produce a signature.
    """
    try:
        der = private_key.sign(bytes(message), ec.ECDSA(hashes.SHA256()))
    except (ValueError, TypeError) as e:
        raise CryptographyError("failed to sign message", str(e)) from e
    r, s = decode_dss_signature(der)
    return r.to_bytes(SCALAR_SIZE, "big") + s.to_bytes(SCALAR_SIZE, "big")


def verify(public_key: ec.EllipticCurvePublicKey, message: bytes, signature: bytes) -> None:
    """
    Verify a fixed-width signature over ``message``.

    Raises:
        CryptographyError: If the signature is malformed or does not match.
    """
    if len(signature) != SIGNATURE_SIZE:
        raise CryptographyError(
            "malformed signature", f"expected {SIGNATURE_SIZE} bytes, got {len(signature)}"
        )
    r = int.from_bytes(signature[:SCALAR_SIZE], "big")
    s = int.from_bytes(signature[SCALAR_SIZE:], "big")
    try:
        public_key.verify(encode_dss_signature(r, s), bytes(message), ec.ECDSA(hashes.SHA256()))
    except InvalidSignature as e:
        raise CryptographyError("signature does not match message") from e
