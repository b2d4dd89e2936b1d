"""
ECIES share encryption.

Each share processor holds a P-256 key pair. Clients encrypt a share to a
processor's public key; only that processor can open it.

Ciphertext layout:
  ephemeral public key (65 bytes, uncompressed point)
  || AES-128-GCM ciphertext || 16-byte tag

Key agreement:
  ECDH(ephemeral, recipient) → shared secret
  X9.63 KDF(SHA-256, shared secret, info=ephemeral public key) → 32 bytes
  bytes 0..16 = AES key, bytes 16..32 = GCM nonce
"""

import base64

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.x963kdf import X963KDF
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat


PUBLIC_KEY_SIZE = 65   # uncompressed P-256 point
SECRET_SIZE = 32       # P-256 scalar
AES_KEY_SIZE = 16      # AES-128
TAG_SIZE = 16
KEY_MATERIAL_SIZE = 32


class DecryptError(Exception):
    """The ciphertext could not be opened with this key."""


def _point_bytes(public_key: ec.EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)


def _derive_key_material(shared_secret: bytes, ephemeral_public: bytes) -> bytes:
    kdf = X963KDF(
        algorithm=hashes.SHA256(),
        length=KEY_MATERIAL_SIZE,
        sharedinfo=ephemeral_public,
    )
    return kdf.derive(shared_secret)


class PublicKey:
    """A share processor's ECIES public key."""

    def __init__(self, key: ec.EllipticCurvePublicKey):
        self.key = key

    @classmethod
    def from_bytes(cls, data: bytes) -> "PublicKey":
        """Load from a 65-byte uncompressed point."""
        if len(data) != PUBLIC_KEY_SIZE:
            raise ValueError(f"public key must be {PUBLIC_KEY_SIZE} bytes, got {len(data)}")
        return cls(ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), data))

    @classmethod
    def from_base64(cls, b64_str: str) -> "PublicKey":
        return cls.from_bytes(base64.b64decode(b64_str))

    def to_bytes(self) -> bytes:
        return _point_bytes(self.key)

    def to_base64(self) -> str:
        return base64.b64encode(self.to_bytes()).decode()


class PrivateKey:
    """
    A share processor's ECIES private key.

    Serialized as the uncompressed public point followed by the big-endian
    secret scalar (97 bytes), usually base64 encoded.
    """

    def __init__(self, key: ec.EllipticCurvePrivateKey):
        self.key = key

    @classmethod
    def generate(cls) -> "PrivateKey":
        return cls(ec.generate_private_key(ec.SECP256R1()))

    @classmethod
    def from_bytes(cls, data: bytes) -> "PrivateKey":
        if len(data) != PUBLIC_KEY_SIZE + SECRET_SIZE:
            raise ValueError(
                f"private key must be {PUBLIC_KEY_SIZE + SECRET_SIZE} bytes, got {len(data)}"
            )
        secret = int.from_bytes(data[PUBLIC_KEY_SIZE:], "big")
        key = ec.derive_private_key(secret, ec.SECP256R1())
        if _point_bytes(key.public_key()) != data[:PUBLIC_KEY_SIZE]:
            raise ValueError("public point does not match secret scalar")
        return cls(key)

    @classmethod
    def from_base64(cls, b64_str: str) -> "PrivateKey":
        return cls.from_bytes(base64.b64decode(b64_str))

    def to_bytes(self) -> bytes:
        secret = self.key.private_numbers().private_value.to_bytes(SECRET_SIZE, "big")
        return _point_bytes(self.key.public_key()) + secret

    def to_base64(self) -> str:
        return base64.b64encode(self.to_bytes()).decode()

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.public_key())


def encrypt_share(share: bytes, public_key: PublicKey) -> bytes:
    """Encrypt a share to a share processor's public key."""
    ephemeral = ec.generate_private_key(ec.SECP256R1())
    ephemeral_public = _point_bytes(ephemeral.public_key())
    shared_secret = ephemeral.exchange(ec.ECDH(), public_key.key)

    material = _derive_key_material(shared_secret, ephemeral_public)
    aesgcm = AESGCM(material[:AES_KEY_SIZE])
    ciphertext = aesgcm.encrypt(material[AES_KEY_SIZE:], share, None)
    return ephemeral_public + ciphertext


def decrypt_share(encrypted: bytes, private_key: PrivateKey) -> bytes:
    """
    Decrypt a share encrypted to this processor.

    Raises:
        DecryptError: If the ciphertext is malformed or fails authentication.
    """
    if len(encrypted) < PUBLIC_KEY_SIZE + TAG_SIZE:
        raise DecryptError(f"ciphertext too short ({len(encrypted)} bytes)")

    ephemeral_public = encrypted[:PUBLIC_KEY_SIZE]
    try:
        peer = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), ephemeral_public)
    except ValueError as e:
        raise DecryptError("invalid ephemeral public key") from e
    shared_secret = private_key.key.exchange(ec.ECDH(), peer)

    material = _derive_key_material(shared_secret, ephemeral_public)
    aesgcm = AESGCM(material[:AES_KEY_SIZE])
    try:
        return aesgcm.decrypt(material[AES_KEY_SIZE:], encrypted[PUBLIC_KEY_SIZE:], None)
    except InvalidTag as e:
        raise DecryptError("authentication tag mismatch") from e
