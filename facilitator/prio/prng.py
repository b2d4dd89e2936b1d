"""
Seed expansion for the second share.

The second share processor's share is never sent in full: the client sends a
32-byte seed and both sides expand it with AES-128-CTR into field elements.
"""

import os

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from facilitator.prio.finite_field import ELEMENT_SIZE, MODULUS

AES_KEY_SIZE = 16
SEED_SIZE = 2 * AES_KEY_SIZE
BUFFER_SIZE_IN_ELEMENTS = 128


def random_seed() -> bytes:
    return os.urandom(SEED_SIZE)


def extract_share_from_seed(length: int, seed: bytes) -> list[int]:
    """
    Expand ``seed`` into ``length`` uniformly distributed field elements.

    The keystream is read as little-endian 32-bit words; words >= MODULUS are
    skipped.
    """
    if len(seed) != SEED_SIZE:
        raise ValueError(f"seed must be {SEED_SIZE} bytes, got {len(seed)}")

    cipher = Cipher(algorithms.AES(seed[:AES_KEY_SIZE]), modes.CTR(seed[AES_KEY_SIZE:]))
    keystream = cipher.encryptor()
    zeros = bytes(BUFFER_SIZE_IN_ELEMENTS * ELEMENT_SIZE)

    result = []
    while len(result) < length:
        block = keystream.update(zeros)
        for i in range(0, len(block), ELEMENT_SIZE):
            value = int.from_bytes(block[i:i + ELEMENT_SIZE], "little")
            if value < MODULUS:
                result.append(value)
                if len(result) == length:
                    break
    return result
