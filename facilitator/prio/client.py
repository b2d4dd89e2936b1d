"""
Prio v1 client encoding.

Builds the validity proof for a 0/1 data vector and splits it into one share
per share processor.
"""

import secrets

from facilitator.prio import polynomial
from facilitator.prio.encrypt import PublicKey, encrypt_share
from facilitator.prio.finite_field import MODULUS, serialize
from facilitator.prio.prng import extract_share_from_seed, random_seed
from facilitator.prio.server import MAX_DIMENSION, points_count


class Client:
    """
    Encodes data vectors of a fixed dimension.

    Args:
        dimension: Number of bins.
        public_key1: First share processor's ECIES public key.
        public_key2: Second share processor's ECIES public key.
    """

    def __init__(self, dimension: int, public_key1: PublicKey, public_key2: PublicKey):
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        if dimension > MAX_DIMENSION:
            raise ValueError(f"dimension must be at most {MAX_DIMENSION}, got {dimension}")
        self.dimension = dimension
        self.public_key1 = public_key1
        self.public_key2 = public_key2

    def prove(self, data: list[int]) -> list[int]:
        """Build the unshared proof for ``data``."""
        if len(data) != self.dimension:
            raise ValueError(f"expected {self.dimension} values, got {len(data)}")
        if any(x not in (0, 1) for x in data):
            raise ValueError("data values must be 0 or 1")

        n = points_count(self.dimension)
        padding = [0] * (n - 1 - self.dimension)
        points_f = [secrets.randbelow(MODULUS)] + list(data) + padding
        points_g = [secrets.randbelow(MODULUS)] + [(x - 1) % MODULUS for x in data] + padding

        evals_f = polynomial.extend(points_f, 2 * n)
        evals_g = polynomial.extend(points_g, 2 * n)
        evals_h = [f * g % MODULUS for f, g in zip(evals_f, evals_g)]

        return list(data) + [points_f[0], points_g[0], evals_h[0]] + evals_h[1::2]

    def encode_simple(self, data: list[int]) -> tuple[bytes, bytes]:
        """
        Encode ``data`` into two encrypted shares.

        Returns:
            (share for the first processor, share for the second processor)
        """
        proof = self.prove(data)
        seed = random_seed()
        share2 = extract_share_from_seed(len(proof), seed)
        share1 = [(p - s) % MODULUS for p, s in zip(proof, share2)]

        return (
            encrypt_share(serialize(share1), self.public_key1),
            encrypt_share(seed, self.public_key2),
        )
