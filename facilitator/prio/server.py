"""
Prio v1 share processor.

A client proves its data vector x is 0/1-valued by sending shares of a proof
(a SNIP). Each share processor evaluates its share of three polynomials f, g
and h at a common random point r and publishes (f(r), g(r), h(r)). Adding the
two processors' messages gives a point on the real polynomials, and
f(r) * g(r) == h(r) holds exactly when every x_i * (x_i - 1) == 0.

Proof layout for dimension d, with N the next power of two above d:
  x[0..d] || f0 || g0 || h0 || h at the odd 2N-th roots (N values)
"""

import logging
import secrets
from dataclasses import dataclass

from facilitator.prio import polynomial
from facilitator.prio.encrypt import DecryptError, PrivateKey, decrypt_share
from facilitator.prio.finite_field import MODULUS, N_ROOTS, deserialize
from facilitator.prio.prng import extract_share_from_seed

logger = logging.getLogger(__name__)

# h is interpolated over 2N roots of unity, and the field has only 2^20
MAX_DIMENSION = N_ROOTS // 2 - 1


def points_count(dimension: int) -> int:
    """N: number of points carrying f and g (next power of two >= d + 1)."""
    return 1 << dimension.bit_length()


def proof_length(dimension: int) -> int:
    return dimension + 3 + points_count(dimension)


def choose_eval_at(dimension: int) -> int:
    """Random evaluation point that is not one of the 2N-th roots of unity."""
    order = 2 * points_count(dimension)
    while True:
        r = secrets.randbelow(MODULUS)
        if pow(r, order, MODULUS) != 1:
            return r


@dataclass(frozen=True)
class VerificationMessage:
    """One share processor's evaluation of f, g and h at the random point."""
    f_r: int
    g_r: int
    h_r: int


def is_valid_share(first: VerificationMessage, second: VerificationMessage) -> bool:
    """Check the combined messages of both share processors."""
    f_r = (first.f_r + second.f_r) % MODULUS
    g_r = (first.g_r + second.g_r) % MODULUS
    h_r = (first.h_r + second.h_r) % MODULUS
    return f_r * g_r % MODULUS == h_r


class Server:
    """
    Computes verification messages for one batch.

    Args:
        dimension: Number of bins in the data vector. Must be positive.
        is_first_server: True for the first share processor, whose shares are
            sent in full; the second receives seeds.
        private_key: This processor's ECIES key.
    """

    def __init__(self, dimension: int, is_first_server: bool, private_key: PrivateKey):
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        if dimension > MAX_DIMENSION:
            raise ValueError(f"dimension must be at most {MAX_DIMENSION}, got {dimension}")
        self.dimension = dimension
        self.is_first_server = is_first_server
        self.private_key = private_key
        self.points_count = points_count(dimension)
        self.proof_length = proof_length(dimension)

    def _decode_share(self, encrypted_share: bytes) -> list[int]:
        share = decrypt_share(encrypted_share, self.private_key)
        if self.is_first_server:
            return deserialize(share)
        return extract_share_from_seed(self.proof_length, share)

    def generate_verification_message(
        self, eval_at: int, encrypted_share: bytes
    ) -> VerificationMessage | None:
        """
        Evaluate this processor's share of f, g and h at ``eval_at``.

        Returns:
            The message, or None if the share cannot be decrypted or decoded.
        """
        try:
            proof = self._decode_share(encrypted_share)
        except (DecryptError, ValueError) as e:
            logger.debug("cannot decode share: %s", e)
            return None

        if len(proof) != self.proof_length:
            logger.debug("share has %d elements, expected %d", len(proof), self.proof_length)
            return None

        d = self.dimension
        n = self.points_count
        data = proof[:d]
        f0, g0, h0 = proof[d:d + 3]
        h_packed = proof[d + 3:]

        points_f = [0] * n
        points_g = [0] * n
        points_f[0] = f0
        points_g[0] = g0
        for i, x in enumerate(data):
            points_f[i + 1] = x
            # only one processor subtracts the constant
            points_g[i + 1] = (x - 1) % MODULUS if self.is_first_server else x

        # h vanishes at the even 2N-th roots other than 1
        points_h = [0] * (2 * n)
        points_h[0] = h0
        points_h[1::2] = h_packed

        return VerificationMessage(
            f_r=polynomial.interpolate_and_evaluate(points_f, eval_at),
            g_r=polynomial.interpolate_and_evaluate(points_g, eval_at),
            h_r=polynomial.interpolate_and_evaluate(points_h, eval_at),
        )
