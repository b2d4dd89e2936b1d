"""
Prime field arithmetic for Prio.

Elements are plain ints in [0, MODULUS). The modulus is 2^32 - 2^20 + 1, so
every element fits in an unsigned 32-bit word and the multiplicative group
has a subgroup of 2^20 roots of unity, enough for radix-2 FFTs.
"""

import struct

MODULUS = 4293918721
N_ROOTS = 1 << 20
ELEMENT_SIZE = 4


def _find_generator() -> int:
    """Generator of the 2^20-element subgroup.

    For a quadratic non-residue a, a^((p-1)/2) = -1, so a^((p-1)/2^20) has
    order exactly 2^20.
    """
    candidate = 2
    while pow(candidate, (MODULUS - 1) // 2, MODULUS) == 1:
        candidate += 1
    return pow(candidate, (MODULUS - 1) // N_ROOTS, MODULUS)


GENERATOR = _find_generator()


def from_u32(value: int) -> int:
    """Embed an unsigned 32-bit integer in the field."""
    return value % MODULUS


def inverse(a: int) -> int:
    """Multiplicative inverse using Fermat's little theorem."""
    if a % MODULUS == 0:
        raise ZeroDivisionError("zero has no inverse")
    return pow(a, MODULUS - 2, MODULUS)


def root_of_unity(n: int) -> int:
    """Principal n-th root of unity. n must be a power of two <= 2^20."""
    if n <= 0 or n & (n - 1) or n > N_ROOTS:
        raise ValueError(f"no {n}-th root of unity in the field")
    return pow(GENERATOR, N_ROOTS // n, MODULUS)


def serialize(elements: list[int]) -> bytes:
    """Encode elements as little-endian 32-bit words."""
    return struct.pack(f"<{len(elements)}I", *elements)


def deserialize(data: bytes) -> list[int]:
    """
    Decode little-endian 32-bit words into field elements.

    Raises:
        ValueError: If the length is not a multiple of 4 or a word is not a
            canonical field element.
    """
    if len(data) % ELEMENT_SIZE:
        raise ValueError(f"length {len(data)} is not a multiple of {ELEMENT_SIZE}")
    elements = list(struct.unpack(f"<{len(data) // ELEMENT_SIZE}I", data))
    for x in elements:
        if x >= MODULUS:
            raise ValueError(f"{x} is not a field element")
    return elements
