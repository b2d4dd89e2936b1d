"""
Polynomials over the Prio field, in point-value form.

A vector of n points holds a polynomial's values at the n-th roots of unity
(1, w, w^2, ...). Interpolation is an inverse FFT.
"""

from facilitator.prio.finite_field import MODULUS, inverse, root_of_unity


def _bit_reverse(i: int, bits: int) -> int:
    result = 0
    for _ in range(bits):
        result = (result << 1) | (i & 1)
        i >>= 1
    return result


def fft(values: list[int], root: int) -> list[int]:
    """
    Evaluate the polynomial with coefficients ``values`` at root^0..root^(n-1).

    ``root`` must be a principal n-th root of unity, n = len(values) a power
    of two.
    """
    n = len(values)
    bits = n.bit_length() - 1
    result = [values[_bit_reverse(i, bits)] for i in range(n)]

    size = 2
    while size <= n:
        half = size // 2
        w_step = pow(root, n // size, MODULUS)
        for start in range(0, n, size):
            w = 1
            for k in range(start, start + half):
                u = result[k]
                t = w * result[k + half] % MODULUS
                result[k] = (u + t) % MODULUS
                result[k + half] = (u - t) % MODULUS
                w = w * w_step % MODULUS
        size *= 2

    return result


def interpolate(points: list[int]) -> list[int]:
    """Coefficients of the polynomial taking ``points`` at the n-th roots."""
    n = len(points)
    root_inverted = inverse(root_of_unity(n))
    n_inverted = inverse(n)
    return [c * n_inverted % MODULUS for c in fft(points, root_inverted)]


def evaluate(coefficients: list[int], x: int) -> int:
    """Evaluate a polynomial at x (Horner's rule)."""
    result = 0
    for c in reversed(coefficients):
        result = (result * x + c) % MODULUS
    return result


def interpolate_and_evaluate(points: list[int], x: int) -> int:
    """Value at x of the polynomial taking ``points`` at the n-th roots."""
    return evaluate(interpolate(points), x)


def extend(points: list[int], n: int) -> list[int]:
    """Re-evaluate a polynomial given at len(points) roots over n >= len roots."""
    coefficients = interpolate(points)
    coefficients += [0] * (n - len(coefficients))
    return fft(coefficients, root_of_unity(n))
