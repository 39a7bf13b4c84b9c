"""Reference evaluation of the sequences built from magic constants.

A backend turns the constants from ``magic`` into multiply-high,
shift, average and rotate instructions on n-bit registers.  The
functions here model those sequences operand by operand using the
n-bit primitives from ``widths``, so a set of constants can be checked
against the exact quotient without a code generator.

Nothing here emits instructions.  Each function validates that its
operand is representable in n bits and raises ``ValueError`` if not.
"""
from __future__ import annotations

from enum import Enum, auto

from magic import (
    DivisibilityMagic,
    SignedMagic,
    UnsignedMagic,
    divisibility_magic,
    signed_magic,
    unsigned_magic,
)
from widths import (
    Width,
    average,
    rotate_right,
    sar,
    shr,
    smulhi,
    umulhi,
    width_of,
)


class UnsignedShape(Enum):
    """How an (n+1)-bit multiplier is squeezed into n-bit hardware."""

    EVEN_MULTIPLIER = auto()    # halve the multiplier, shift one less
    EVEN_DIVISOR = auto()       # pre-shift x by one, divide by d/2
    AVERAGE = auto()            # multiply by the low n bits, average with x


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _check_unsigned(x: int, width: Width) -> None:
    if not width.contains_unsigned(x):
        raise ValueError(f"{x} is outside unsigned range [0, {width.umax}]")


def _check_signed(x: int, width: Width) -> None:
    if not width.contains_signed(x):
        raise ValueError(
            f"{x} is outside signed range [{width.smin}, {width.smax}]"
        )


# ---------------------------------------------------------------------------
# Unsigned division
# ---------------------------------------------------------------------------

def unsigned_shape(magic: UnsignedMagic, d: int) -> UnsignedShape:
    """Pick the lowering shape for unsigned division by ``d``.

    Branches: SHAPE-EVEN-MULTIPLIER, SHAPE-EVEN-DIVISOR, SHAPE-AVERAGE
    """
    if magic.multiplier % 2 == 0:                            # SHAPE-EVEN-MULTIPLIER
        return UnsignedShape.EVEN_MULTIPLIER
    if d % 2 == 0:                                           # SHAPE-EVEN-DIVISOR
        return UnsignedShape.EVEN_DIVISOR
    return UnsignedShape.AVERAGE                             # SHAPE-AVERAGE


def unsigned_divide_wide(x: int, magic: UnsignedMagic, n: int) -> int:
    """⌊x / d⌋ as one full-precision multiply by (m + 2^n) and a shift."""
    width = width_of(n)
    _check_unsigned(x, width)
    return (x * (magic.multiplier + (1 << n))) >> (n + magic.shift)


def unsigned_divide(
    x: int,
    magic: UnsignedMagic,
    d: int,
    n: int,
    shape: UnsignedShape | None = None,
) -> int:
    """⌊x / d⌋ using only n-bit multiply-high, average and shifts.

    ``d`` is the divisor the constants were derived for, already reduced
    to n bits.  ``shape`` defaults to ``unsigned_shape(magic, d)``.
    """
    width = width_of(n)
    _check_unsigned(x, width)
    if shape is None:
        shape = unsigned_shape(magic, d)

    s, m = magic.shift, magic.multiplier
    if shape is UnsignedShape.EVEN_MULTIPLIER:
        # (2^n + m) / 2 fits in n bits.
        return shr(umulhi(x, (1 << (n - 1)) + m // 2, width), s - 1, width)
    if shape is UnsignedShape.EVEN_DIVISOR:
        # Same problem for x' = x >> 1, d' = d / 2, n' = n - 1.
        factor = (1 << (n - 1)) + (m + 1) // 2
        return shr(umulhi(shr(x, 1, width), factor, width), s - 2, width)
    hi = umulhi(x, m, width)
    return shr(average(x, hi, width), s - 1, width)


def unsigned_remainder(x: int, magic: UnsignedMagic, d: int, n: int) -> int:
    """x mod d as x - ⌊x / d⌋ * d."""
    width = width_of(n)
    q = unsigned_divide(x, magic, d, n)
    return width.to_unsigned(x - q * d)


# ---------------------------------------------------------------------------
# Signed division
# ---------------------------------------------------------------------------

def signed_divide(x: int, magic: SignedMagic, n: int) -> int:
    """trunc(x / c) for the positive ``c`` the constants were derived for.

    At the machine word the only multiply available is a signed
    multiply-high, which sees m as m - 2^n; adding x restores the
    missing x * 2^n term.  Narrower widths widen x and m and multiply
    exactly.  Subtracting x >> (n-1) adds one for negative x.

    Branches: SDIV-WORD, SDIV-NARROW
    """
    width = width_of(n)
    _check_signed(x, width)

    s, m = magic.shift, magic.multiplier
    if width.is_word:                                        # SDIV-WORD
        hi = width.to_signed(smulhi(x, m, width) + x)
        q = hi >> s
    else:                                                    # SDIV-NARROW
        q = (x * m) >> (n + s)
    return width.to_signed(q - sar(x, n - 1, width))


def signed_divide_by(x: int, c: int, n: int) -> int:
    """trunc(x / c) for any reducible ``c``, negating for negative divisors.

    ``abs(c)`` must pass ``can_reduce_signed_divide``.
    """
    if c < 0:
        return -signed_divide(x, signed_magic(n, -c), n)
    return signed_divide(x, signed_magic(n, c), n)


def signed_remainder(x: int, c: int, n: int) -> int:
    """Truncated remainder: x - trunc(x / c) * c, sign follows x."""
    width = width_of(n)
    q = signed_divide_by(x, c, n)
    return width.to_signed(x - q * c)


# ---------------------------------------------------------------------------
# Divisibility
# ---------------------------------------------------------------------------

def is_divisible(x: int, magic: DivisibilityMagic, n: int) -> bool:
    """x % d == 0 as a multiply, a rotate and one unsigned compare."""
    width = width_of(n)
    _check_unsigned(x, width)
    product = width.to_unsigned(x * magic.inverse)
    return rotate_right(product, magic.trailing_zeros, width) <= magic.max_quotient


def unsigned_divide_by(x: int, c: int, n: int) -> int:
    """⌊x / d⌋ for d = c mod 2^n, deriving the constants on the fly."""
    d = width_of(n).to_unsigned(c)
    return unsigned_divide(x, unsigned_magic(n, c), d, n)


def is_divisible_by(x: int, c: int, n: int) -> bool:
    return is_divisible(x, divisibility_magic(n, c), n)
