"""Operand widths and the wide-integer helper.

A ``Width`` describes one n-bit machine integer: its masks, its
unsigned and signed ranges, and the wrap-around that maps any Python
int onto it.  The module-level functions are the n-bit primitives a
backend has available (multiply-high, average, rotate) plus the
double-width arithmetic the magic derivations need.

Python ints are unbounded, so quantities such as 2^(n+s) for n = 64
need no limb arithmetic.  Every helper that models hardware takes the
width explicitly and masks its result.
"""
from __future__ import annotations

from dataclasses import dataclass

WORD_BITS = 64
SUPPORTED_WIDTHS = (8, 16, 32, 64)


# ---------------------------------------------------------------------------
# Width
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Width:
    """An n-bit two's-complement integer domain."""

    bits: int

    def __post_init__(self) -> None:
        if self.bits not in SUPPORTED_WIDTHS:
            raise ValueError(
                f"unsupported width {self.bits}; expected one of {SUPPORTED_WIDTHS}"
            )

    @property
    def mask(self) -> int:
        return (1 << self.bits) - 1

    @property
    def sign_bit(self) -> int:
        return 1 << (self.bits - 1)

    @property
    def umax(self) -> int:
        return self.mask

    @property
    def smin(self) -> int:
        return -self.sign_bit

    @property
    def smax(self) -> int:
        return self.sign_bit - 1

    @property
    def is_word(self) -> bool:
        """True when n equals the native machine word."""
        return self.bits == WORD_BITS

    def to_unsigned(self, v: int) -> int:
        """Reinterpret ``v`` as an n-bit unsigned value (take it mod 2^n)."""
        return v & self.mask

    def to_signed(self, v: int) -> int:
        """Reinterpret the low n bits of ``v`` as two's complement."""
        v &= self.mask
        return v - (1 << self.bits) if v & self.sign_bit else v

    def contains_unsigned(self, v: int) -> bool:
        return 0 <= v <= self.umax

    def contains_signed(self, v: int) -> bool:
        return self.smin <= v <= self.smax

    def unsigned_values(self) -> range:
        return range(0, self.umax + 1)

    def signed_values(self) -> range:
        return range(self.smin, self.smax + 1)


W8 = Width(8)
W16 = Width(16)
W32 = Width(32)
W64 = Width(64)

_PRESETS = {w.bits: w for w in (W8, W16, W32, W64)}


def width_of(n: int) -> Width:
    """Return the preset for ``n`` bits, raising ``ValueError`` if unsupported."""
    try:
        return _PRESETS[n]
    except KeyError:
        raise ValueError(
            f"unsupported width {n}; expected one of {SUPPORTED_WIDTHS}"
        ) from None


# ---------------------------------------------------------------------------
# Wide arithmetic
# ---------------------------------------------------------------------------

def ceil_div(a: int, b: int) -> int:
    """⌈a / b⌉ for a >= 0, b > 0."""
    return (a + b - 1) // b


def bit(v: int, i: int) -> int:
    return (v >> i) & 1


def clear_bit(v: int, i: int) -> int:
    return v & ~(1 << i)


def is_zero_or_power_of_two(v: int) -> bool:
    return v & (v - 1) == 0


def trailing_zeros(v: int) -> int:
    """Number of low-order zero bits of a positive ``v``."""
    return (v & -v).bit_length() - 1


def wrapping_mul(a: int, b: int, bits: int = WORD_BITS) -> int:
    return (a * b) & ((1 << bits) - 1)


def wrapping_sub(a: int, b: int, bits: int = WORD_BITS) -> int:
    return (a - b) & ((1 << bits) - 1)


# ---------------------------------------------------------------------------
# n-bit machine primitives
# ---------------------------------------------------------------------------

def umulhi(a: int, b: int, width: Width) -> int:
    """High n bits of the 2n-bit unsigned product of two n-bit values."""
    return (width.to_unsigned(a) * width.to_unsigned(b)) >> width.bits


def smulhi(a: int, b: int, width: Width) -> int:
    """High n bits (signed) of the 2n-bit signed product of two n-bit values."""
    return width.to_signed((width.to_signed(a) * width.to_signed(b)) >> width.bits)


def average(a: int, b: int, width: Width) -> int:
    """⌊(a + b) / 2⌋ on unsigned n-bit values, keeping the carry bit."""
    return (width.to_unsigned(a) + width.to_unsigned(b)) >> 1


def rotate_right(v: int, k: int, width: Width) -> int:
    """Rotate the n-bit value ``v`` right by ``k`` positions."""
    v = width.to_unsigned(v)
    k %= width.bits
    if k == 0:
        return v
    return ((v >> k) | (v << (width.bits - k))) & width.mask


def sar(v: int, k: int, width: Width) -> int:
    """Arithmetic right shift of the n-bit value ``v``."""
    return width.to_signed(v) >> k


def shr(v: int, k: int, width: Width) -> int:
    """Logical right shift of the n-bit value ``v``."""
    return width.to_unsigned(v) >> k
