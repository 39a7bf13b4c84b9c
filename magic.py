"""Magic constants for strength-reducing division by a constant.

Machine division is slow, so ``x / c`` for a compile-time constant ``c``
is rewritten as a multiply-high plus a few shifts and adds.  This
module decides when that rewrite is valid and derives the constants.

Technique: Granlund & Montgomery, "Division by Invariant Integers using
Multiplication" (PLDI '94), and Warren, "Hacker's Delight" 10-17 for
the divisibility test.

Every ``can_reduce_*`` predicate must be checked before calling the
matching computer; the computers do not re-validate.  Decision branches
are annotated with their branch ids (see ``contracts.BRANCHES``) so the
white-box tests can trace coverage back to them.

Unsigned division
-----------------
Pick e = n + s with s = ⌈log2 d⌉ and M = ⌈2^e / d⌉.  Writing
M = 2^e/d + δ with 0 <= δ < 1, the error term x·δ/2^e stays below 1/d
for every x < 2^n, so ⌊x·M / 2^e⌋ == ⌊x / d⌋.  M has n+1 bits; the
top bit is dropped here and re-added by whoever lowers the sequence.

Signed division
---------------
For c > 0 use s = ⌈log2 c⌉ - 1 and M = ⌈2^(n+s) / c⌉, which fits in n
bits with bit n-1 set.  Non-negative x behave as in the unsigned case;
negative x need a +1 to turn the floor into a truncation.

Divisibility
------------
Write d = d0·2^k with d0 odd and let m be d0's inverse mod 2^n.  The
multiples of d0 map under x·m mod 2^n onto 0..⌊(2^n-1)/d0⌋ and every
other x lands above that.  Rotating right by k folds the "k trailing
zeros" test into the same unsigned compare, giving
rotr(x·m mod 2^n, k) <= ⌊(2^n-1)/d⌋.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from widths import (
    bit,
    ceil_div,
    clear_bit,
    is_zero_or_power_of_two,
    trailing_zeros,
    width_of,
    wrapping_mul,
    wrapping_sub,
)

# 3 correct bits from the seed, doubled per step: 6, 12, 24, 48, 96 >= 64.
NEWTON_STEPS = 5


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class MagicInvariantError(AssertionError):
    """A derivation reached a state the mathematics rules out.

    Raised only when a caller skipped the applicability check or the
    derivation itself is wrong.  Never catch it: continuing would emit
    a sequence that divides incorrectly for some operands.
    """

    def __init__(self, derivation: str, message: str):
        self.derivation = derivation
        super().__init__(f"{derivation} magic: {message}")


def _require(condition: bool, derivation: str, message: str) -> None:
    # Explicit raise so ``python -O`` cannot strip the check.
    if not condition:
        raise MagicInvariantError(derivation, message)


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UnsignedMagic:
    shift: int          # ⌈log2(d)⌉
    multiplier: int     # ⌈2^(n+s)/d⌉ - 2^n


@dataclass(frozen=True)
class SignedMagic:
    shift: int          # ⌈log2(c)⌉ - 1
    multiplier: int     # ⌈2^(n+s)/c⌉


@dataclass(frozen=True)
class DivisibilityMagic:
    trailing_zeros: int     # k, trailing zeros of d
    inverse: int            # m with m * (d >> k) ≡ 1 (mod 2^n)
    max_quotient: int       # ⌊(2^n - 1) / d⌋


MagicResult = Union[UnsignedMagic, SignedMagic, DivisibilityMagic]


class Operation(Enum):
    UNSIGNED_DIVIDE = "unsigned_divide"
    SIGNED_DIVIDE = "signed_divide"
    DIVISIBILITY = "divisibility"


# ---------------------------------------------------------------------------
# Applicability
# ---------------------------------------------------------------------------

def can_reduce_unsigned_divide(n: int, c: int) -> bool:
    """Report whether an n-bit unsigned divide by ``c`` should be strength reduced.

    ``c`` is reinterpreted as its n-bit unsigned residue.  Zero cannot be
    reduced and powers of two have a cheaper plain shift.

    Branches: UOK-REJECT, UOK-ACCEPT
    """
    d = width_of(n).to_unsigned(c)
    return not is_zero_or_power_of_two(d)                    # UOK-REJECT / UOK-ACCEPT


def can_reduce_signed_divide(c: int) -> bool:
    """Report whether a signed divide by ``c`` should be strength reduced.

    Negative divisors are rejected; callers negate both divisor and
    quotient first.

    Branches: SOK-NEGATIVE, SOK-REJECT, SOK-ACCEPT
    """
    if c < 0:                                                # SOK-NEGATIVE
        return False
    return not is_zero_or_power_of_two(c)                    # SOK-REJECT / SOK-ACCEPT


def can_reduce_divisibility(n: int, c: int) -> bool:
    """Report whether an n-bit ``x % c == 0`` test should be strength reduced.

    Branches: DOK-REJECT, DOK-ACCEPT
    """
    d = width_of(n).to_unsigned(c)
    return not is_zero_or_power_of_two(d)                    # DOK-REJECT / DOK-ACCEPT


# ---------------------------------------------------------------------------
# Computers
# ---------------------------------------------------------------------------

def unsigned_magic(n: int, c: int) -> UnsignedMagic:
    """Constants for unsigned n-bit division by ``c mod 2^n``.

    For all 0 <= x < 2^n::

        x // d == (x * (m + 2^n)) >> (n + s)

    Branches: UMAGIC-OK, UMAGIC-HIGH-BIT-CLEAR
    """
    width = width_of(n)
    d = width.to_unsigned(c)

    s = d.bit_length()
    big_m = ceil_div(1 << (n + s), d)
    _require(bit(big_m, n) == 1, "unsigned",                 # UMAGIC-HIGH-BIT-CLEAR
             f"bit {n} of {big_m:#x} is not set (n={n}, d={d})")
    return UnsignedMagic(shift=s, multiplier=clear_bit(big_m, n))  # UMAGIC-OK


def signed_magic(n: int, c: int) -> SignedMagic:
    """Constants for signed n-bit division by a positive ``c``.

    For all -2^(n-1) <= x < 2^(n-1)::

        trunc(x / c) == ((x * m) >> (n + s)) + (1 if x < 0 else 0)

    The multiply is signed-by-unsigned.  When n is the machine word the
    lowering uses a signed multiply-high on m reinterpreted as negative
    and adds x back (see ``lowering.signed_divide``).

    Branches: SMAGIC-OK, SMAGIC-BIT-N-SET, SMAGIC-BIT-N-1-CLEAR
    """
    width_of(n)
    s = c.bit_length() - 1
    big_m = ceil_div(1 << (n + s), c)
    _require(bit(big_m, n) == 0, "signed",                   # SMAGIC-BIT-N-SET
             f"bit {n} of {big_m:#x} is set (n={n}, c={c})")
    _require(bit(big_m, n - 1) == 1, "signed",               # SMAGIC-BIT-N-1-CLEAR
             f"bit {n - 1} of {big_m:#x} is not set (n={n}, c={c})")
    return SignedMagic(shift=s, multiplier=big_m)            # SMAGIC-OK


def odd_inverse(d0: int, n: int) -> int:
    """Inverse of the odd ``d0`` modulo 2^n by Newton's method.

    Always runs enough steps for 64 bits, then truncates to n.
    """
    m = d0                      # d0 * d0 ≡ 1 (mod 8)
    for _ in range(NEWTON_STEPS):
        m = wrapping_mul(m, wrapping_sub(2, wrapping_mul(m, d0)))
    return m & ((1 << n) - 1)


def divisibility_magic(n: int, c: int) -> DivisibilityMagic:
    """Constants for the n-bit test ``x % d == 0`` with d = c mod 2^n.

    For all 0 <= x < 2^n::

        (x % d == 0) == (rotr(x * m mod 2^n, k) <= max)

    Branches: DMAGIC-OK, DMAGIC-NOT-INVERSE
    """
    width = width_of(n)
    d = width.to_unsigned(c)

    k = trailing_zeros(d)
    d0 = d >> k
    m = odd_inverse(d0, n)
    _require(wrapping_mul(m, d0, n) == 1, "divisibility",    # DMAGIC-NOT-INVERSE
             f"{m:#x} is not an inverse of {d0:#x} mod 2^{n}")

    return DivisibilityMagic(                                # DMAGIC-OK
        trailing_zeros=k,
        inverse=m,
        max_quotient=width.mask // d,
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def can_reduce(operation: Operation, n: int, c: int) -> bool:
    if operation is Operation.UNSIGNED_DIVIDE:
        return can_reduce_unsigned_divide(n, c)
    if operation is Operation.SIGNED_DIVIDE:
        width_of(n)
        return can_reduce_signed_divide(c)
    return can_reduce_divisibility(n, c)


def compute_magic(operation: Operation, n: int, c: int) -> MagicResult:
    if operation is Operation.UNSIGNED_DIVIDE:
        return unsigned_magic(n, c)
    if operation is Operation.SIGNED_DIVIDE:
        return signed_magic(n, c)
    return divisibility_magic(n, c)
