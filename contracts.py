"""Machine-readable contracts for the magic-number computers.

Each operation is specified as a collection of:
- applicability: which divisors the operation accepts at all
- result invariants: what the derived constants must satisfy
- semantic properties: what must hold for every operand x when the
  constants are used the way a backend uses them
- reference: the exact answer computed with plain Python arithmetic

The contract is data.  The factory, the conformance tests and the
counterexample search all iterate over it instead of re-stating the
rules.

Layers
------
ResultInvariant     a predicate over (n, divisor, result)
SemanticProperty    a predicate over (n, divisor, result, x)
OperationContract   per-operation contract
BranchSpec          every decision point that white-box tests must cover
MagicContract       the full contract for one width
build_contract()    constructs a MagicContract for a width
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable

from lowering import (
    is_divisible,
    signed_divide,
    unsigned_divide,
    unsigned_divide_wide,
)
from magic import (
    Operation,
    can_reduce_divisibility,
    can_reduce_signed_divide,
    can_reduce_unsigned_divide,
    divisibility_magic,
    signed_magic,
    unsigned_magic,
)
from widths import Width, bit, rotate_right, width_of


class OperandDomain(Enum):
    UNSIGNED = auto()
    SIGNED = auto()


# ---------------------------------------------------------------------------
# Contract building blocks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResultInvariant:
    name: str
    description: str
    check: Callable[..., bool]      # (divisor, result) -> bool


@dataclass(frozen=True)
class SemanticProperty:
    name: str
    description: str
    check: Callable[..., bool]      # (divisor, result, x) -> bool


@dataclass(frozen=True)
class OperationContract:
    operation: Operation
    domain: OperandDomain
    applicable: Callable[[int], bool]
    compute: Callable[[int], object]
    invariants: list[ResultInvariant]
    properties: list[SemanticProperty]

    @property
    def name(self) -> str:
        return self.operation.value


@dataclass(frozen=True)
class BranchSpec:
    """A decision point in the implementation that must be exercised."""

    id: str
    description: str
    condition: str      # human-readable boolean expression
    function: str       # which function the branch lives in


@dataclass(frozen=True)
class MagicContract:
    """Complete contract for one operand width."""

    width: Width
    operations: dict[Operation, OperationContract]

    def operands(self, operation: Operation) -> range:
        if self.operations[operation].domain is OperandDomain.SIGNED:
            return self.width.signed_values()
        return self.width.unsigned_values()

    def divisors(self, operation: Operation) -> list[int]:
        """All reducible divisors representable in this width."""
        op = self.operations[operation]
        if op.domain is OperandDomain.SIGNED:
            candidates = range(1, self.width.smax + 1)
        else:
            candidates = self.width.unsigned_values()
        return [c for c in candidates if op.applicable(c)]


# ---------------------------------------------------------------------------
# Helpers used inside the contract predicates
# ---------------------------------------------------------------------------

def truncdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero (not floor division).

    Python's ``//`` rounds toward negative infinity; the machine
    quotient truncates.
    """
    q, r = divmod(a, b)
    if r != 0 and (a < 0) != (b < 0):
        q += 1
    return q


# ---------------------------------------------------------------------------
# Contract builder
# ---------------------------------------------------------------------------

def build_contract(n: int) -> MagicContract:
    """Construct the full magic-number contract for an n-bit width."""
    width = width_of(n)
    two_n = 1 << n

    def _unsigned(c: int) -> int:
        return width.to_unsigned(c)

    # ---------------------------------------------------- unsigned divide
    udiv = OperationContract(
        operation=Operation.UNSIGNED_DIVIDE,
        domain=OperandDomain.UNSIGNED,
        applicable=lambda c: can_reduce_unsigned_divide(n, c),
        compute=lambda c: unsigned_magic(n, c),
        invariants=[
            ResultInvariant(
                "multiplier_fits",
                "Multiplier is an n-bit value once bit n is dropped",
                lambda c, r: 0 <= r.multiplier < two_n,
            ),
            ResultInvariant(
                "shift_is_ceil_log2",
                "2^(s-1) < d < 2^s",
                lambda c, r: (1 << (r.shift - 1)) < _unsigned(c) < (1 << r.shift),
            ),
            ResultInvariant(
                "multiplier_is_ceiling",
                "m + 2^n == ⌈2^(n+s) / d⌉",
                lambda c, r: (
                    (r.multiplier + two_n) * _unsigned(c) >= 1 << (n + r.shift)
                    > (r.multiplier + two_n - 1) * _unsigned(c)
                ),
            ),
        ],
        properties=[
            SemanticProperty(
                "quotient_exact",
                "x // d == (x * (m + 2^n)) >> (n + s)",
                lambda c, r, x: unsigned_divide_wide(x, r, n) == x // _unsigned(c),
            ),
            SemanticProperty(
                "lowered_quotient_exact",
                "n-bit multiply-high sequence reproduces x // d",
                lambda c, r, x: (
                    unsigned_divide(x, r, _unsigned(c), n) == x // _unsigned(c)
                ),
            ),
        ],
    )

    # ------------------------------------------------------ signed divide
    sdiv = OperationContract(
        operation=Operation.SIGNED_DIVIDE,
        domain=OperandDomain.SIGNED,
        applicable=can_reduce_signed_divide,
        compute=lambda c: signed_magic(n, c),
        invariants=[
            ResultInvariant(
                "bit_n_clear",
                "Bit n of the multiplier is clear",
                lambda c, r: bit(r.multiplier, n) == 0,
            ),
            ResultInvariant(
                "bit_n_minus_1_set",
                "Bit n-1 of the multiplier is set",
                lambda c, r: bit(r.multiplier, n - 1) == 1,
            ),
            ResultInvariant(
                "shift_is_ceil_log2_minus_1",
                "2^s < c < 2^(s+1)",
                lambda c, r: (1 << r.shift) < c < (1 << (r.shift + 1)),
            ),
        ],
        properties=[
            SemanticProperty(
                "quotient_exact",
                "trunc(x / c) == ((x * m) >> (n + s)) + (x < 0)",
                lambda c, r, x: (
                    ((x * r.multiplier) >> (n + r.shift)) + (1 if x < 0 else 0)
                    == truncdiv(x, c)
                ),
            ),
            SemanticProperty(
                "lowered_quotient_exact",
                "n-bit sequence (multiply-high at word width) reproduces trunc(x / c)",
                lambda c, r, x: signed_divide(x, r, n) == truncdiv(x, c),
            ),
        ],
    )

    # ------------------------------------------------------- divisibility
    divisible = OperationContract(
        operation=Operation.DIVISIBILITY,
        domain=OperandDomain.UNSIGNED,
        applicable=lambda c: can_reduce_divisibility(n, c),
        compute=lambda c: divisibility_magic(n, c),
        invariants=[
            ResultInvariant(
                "inverse_of_odd_part",
                "m * (d >> k) ≡ 1 (mod 2^n)",
                lambda c, r: (
                    r.inverse * (_unsigned(c) >> r.trailing_zeros)
                ) % two_n == 1,
            ),
            ResultInvariant(
                "odd_part_is_odd",
                "d >> k is odd",
                lambda c, r: (_unsigned(c) >> r.trailing_zeros) & 1 == 1,
            ),
            ResultInvariant(
                "max_quotient",
                "max == ⌊(2^n - 1) / d⌋",
                lambda c, r: r.max_quotient == width.mask // _unsigned(c),
            ),
        ],
        properties=[
            SemanticProperty(
                "divisibility_exact",
                "(x % d == 0) == (rotr(x * m mod 2^n, k) <= max)",
                lambda c, r, x: (
                    (rotate_right(x * r.inverse, r.trailing_zeros, width)
                     <= r.max_quotient)
                    == (x % _unsigned(c) == 0)
                ),
            ),
            SemanticProperty(
                "lowered_divisibility_exact",
                "is_divisible() agrees with x % d == 0",
                lambda c, r, x: is_divisible(x, r, n) == (x % _unsigned(c) == 0),
            ),
        ],
    )

    return MagicContract(
        width=width,
        operations={
            Operation.UNSIGNED_DIVIDE: udiv,
            Operation.SIGNED_DIVIDE: sdiv,
            Operation.DIVISIBILITY: divisible,
        },
    )


# ---------------------------------------------------------------------------
# Branch catalogue
# ---------------------------------------------------------------------------

BRANCHES = [
    # Applicability
    BranchSpec("UOK-REJECT", "Unsigned divisor is zero or a power of two",
               "d & (d - 1) == 0", "can_reduce_unsigned_divide"),
    BranchSpec("UOK-ACCEPT", "Unsigned divisor can be reduced",
               "d & (d - 1) != 0", "can_reduce_unsigned_divide"),
    BranchSpec("SOK-NEGATIVE", "Negative signed divisor rejected",
               "c < 0", "can_reduce_signed_divide"),
    BranchSpec("SOK-REJECT", "Signed divisor is zero or a power of two",
               "c >= 0 and c & (c - 1) == 0", "can_reduce_signed_divide"),
    BranchSpec("SOK-ACCEPT", "Signed divisor can be reduced",
               "c > 0 and c & (c - 1) != 0", "can_reduce_signed_divide"),
    BranchSpec("DOK-REJECT", "Divisibility divisor is zero or a power of two",
               "d & (d - 1) == 0", "can_reduce_divisibility"),
    BranchSpec("DOK-ACCEPT", "Divisibility divisor can be reduced",
               "d & (d - 1) != 0", "can_reduce_divisibility"),
    # Computers
    BranchSpec("UMAGIC-OK", "Bit n of M set, multiplier returned",
               "M >> n & 1 == 1", "unsigned_magic"),
    BranchSpec("UMAGIC-HIGH-BIT-CLEAR", "Bit n of M clear, fatal",
               "M >> n & 1 == 0", "unsigned_magic"),
    BranchSpec("SMAGIC-OK", "Bit n clear and bit n-1 set, multiplier returned",
               "M >> n & 1 == 0 and M >> (n-1) & 1 == 1", "signed_magic"),
    BranchSpec("SMAGIC-BIT-N-SET", "Bit n of M set, fatal",
               "M >> n & 1 == 1", "signed_magic"),
    BranchSpec("SMAGIC-BIT-N-1-CLEAR", "Bit n-1 of M clear, fatal",
               "M >> (n-1) & 1 == 0", "signed_magic"),
    BranchSpec("DMAGIC-OK", "Newton result is an inverse",
               "m * d0 % 2^n == 1", "divisibility_magic"),
    BranchSpec("DMAGIC-NOT-INVERSE", "Newton result is not an inverse, fatal",
               "m * d0 % 2^n != 1", "divisibility_magic"),
    # Lowering
    BranchSpec("SHAPE-EVEN-MULTIPLIER", "m even: halve multiplier",
               "m % 2 == 0", "unsigned_shape"),
    BranchSpec("SHAPE-EVEN-DIVISOR", "m odd, d even: pre-shift x",
               "m % 2 == 1 and d % 2 == 0", "unsigned_shape"),
    BranchSpec("SHAPE-AVERAGE", "m odd, d odd: multiply then average",
               "m % 2 == 1 and d % 2 == 1", "unsigned_shape"),
    BranchSpec("SDIV-WORD", "Signed divide at machine word via multiply-high",
               "n == WORD_BITS", "signed_divide"),
    BranchSpec("SDIV-NARROW", "Signed divide below machine word via wide multiply",
               "n < WORD_BITS", "signed_divide"),
]
