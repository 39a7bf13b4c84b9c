"""The verifying magic factory.

The factory does not just compute constants: it proves them against
their contract before releasing them.

Flow:
  1. Caller requests constants for (operation, width, divisor).
  2. Factory checks applicability and computes the record.
  3. Factory checks every result invariant and every semantic property.
  4. If verification passes  -> return the record.
     If verification fails   -> raise, never hand out broken constants.

Widths up to 16 bits are checked for every operand.  Wider widths are
checked on edge operands plus a seeded random sample.  Nothing is
cached; every call verifies from scratch.
"""
from __future__ import annotations

import itertools
import random
from dataclasses import dataclass, field
from typing import Sequence

from contracts import (
    MagicContract,
    OperandDomain,
    OperationContract,
    SemanticProperty,
    build_contract,
)
from magic import MagicResult, Operation
from widths import Width


@dataclass
class VerificationResult:
    """Outcome of verifying one invariant or property."""

    check_name: str
    passed: bool
    counterexample: tuple | None = None
    tests_run: int = 0

    def __repr__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        ce = f"  counterexample={self.counterexample}" if self.counterexample else ""
        return f"[{status}] {self.check_name} ({self.tests_run} tests){ce}"


@dataclass
class VerificationReport:
    """Aggregate result of verifying one set of constants."""

    operation: Operation
    width: int
    divisor: int
    results: list[VerificationResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    def summary(self) -> str:
        lines = [f"--- {self.operation.value} n={self.width} c={self.divisor} ---"]
        for r in self.results:
            lines.append(f"  {r}")
        status = "ALL PASSED" if self.passed else "FAILED"
        lines.append(f"  => {status}")
        return "\n".join(lines)


class VerificationError(Exception):
    """Raised when computed constants fail their contract."""

    def __init__(self, report: VerificationReport):
        self.report = report
        super().__init__(f"Verification failed:\n{report.summary()}")


# ---------------------------------------------------------------------------
# The factory
# ---------------------------------------------------------------------------

class MagicFactory:
    """Produces magic constants that are proven correct for their width."""

    EXHAUSTIVE_THRESHOLD = 1 << 16  # max operand count for brute-force check
    SAMPLE_COUNT = 5_000
    SEED = 0x5EED

    @classmethod
    def create(cls, operation: Operation, n: int, c: int) -> MagicResult:
        """Compute, verify, and return the constants for ``c``."""
        result, report = cls._build(operation, n, c)
        if not report.passed:
            raise VerificationError(report)
        return result

    @classmethod
    def verify(cls, operation: Operation, n: int, c: int) -> VerificationReport:
        """Compute the constants for ``c`` and report on them, without raising."""
        _, report = cls._build(operation, n, c)
        return report

    # -- internal ---------------------------------------------------------

    @classmethod
    def _build(
        cls, operation: Operation, n: int, c: int
    ) -> tuple[MagicResult, VerificationReport]:
        contract = build_contract(n)
        op = contract.operations[operation]
        if not op.applicable(c):
            raise ValueError(
                f"{c} cannot be strength reduced for {operation.value} at n={n}"
            )

        result = op.compute(c)
        report = VerificationReport(operation=operation, width=n, divisor=c)
        for inv in op.invariants:
            passed = inv.check(c, result)
            report.results.append(VerificationResult(
                check_name=inv.name,
                passed=passed,
                counterexample=None if passed else (c,),
                tests_run=1,
            ))

        operands = cls._operands(contract, op, c)
        for prop in op.properties:
            report.results.append(cls._verify_property(prop, c, result, operands))
        return result, report

    @classmethod
    def _verify_property(
        cls,
        prop: SemanticProperty,
        c: int,
        result: MagicResult,
        operands: Sequence[int],
    ) -> VerificationResult:
        tests_run = 0
        for x in operands:
            tests_run += 1
            if not prop.check(c, result, x):
                return VerificationResult(
                    check_name=prop.name,
                    passed=False,
                    counterexample=(c, x),
                    tests_run=tests_run,
                )
        return VerificationResult(
            check_name=prop.name,
            passed=True,
            tests_run=tests_run,
        )

    @classmethod
    def _operands(
        cls, contract: MagicContract, op: OperationContract, c: int
    ) -> Sequence[int]:
        # Both domains hold 2^n operands.
        if (1 << contract.width.bits) <= cls.EXHAUSTIVE_THRESHOLD:
            return contract.operands(op.operation)
        return generate_samples(contract.width, op.domain, c, cls.SAMPLE_COUNT, cls.SEED)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _range_of(width: Width, domain: OperandDomain) -> tuple[int, int]:
    if domain is OperandDomain.SIGNED:
        return width.smin, width.smax
    return 0, width.umax


def edge_operands(width: Width, domain: OperandDomain, c: int) -> list[int]:
    """Operands around the range ends, zero, and the first and last multiples of ``c``."""
    lo, hi = _range_of(width, domain)
    d = abs(c) if domain is OperandDomain.SIGNED else width.to_unsigned(c)
    top = hi - hi % d                   # largest multiple of d in range
    candidates = itertools.chain(
        range(lo, lo + 3),
        range(-2, 3),
        range(hi - 2, hi + 1),
        [width.sign_bit - 1, width.sign_bit, width.sign_bit + 1],
        [d - 1, d, d + 1, 2 * d - 1, 2 * d],
        [-d - 1, -d, -d + 1],
        [top - d, top - 1, top, top + 1],
    )
    return sorted({v for v in candidates if lo <= v <= hi})


def generate_samples(
    width: Width, domain: OperandDomain, c: int, count: int, seed: int
) -> list[int]:
    """Generate edge-case + random operands for property checking.

    A third of the random fill is drawn from multiples of ``c`` and
    their neighbours, which uniform sampling would almost never hit at
    32 or 64 bits.
    """
    rng = random.Random(seed)
    lo, hi = _range_of(width, domain)
    d = abs(c) if domain is OperandDomain.SIGNED else width.to_unsigned(c)

    samples = edge_operands(width, domain, c)
    while len(samples) < count:
        if rng.random() < 1 / 3:
            v = rng.randint(lo // d, hi // d) * d + rng.randint(-1, 1)
            if lo <= v <= hi:
                samples.append(v)
        else:
            samples.append(rng.randint(lo, hi))
    return samples
