"""Counterexample search: discovers gaps in the magic computers or tests.

This module runs independently of the test suite.  It systematically
searches for:

1. Applicability mismatches: divisors the predicates accept or reject
   against the plain rule "not zero and not a power of two".
2. Fatal errors: applicable divisors whose derivation trips an internal
   invariant.
3. Invariant violations: constants that break their result invariants.
4. Property violations: operands for which the constants (or their
   lowered n-bit sequence) give the wrong answer.

Run directly::

    python -m validation.counterexample_search
"""
from __future__ import annotations

import sys
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterable

sys.path.insert(0, ".")

from contracts import MagicContract, build_contract
from factory import generate_samples
from magic import MagicInvariantError, Operation


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Counterexample:
    """One divisor (and operand, for property checks) that broke a check."""

    kind: str                   # applicability, fatal, invariant or property
    operation: Operation
    n: int
    c: int
    x: int | None
    check: str
    detail: str

    def __str__(self) -> str:
        at = f"c={self.c}" if self.x is None else f"c={self.c} x={self.x}"
        return f"{self.kind} {self.check} at {at}: {self.detail}"


@dataclass
class SearchReport:
    """Per-operation tallies for one width."""

    n: int
    divisors: Counter = field(default_factory=Counter)
    checks: Counter = field(default_factory=Counter)
    counterexamples: list[Counterexample] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.counterexamples

    def found(self, operation: Operation) -> list[Counterexample]:
        return [cx for cx in self.counterexamples if cx.operation is operation]

    def summary(self) -> str:
        lines = [f"--- n={self.n} ---"]
        for operation in Operation:
            found = self.found(operation)
            lines.append(
                f"  {operation.value:<16} divisors={self.divisors[operation]:<6}"
                f" checks={self.checks[operation]:<9} counterexamples={len(found)}"
            )
            lines.extend(f"    {cx}" for cx in found)
        lines.append(f"  => {'ALL PASSED' if self.passed else 'FAILED'}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Search functions
# ---------------------------------------------------------------------------

def _expected_applicable(contract: MagicContract, operation: Operation, c: int) -> bool:
    if operation is Operation.SIGNED_DIVIDE:
        d = c
        if d < 0:
            return False
    else:
        d = contract.width.to_unsigned(c)
    return d != 0 and bin(d).count("1") != 1


def search_applicability_mismatches(
    contract: MagicContract,
    constants: Iterable[int],
    report: SearchReport,
) -> None:
    """Compare every predicate against the zero/power-of-two rule."""
    n = contract.width.bits

    for c in constants:
        for operation, op in contract.operations.items():
            report.checks[operation] += 1
            expected = _expected_applicable(contract, operation, c)
            actual = op.applicable(c)
            if actual != expected:
                report.counterexamples.append(Counterexample(
                    kind="applicability",
                    operation=operation,
                    n=n,
                    c=c,
                    x=None,
                    check=op.name,
                    detail=f"predicate says {actual}, zero/power-of-two rule says {expected}",
                ))


def search_constant_violations(
    contract: MagicContract,
    operation: Operation,
    divisors: Iterable[int],
    operands_for: Callable[[int], Iterable[int]],
    report: SearchReport,
) -> None:
    """Derive constants for each divisor and check invariants and properties.

    Stops at the first failing operand per (divisor, property) pair.
    """
    n = contract.width.bits
    op = contract.operations[operation]

    for c in divisors:
        report.divisors[operation] += 1
        report.checks[operation] += 1
        try:
            result = op.compute(c)
        except MagicInvariantError as e:
            report.counterexamples.append(Counterexample(
                kind="fatal",
                operation=operation,
                n=n,
                c=c,
                x=None,
                check=e.derivation,
                detail=str(e),
            ))
            continue

        for inv in op.invariants:
            report.checks[operation] += 1
            if not inv.check(c, result):
                report.counterexamples.append(Counterexample(
                    kind="invariant",
                    operation=operation,
                    n=n,
                    c=c,
                    x=None,
                    check=inv.name,
                    detail=f"{result} breaks {inv.description}",
                ))

        operands = operands_for(c)
        for prop in op.properties:
            for x in operands:
                report.checks[operation] += 1
                if not prop.check(c, result, x):
                    report.counterexamples.append(Counterexample(
                        kind="property",
                        operation=operation,
                        n=n,
                        c=c,
                        x=x,
                        check=prop.name,
                        detail=f"{result} breaks {prop.description}",
                    ))
                    break


# ---------------------------------------------------------------------------
# Top-level runner
# ---------------------------------------------------------------------------

def _wide_divisors(n: int) -> list[int]:
    """A spread of divisors for widths too large to sweep."""
    top = (1 << (n - 1)) - 1
    divisors = list(range(3, 64)) + [641, 1000, 10_000, 65_535, 65_537]
    divisors += [top, top - 1, top // 3, top // 7, (1 << (n // 2)) + 1]
    return [d for d in divisors if 0 < d <= top]


def run_search(n: int, exhaustive: bool, sample_count: int = 500) -> SearchReport:
    """Run the complete counterexample search for one width."""
    contract = build_contract(n)
    width = contract.width
    report = SearchReport(n=n)

    if exhaustive:
        constants = range(-(1 << n), 1 << n)
    else:
        constants = _wide_divisors(n) + [-3, -7, 0, 1, -1, 1 << (n - 1), width.umax]
    search_applicability_mismatches(contract, constants, report)

    for operation, op in contract.operations.items():
        if exhaustive:
            divisors = contract.divisors(operation)

            def operands_for(c, _operation=operation):
                return contract.operands(_operation)
        else:
            divisors = [d for d in _wide_divisors(n) if op.applicable(d)]

            def operands_for(c, _op=op):
                return generate_samples(width, _op.domain, c, sample_count, seed=c)

        search_constant_violations(contract, operation, divisors, operands_for, report)

    return report


def main() -> None:
    """Run counterexample search across every supported width."""
    configs = [(8, True), (16, False), (32, False), (64, False)]

    all_passed = True
    for n, exhaustive in configs:
        report = run_search(n, exhaustive)
        print(report.summary())
        if not report.passed:
            all_passed = False

    if all_passed:
        print("\nALL WIDTHS PASSED")
    else:
        print("\nCOUNTEREXAMPLES FOUND")
        sys.exit(1)


if __name__ == "__main__":
    main()
