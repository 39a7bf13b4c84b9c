"""Contract conformance tests.

These tests are *driven by* the contract: they iterate over every
result invariant and semantic property defined in
``contracts.build_contract`` and verify the computers satisfy them.

At n=8 every reducible divisor is checked against every operand.  At
n=16 a handful of divisors are checked against every operand.
"""
from __future__ import annotations

import pytest

from contracts import build_contract
from magic import Operation

CONTRACT_8 = build_contract(8)
CONTRACT_16 = build_contract(16)

DIVISORS_16 = [3, 7, 14, 1000, 32_767]


def _violations(contract, operation, c):
    op = contract.operations[operation]
    result = op.compute(c)
    failures = [
        f"invariant {inv.name} for c={c}: {result}"
        for inv in op.invariants
        if not inv.check(c, result)
    ]
    for prop in op.properties:
        for x in contract.operands(operation):
            if not prop.check(c, result, x):
                failures.append(f"property {prop.name} for c={c}, x={x}: {result}")
                break
    return failures


# ===================================================================
# EXHAUSTIVE n=8
# ===================================================================

class TestExhaustiveByte:

    @pytest.mark.parametrize("operation", list(Operation), ids=lambda o: o.value)
    def test_every_divisor_every_operand(self, operation):
        divisors = CONTRACT_8.divisors(operation)
        assert divisors, "no reducible divisors found"
        failures = []
        for c in divisors:
            failures.extend(_violations(CONTRACT_8, operation, c))
        assert not failures, "\n".join(failures[:10])

    def test_divisor_counts(self):
        # 256 byte values minus zero and the eight powers of two
        assert len(CONTRACT_8.divisors(Operation.UNSIGNED_DIVIDE)) == 247
        assert len(CONTRACT_8.divisors(Operation.DIVISIBILITY)) == 247
        # 1..127 minus the seven powers of two below 128
        assert len(CONTRACT_8.divisors(Operation.SIGNED_DIVIDE)) == 120


# ===================================================================
# SELECTED n=16
# ===================================================================

class TestSelectedHalfword:

    @pytest.mark.parametrize("operation", list(Operation), ids=lambda o: o.value)
    @pytest.mark.parametrize("c", DIVISORS_16)
    def test_divisor_every_operand(self, operation, c):
        failures = _violations(CONTRACT_16, operation, c)
        assert not failures, "\n".join(failures)

    @pytest.mark.parametrize("operation", [Operation.UNSIGNED_DIVIDE, Operation.DIVISIBILITY],
                             ids=lambda o: o.value)
    def test_all_ones_divisor(self, operation):
        assert not _violations(CONTRACT_16, operation, 0xFFFF)


# ===================================================================
# CONTRACT SHAPE
# ===================================================================

class TestContractShape:

    @pytest.mark.parametrize("n", [8, 16, 32, 64])
    def test_every_operation_has_checks(self, n):
        contract = build_contract(n)
        assert set(contract.operations) == set(Operation)
        for op in contract.operations.values():
            assert op.invariants
            assert op.properties

    def test_operand_domains(self):
        assert CONTRACT_8.operands(Operation.SIGNED_DIVIDE) == range(-128, 128)
        assert CONTRACT_8.operands(Operation.UNSIGNED_DIVIDE) == range(0, 256)
