"""
Tests for the stand-alone counterexample search.

A clean run must report nothing; deliberately broken computers and
predicates must show up under the operation they belong to.
"""
from __future__ import annotations

import contracts
import magic
from magic import Operation, SignedMagic
from validation.counterexample_search import run_search


class TestCleanSearch:
    def test_every_byte_divisor(self):
        report = run_search(8, exhaustive=True)
        assert report.passed, report.summary()
        assert report.divisors[Operation.UNSIGNED_DIVIDE] == 247
        assert report.divisors[Operation.SIGNED_DIVIDE] == 120
        assert report.divisors[Operation.DIVISIBILITY] == 247

    def test_sampled_word(self):
        report = run_search(64, exhaustive=False, sample_count=50)
        assert report.passed, report.summary()
        assert all(report.checks[op] > report.divisors[op] for op in Operation)

    def test_summary_lists_each_operation(self):
        summary = run_search(8, exhaustive=True).summary()
        assert summary.startswith("--- n=8 ---")
        assert "divisors=247" in summary
        for operation in Operation:
            assert operation.value in summary
        assert "ALL PASSED" in summary


class TestSearchFindsBreakage:
    def test_wrong_signed_constants(self, monkeypatch):
        monkeypatch.setattr(
            contracts, "signed_magic",
            lambda n, c: SignedMagic(shift=1, multiplier=170),
        )
        report = run_search(8, exhaustive=False, sample_count=50)
        assert not report.passed
        assert report.found(Operation.UNSIGNED_DIVIDE) == []
        assert report.found(Operation.DIVISIBILITY) == []
        kinds = {cx.kind for cx in report.found(Operation.SIGNED_DIVIDE)}
        assert {"invariant", "property"} <= kinds
        assert "FAILED" in report.summary()

    def test_tripped_derivation_is_fatal(self, monkeypatch):
        monkeypatch.setattr(magic, "ceil_div", lambda a, b: 0)
        report = run_search(16, exhaustive=False, sample_count=20)
        for operation, derivation in [
            (Operation.UNSIGNED_DIVIDE, "unsigned"),
            (Operation.SIGNED_DIVIDE, "signed"),
        ]:
            found = report.found(operation)
            assert found
            assert {cx.kind for cx in found} == {"fatal"}
            assert {cx.check for cx in found} == {derivation}
        assert report.found(Operation.DIVISIBILITY) == []

    def test_predicate_mismatch(self, monkeypatch):
        monkeypatch.setattr(contracts, "can_reduce_divisibility", lambda n, c: True)
        report = run_search(16, exhaustive=False, sample_count=20)
        found = report.found(Operation.DIVISIBILITY)
        assert {cx.kind for cx in found} == {"applicability"}
        assert {0, 1, 1 << 15} <= {cx.c for cx in found}
        assert report.found(Operation.UNSIGNED_DIVIDE) == []
