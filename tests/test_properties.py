"""Property-based tests using Hypothesis.

These tests verify the division and divisibility identities for
random widths, divisors and operands, including 32 and 64 bits where
exhaustive checking is infeasible.
"""
from __future__ import annotations

from hypothesis import assume, given, settings
from hypothesis import strategies as st

from contracts import truncdiv
from lowering import (
    is_divisible,
    signed_divide,
    signed_divide_by,
    signed_remainder,
    unsigned_divide,
    unsigned_remainder,
)
from magic import (
    can_reduce_divisibility,
    can_reduce_signed_divide,
    can_reduce_unsigned_divide,
    divisibility_magic,
    signed_magic,
    unsigned_magic,
)
from widths import rotate_right, width_of

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

widths = st.sampled_from([8, 16, 32, 64])


@st.composite
def unsigned_case(draw):
    """(n, d, x) with d a reducible n-bit divisor and x an n-bit operand."""
    n = draw(widths)
    d = draw(st.integers(min_value=3, max_value=(1 << n) - 1))
    assume(can_reduce_unsigned_divide(n, d))
    x = draw(st.one_of(
        st.integers(min_value=0, max_value=(1 << n) - 1),
        st.integers(min_value=0, max_value=((1 << n) - 1) // d).map(lambda q: q * d),
    ))
    return n, d, x


@st.composite
def signed_case(draw):
    """(n, c, x) with c a reducible positive divisor and x a signed operand."""
    n = draw(widths)
    c = draw(st.integers(min_value=3, max_value=(1 << (n - 1)) - 1))
    assume(can_reduce_signed_divide(c))
    x = draw(st.integers(min_value=-(1 << (n - 1)), max_value=(1 << (n - 1)) - 1))
    return n, c, x


# ===================================================================
# UNSIGNED DIVISION
# ===================================================================

class TestUnsignedProperties:

    @given(case=unsigned_case())
    @settings(max_examples=500)
    def test_quotient_identity(self, case):
        n, d, x = case
        magic = unsigned_magic(n, d)
        assert (x * (magic.multiplier + (1 << n))) >> (n + magic.shift) == x // d

    @given(case=unsigned_case())
    @settings(max_examples=500)
    def test_lowered_quotient(self, case):
        n, d, x = case
        assert unsigned_divide(x, unsigned_magic(n, d), d, n) == x // d

    @given(case=unsigned_case())
    def test_remainder(self, case):
        n, d, x = case
        assert unsigned_remainder(x, unsigned_magic(n, d), d, n) == x % d

    @given(n=widths, d=st.integers(min_value=3, max_value=2**64 - 1))
    def test_multiplier_fits_n_bits(self, n, d):
        assume(can_reduce_unsigned_divide(n, d))
        magic = unsigned_magic(n, d)
        assert 0 <= magic.multiplier < 1 << n
        assert 2 <= magic.shift <= n


# ===================================================================
# SIGNED DIVISION
# ===================================================================

class TestSignedProperties:

    @given(case=signed_case())
    @settings(max_examples=500)
    def test_quotient_identity(self, case):
        n, c, x = case
        magic = signed_magic(n, c)
        q = ((x * magic.multiplier) >> (n + magic.shift)) + (1 if x < 0 else 0)
        assert q == truncdiv(x, c)

    @given(case=signed_case())
    @settings(max_examples=500)
    def test_lowered_quotient(self, case):
        n, c, x = case
        assert signed_divide(x, signed_magic(n, c), n) == truncdiv(x, c)

    @given(case=signed_case())
    def test_negative_divisor(self, case):
        n, c, x = case
        assert signed_divide_by(x, -c, n) == truncdiv(x, -c)

    @given(case=signed_case())
    def test_remainder_sign_follows_dividend(self, case):
        n, c, x = case
        r = signed_remainder(x, c, n)
        assert r == x - truncdiv(x, c) * c
        assert r == 0 or (r < 0) == (x < 0)
        assert abs(r) < c

    @given(case=signed_case())
    def test_multiplier_bits(self, case):
        n, c, _ = case
        m = signed_magic(n, c).multiplier
        assert m >> (n - 1) == 1


# ===================================================================
# DIVISIBILITY
# ===================================================================

class TestDivisibilityProperties:

    @given(case=unsigned_case())
    @settings(max_examples=500)
    def test_rotate_compare_identity(self, case):
        n, d, x = case
        assume(can_reduce_divisibility(n, d))
        magic = divisibility_magic(n, d)
        rotated = rotate_right(x * magic.inverse, magic.trailing_zeros, width_of(n))
        assert (rotated <= magic.max_quotient) == (x % d == 0)

    @given(case=unsigned_case())
    def test_lowered_matches_modulo(self, case):
        n, d, x = case
        assert is_divisible(x, divisibility_magic(n, d), n) == (x % d == 0)

    @given(n=widths, d=st.integers(min_value=3, max_value=2**64 - 1))
    def test_inverse(self, n, d):
        assume(can_reduce_divisibility(n, d))
        d &= (1 << n) - 1
        magic = divisibility_magic(n, d)
        d0 = d >> magic.trailing_zeros
        assert d0 & 1 == 1
        assert (magic.inverse * d0) % (1 << n) == 1
        assert magic.max_quotient * d <= (1 << n) - 1 < (magic.max_quotient + 1) * d
