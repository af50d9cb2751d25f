from hypothesis import given
from hypothesis import strategies as st

from xen_telemetry.engine import units

finite = st.floats(min_value=-1e9, max_value=1e9, allow_nan=False, allow_infinity=False)


def test_round2_rounds_half_up():
    assert units.round2(0.125) == 0.13
    assert units.round2(-0.125) == -0.12
    assert units.round2(2.0) == 2.0


def test_conversions():
    assert units.bytes_to_bits(1.23456) == 9.88
    assert units.ratio_to_percent(0.5) == 50.0
    assert units.mib_to_bytes(2.0) == 2097160.0
    assert units.kb_to_bytes(1.5) == 1500.0
    assert units.us_to_ms(1500) == 1.5


def test_kb_to_bytes_floors():
    assert units.kb_to_bytes(2.0019) == 2001.0


def test_rounded_sum_and_mean():
    assert units.rounded_sum([10.005, 20.003]) == 30.01
    assert units.rounded_mean([10.0, 20.0, 30.0]) == 20.0


@given(finite)
def test_round2_is_idempotent(value):
    once = units.round2(value)
    assert units.round2(once) == once


@given(finite)
def test_round2_stays_within_half_a_cent(value):
    assert abs(units.round2(value) - value) <= 0.0051
