"""Vector codec tests."""

import math

import pytest

from semantic_triage.exceptions import CorruptData
from semantic_triage.services.codec import decode_vector, encode_vector


def test_round_trip_within_float32_precision():
    original = [0.1, 0.2, 0.3, -0.4, -0.5]
    decoded = decode_vector(encode_vector(original))

    assert len(decoded) == len(original)
    for got, want in zip(decoded, original):
        assert got == pytest.approx(want, abs=1e-6)


def test_four_bytes_per_element():
    vector = [math.pi, math.e, math.sqrt(2)]
    assert len(encode_vector(vector)) == 12


def test_little_endian_ieee754_layout():
    assert encode_vector([1.0]) == b"\x00\x00\x80\x3f"
    assert encode_vector([-2.0, 0.5]) == b"\x00\x00\x00\xc0" + b"\x00\x00\x00\x3f"


def test_empty_vector():
    assert encode_vector([]) == b""
    assert decode_vector(b"") == []


def test_exact_float32_values_survive_unchanged():
    vector = [0.5, -0.25, 1024.0, 0.0]
    assert decode_vector(encode_vector(vector)) == vector


@pytest.mark.parametrize("size", [1, 2, 3, 5, 7])
def test_decode_rejects_partial_floats(size):
    with pytest.raises(CorruptData):
        decode_vector(b"\x00" * size)


def test_corrupt_data_is_a_value_error():
    with pytest.raises(ValueError):
        decode_vector(b"\x01\x02\x03")
