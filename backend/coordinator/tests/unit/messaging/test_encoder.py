import math

import pytest

from coordinator.messaging.encoder import MAX_FRAME_BYTES, DecodeError, decode, encode

# Under the size cap but nested far past the interpreter recursion limit.
DEEPLY_NESTED = '{"type":"ping","data":{"x":' + "[" * 4000 + "]" * 4000 + "}}"


class TestEncode:
    def test_compact_output(self):
        assert encode({"type": "pong", "data": {"timestamp": 1}}) == '{"type":"pong","data":{"timestamp":1}}'

    def test_non_finite_numbers_rejected(self):
        with pytest.raises(ValueError):
            encode({"x": math.inf})


class TestDecode:
    def test_object(self):
        assert decode('{"type":"ping"}') == {"type": "ping"}

    @pytest.mark.parametrize(
        "raw",
        ["not json", "{", "", DEEPLY_NESTED],
        ids=["text", "truncated", "empty", "deeply_nested"],
    )
    def test_invalid_json(self, raw):
        with pytest.raises(DecodeError, match="Invalid JSON format"):
            decode(raw)

    @pytest.mark.parametrize("raw", ["[1, 2]", '"ping"', "42", "null"])
    def test_non_object_rejected(self, raw):
        with pytest.raises(DecodeError, match="expected JSON object"):
            decode(raw)

    def test_size_limit_counts_utf8_bytes(self):
        # each "é" is two bytes in UTF-8
        padding = "é" * (MAX_FRAME_BYTES // 2)
        raw = '{"m":"' + padding + '"}'

        with pytest.raises(DecodeError, match="Message too large"):
            decode(raw)

    def test_frame_at_limit_accepted(self):
        raw = '{"m":"' + "a" * (MAX_FRAME_BYTES - 8) + '"}'

        assert len(raw) == MAX_FRAME_BYTES
        assert decode(raw)["m"].startswith("a")

    def test_deeply_nested_frame_fits_size_cap(self):
        assert len(DEEPLY_NESTED.encode("utf-8")) < MAX_FRAME_BYTES
