import base64

import numpy as np
import pytest

from exceptions import MalformedLogitsError
from mask.logits_codec import decode_logits, decode_logits_response, encode_logits


def test_stored_logits_survive_at_half_precision() -> None:
    rng = np.random.default_rng(2)
    logits = rng.normal(scale=4.0, size=(16, 12)).astype(np.float32)

    stored = encode_logits(logits)
    decoded = decode_logits(stored)

    assert stored["shape"] == [16, 12]
    assert stored["dtype"] == "float16"
    assert decoded.dtype == np.float32
    np.testing.assert_array_equal(decoded, logits.astype(np.float16).astype(np.float32))


def test_service_payload_float32() -> None:
    logits = np.arange(6, dtype=np.float32).reshape(2, 3) - 2.5
    payload = base64.b64encode(logits.astype("<f4").tobytes()).decode()

    np.testing.assert_array_equal(decode_logits_response(payload, [2, 3]), logits)


def test_empty_logits_decode_to_empty_array() -> None:
    decoded = decode_logits(encode_logits(np.zeros((0, 0), dtype=np.float32)))
    assert decoded.shape == (0, 0)


@pytest.mark.parametrize(
    "payload,shape,dtype",
    [
        ("not base64!!", [1, 1], "float32"),
        (base64.b64encode(b"\x00" * 8).decode(), [3, 3], "float32"),
        (base64.b64encode(b"\x00" * 4).decode(), [4], "float32"),
        (base64.b64encode(b"\x00" * 4).decode(), ["a", 1], "float32"),
        (base64.b64encode(b"\x00" * 4).decode(), [1, 1], "int8"),
        (base64.b64encode(b"\x00" * 4).decode(), [-1, -1], "float32"),
    ],
)
def test_malformed_payloads(payload, shape, dtype) -> None:
    with pytest.raises(MalformedLogitsError):
        decode_logits_response(payload, shape, dtype)


def test_stored_logits_missing_fields() -> None:
    with pytest.raises(MalformedLogitsError):
        decode_logits({"shape": [1, 1]})
    with pytest.raises(MalformedLogitsError):
        decode_logits(None)


def test_encode_requires_2d() -> None:
    with pytest.raises(ValueError):
        encode_logits(np.zeros(4))
