"""Tests for the transform module."""

from datetime import datetime, timezone

import orjson

from freematics_decoder.cipher import FrameDecodeError
from freematics_decoder.models import MalformedFrame, PositionRecord
from freematics_decoder.transform import MAX_RAW_PAYLOAD_BYTES, Transformer


def _record() -> PositionRecord:
    record = PositionRecord(
        device_id="GT3000",
        time=datetime(2023, 2, 1, 12, 34, 56, 780000, tzinfo=timezone.utc),
        valid=True,
        latitude=-33.86,
        longitude=151.21,
        speed=53.99,
        course=270,
    )
    record.set("rpm", 2500)
    record.set("io2457", "abc")
    return record


def test_position_mapping() -> None:
    """All record fields land in the NDJSON object."""
    xform = Transformer(instance_id="test-01", source_name="frames.txt")
    line = orjson.loads(xform.transform(_record()))

    assert line["event_type"] == "position"
    assert line["device_id"] == "GT3000"
    assert line["protocol"] == "freematics"
    assert line["valid"] is True
    assert line["outdated"] is False
    assert line["latitude"] == -33.86
    assert line["course"] == 270
    assert line["time"].startswith("2023-02-01T12:34:56.78")
    assert line["attributes"] == {"rpm": 2500, "io2457": "abc"}
    assert line["source"] == {"instance_id": "test-01", "input": "frames.txt"}
    assert "received_at" in line


def test_ack_record() -> None:
    xform = Transformer(instance_id="test-01")
    line = orjson.loads(xform.transform_ack("frames.txt:3", "1#EV=1,RX=1,TS=100*42"))
    assert line["event_type"] == "ack"
    assert line["address"] == "frames.txt:3"
    assert line["frame"] == "1#EV=1,RX=1,TS=100*42"


def test_malformed_record() -> None:
    xform = Transformer(instance_id="test-01")
    malformed = xform.malformed("ChaCha!!", FrameDecodeError("bad_encoding", "nope"))
    assert isinstance(malformed, MalformedFrame)

    line = orjson.loads(xform.transform_malformed(malformed))
    assert line["event_type"] == "malformed"
    assert line["error"]["code"] == "bad_encoding"
    assert line["error"]["message"] == "nope"
    assert line["error"]["raw_payload"] == "ChaCha!!"
    assert line["error"]["raw_payload_truncated"] is False


def test_raw_payload_truncation() -> None:
    """Frames exceeding 4096 bytes are truncated in malformed records."""
    xform = Transformer()
    raw = "ChaCha" + "x" * (MAX_RAW_PAYLOAD_BYTES + 1000)
    malformed = xform.malformed(raw, FrameDecodeError("bad_encoding", "too long"))
    assert malformed.error["raw_payload_truncated"] is True
    assert len(malformed.error["raw_payload"]) <= MAX_RAW_PAYLOAD_BYTES


def test_truncation_counts_bytes() -> None:
    """Multi-byte characters are cut on a character boundary within the byte limit."""
    raw = "é" * MAX_RAW_PAYLOAD_BYTES
    malformed = Transformer().malformed(raw, FrameDecodeError("bad_encoding", "too long"))
    payload = malformed.error["raw_payload"]
    assert len(payload.encode("utf-8")) <= MAX_RAW_PAYLOAD_BYTES
    assert payload == "é" * (MAX_RAW_PAYLOAD_BYTES // 2)


def test_output_is_newline_terminated_bytes() -> None:
    data = Transformer().transform(_record())
    assert isinstance(data, bytes)
    assert data.endswith(b"\n")
