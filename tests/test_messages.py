# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for wire messages and data: URL helpers."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from pageshot.messages import (
    CaptureRequest,
    CaptureResponse,
    DimensionsMessage,
    DownloadRequest,
    ExtentSignals,
    decode_data_url,
    encode_data_url,
    parse_message,
)

# ---------------------------------------------------------------------------
# Discrimination
# ---------------------------------------------------------------------------


class TestParseMessage:
    def test_dimensions(self):
        msg = parse_message(
            {
                "type": "dimensions",
                "dimensions": {"heights": [10], "widths": [5], "viewportWidth": 5, "viewportHeight": 4, "scrollY": 2},
            }
        )
        assert isinstance(msg, DimensionsMessage)
        assert msg.dimensions.viewport_height == 4
        assert msg.dimensions.scroll_y == 2

    def test_capture_request_defaults_to_png(self):
        msg = parse_message({"type": "captureRequest"})
        assert isinstance(msg, CaptureRequest)
        assert msg.format == "png"

    def test_capture_response(self):
        msg = parse_message({"type": "captureResponse", "dataUrl": "data:image/png;base64,AAAA"})
        assert isinstance(msg, CaptureResponse)
        assert msg.image_bytes() == b"\x00\x00\x00"

    def test_download_request(self):
        msg = parse_message(
            {"type": "downloadRequest", "dataUrl": encode_data_url(b"png"), "filename": "a.png", "saveAs": True}
        )
        assert isinstance(msg, DownloadRequest)
        assert msg.save_as is True
        assert msg.artifact_bytes() == b"png"

    def test_unknown_fields_ignored(self):
        msg = parse_message({"type": "captureRequest", "tabId": 12})
        assert isinstance(msg, CaptureRequest)

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "scrollRequest"},
            {"dimensions": {}},
            {"type": "captureResponse"},
            {"type": "captureRequest", "format": "jpeg"},
            {"type": "downloadRequest", "dataUrl": "data:,x"},
        ],
    )
    def test_invalid_payload(self, payload):
        with pytest.raises(ValueError, match="invalid"):
            parse_message(payload)

    @pytest.mark.parametrize("payload", [None, [], "captureRequest", 3])
    def test_non_object(self, payload):
        with pytest.raises(ValueError, match="must be an object"):
            parse_message(payload)


class TestWireFormat:
    def test_to_wire_uses_camel_case(self):
        req = DownloadRequest(data_url="data:image/png;base64,", filename="x.png", save_as=False)
        assert req.to_wire() == {
            "type": "downloadRequest",
            "dataUrl": "data:image/png;base64,",
            "filename": "x.png",
            "saveAs": False,
        }

    def test_populate_by_alias_or_name(self):
        a = ExtentSignals(viewportWidth=1, viewportHeight=2)
        b = ExtentSignals(viewport_width=1, viewport_height=2)
        assert a == b

    def test_frozen(self):
        req = CaptureRequest()
        with pytest.raises(ValidationError):
            req.format = "png"

    def test_negative_signal_rejected(self):
        with pytest.raises(ValidationError):
            ExtentSignals(heights=[-1], viewportWidth=1, viewportHeight=1)


class TestToGeometry:
    def test_max_over_signals_and_viewport(self):
        msg = DimensionsMessage(
            dimensions=ExtentSignals(heights=[900, 2500, 2480], widths=[1200], viewport_width=1280, viewport_height=800)
        )
        g = msg.to_geometry()
        assert (g.total_width, g.total_height) == (1280, 2500)
        assert (g.viewport_width, g.viewport_height) == (1280, 800)


# ---------------------------------------------------------------------------
# data: URLs
# ---------------------------------------------------------------------------


class TestDataUrl:
    def test_encode(self):
        assert encode_data_url(b"hi") == "data:image/png;base64,aGk="

    def test_encode_other_mime(self):
        assert encode_data_url(b"", "image/jpeg") == "data:image/jpeg;base64,"

    def test_decode(self):
        assert decode_data_url("data:image/png;base64,aGk=") == b"hi"

    @pytest.mark.parametrize(
        ("url", "match"),
        [
            ("http://x/y.png", "not a data"),
            ("data:image/png,hi", "not base64"),
            ("data:image/png;base64", "not base64"),
            ("data:image/png;base64,@@@", "malformed"),
        ],
    )
    def test_decode_rejects(self, url, match):
        with pytest.raises(ValueError, match=match):
            decode_data_url(url)
