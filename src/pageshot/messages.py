# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Wire messages exchanged between page-context routines and the controller.

Exactly three kinds travel over the channel, discriminated by ``type``:

- ``dimensions``       page -> controller, raw extent signals from the survey
- ``captureRequest`` / ``captureResponse``   viewport capture round-trip
- ``downloadRequest``  controller -> sink, the encoded artifact

Payloads are plain JSON-compatible dicts with camelCase keys, matching what
page-context JavaScript produces. Models accept either the wire alias or the
Python field name.
"""

from __future__ import annotations

import base64
import binascii
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveFloat, TypeAdapter, ValidationError

from . import PageGeometry

PNG_MIME = "image/png"
_DATA_URL_PREFIX = "data:"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ExtentSignals(_WireModel):
    """Layout measurements reported by the ``measure`` page routine.

    Different layouts report their extent inconsistently across body and
    documentElement, so all candidates are kept and the maximum wins.
    """

    heights: list[NonNegativeInt] = Field(default_factory=list)
    widths: list[NonNegativeInt] = Field(default_factory=list)
    viewport_width: NonNegativeInt = Field(alias="viewportWidth")
    viewport_height: NonNegativeInt = Field(alias="viewportHeight")
    scroll_y: NonNegativeInt = Field(0, alias="scrollY")
    device_pixel_ratio: PositiveFloat = Field(1.0, alias="devicePixelRatio")


class DimensionsMessage(_WireModel):
    type: Literal["dimensions"] = "dimensions"
    dimensions: ExtentSignals

    def to_geometry(self) -> PageGeometry:
        d = self.dimensions
        total_height = max([*d.heights, d.viewport_height])
        total_width = max([*d.widths, d.viewport_width])
        return PageGeometry(
            total_width=total_width,
            total_height=total_height,
            viewport_width=d.viewport_width,
            viewport_height=d.viewport_height,
            original_scroll_y=d.scroll_y,
            device_scale_factor=d.device_pixel_ratio,
        )


class CaptureRequest(_WireModel):
    type: Literal["captureRequest"] = "captureRequest"
    format: Literal["png"] = "png"


class CaptureResponse(_WireModel):
    type: Literal["captureResponse"] = "captureResponse"
    data_url: str = Field(alias="dataUrl")

    def image_bytes(self) -> bytes:
        return decode_data_url(self.data_url)


class DownloadRequest(_WireModel):
    type: Literal["downloadRequest"] = "downloadRequest"
    data_url: str = Field(alias="dataUrl")
    filename: str
    save_as: bool = Field(False, alias="saveAs")

    def artifact_bytes(self) -> bytes:
        return decode_data_url(self.data_url)


Message = Annotated[
    DimensionsMessage | CaptureRequest | CaptureResponse | DownloadRequest,
    Field(discriminator="type"),
]

_MESSAGE_ADAPTER: TypeAdapter[Message] = TypeAdapter(Message)


def parse_message(payload: Any) -> DimensionsMessage | CaptureRequest | CaptureResponse | DownloadRequest:
    """Validate a wire payload into its message model.

    Raises ValueError for anything that is not one of the known kinds
    or is missing required fields.
    """
    if not isinstance(payload, dict):
        raise ValueError(f"message must be an object, got {type(payload).__name__}")
    try:
        return _MESSAGE_ADAPTER.validate_python(payload)
    except ValidationError as e:
        kind = payload.get("type", "<missing>")
        raise ValueError(f"invalid {kind!r} message: {e.error_count()} validation error(s)") from e


# ── data: URIs ───────────────────────────────────────────────────────


def encode_data_url(data: bytes, mime: str = PNG_MIME) -> str:
    return f"{_DATA_URL_PREFIX}{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(url: str) -> bytes:
    """Return the bytes carried by a base64 ``data:`` URI."""
    if not url.startswith(_DATA_URL_PREFIX):
        raise ValueError("not a data: URL")
    header, sep, body = url.partition(",")
    if not sep or not header.endswith(";base64"):
        raise ValueError("data: URL is not base64-encoded")
    try:
        return base64.b64decode(body, validate=True)
    except binascii.Error as e:
        raise ValueError(f"malformed base64 payload: {e}") from e
