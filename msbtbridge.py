# -*- coding: utf-8 -*-
"""
Entry points for callers embedding the MSBT codec from another runtime.

Nothing raised by the codec crosses this boundary: each call returns a
ConversionResult holding either an output buffer or the FormatError that stopped
the conversion. A returned buffer belongs to the caller, who hands it back with
free_binary() or free_string() once it has been copied out.
"""
from dataclasses import dataclass
from typing import Optional

import msbt


class BufferReleasedError(RuntimeError):
    """A buffer was used or released after it had already been released."""


class BridgeBuffer:
    """An output buffer owned by the caller until it is released."""

    def __init__(self, payload, kind):
        self._payload = payload
        self.kind = kind
        self.length = len(payload)

    @property
    def released(self):
        return self._payload is None

    @property
    def payload(self):
        if self._payload is None:
            raise BufferReleasedError("Buffer has already been released")
        return self._payload

    def release(self):
        if self._payload is None:
            raise BufferReleasedError("Buffer has already been released")
        self._payload = None
        self.length = 0


@dataclass
class ConversionResult:
    buffer: Optional[BridgeBuffer] = None
    error: Optional[msbt.FormatError] = None

    @property
    def ok(self):
        return self.error is None

    @property
    def length(self):
        return self.buffer.length if self.buffer is not None else 0

    @property
    def message(self):
        return str(self.error) if self.error is not None else ""


def string_to_binary(text):
    """Convert a text document to an MSBT container; the result reports the byte length."""
    try:
        binary = msbt.from_text(text).to_binary()
    except msbt.FormatError as e:
        return ConversionResult(error=e)
    return ConversionResult(buffer=BridgeBuffer(binary, "binary"))


def binary_to_string(buffer, length):
    """Convert the first `length` bytes of an MSBT buffer to a text document."""
    view = memoryview(buffer).cast('B')
    if length < 0 or length > len(view):
        return ConversionResult(error=msbt.TruncatedContainerError(
            "Requested {} bytes from a buffer of {}".format(length, len(view))))
    try:
        text = msbt.from_binary(view[:length]).to_text()
    except msbt.FormatError as e:
        return ConversionResult(error=e)
    return ConversionResult(buffer=BridgeBuffer(text, "string"))


def _release(result, kind):
    if result.buffer is None:
        raise BufferReleasedError("Result carries no buffer to release")
    if result.buffer.kind != kind:
        raise TypeError("Expected a {} buffer, got a {} buffer".format(kind, result.buffer.kind))
    result.buffer.release()


def free_binary(result):
    """Release the buffer returned by string_to_binary()."""
    _release(result, "binary")


def free_string(result):
    """Release the buffer returned by binary_to_string()."""
    _release(result, "string")
