"""Exception types raised by the RTOS evaluation layer."""

from __future__ import annotations


class RTOSError(RuntimeError):
    """Base class for RTOS evaluation failures."""


class RTOSNotFoundError(RTOSError):
    """Expression evaluated while halted but produced no usable value/reference."""


class RTOSDetectionError(RTOSError):
    """Detection failed permanently; the instance must not be reused."""
