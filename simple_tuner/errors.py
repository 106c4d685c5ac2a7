from __future__ import annotations


class TunerError(Exception):
    pass


class ConfigurationError(TunerError, ValueError):
    """Invalid parameter combination; raised at construction time."""


class PermissionDenied(TunerError):
    """Capture is not authorized. Not retried automatically."""


class DeviceInitFailure(TunerError):
    """The capture device could not be opened or configured."""


class TransientReadFailure(TunerError):
    """A single chunk could not be read. The capture loop skips it."""
