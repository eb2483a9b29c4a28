from __future__ import annotations


class DispatchError(Exception):
    """Base class for failures raised by the dispatcher."""


class FormatError(DispatchError, ValueError):
    """A time string is not a valid HH:MM value."""


class AdapterError(DispatchError):
    """The prayer-times API or the record store failed."""


class GenerationError(DispatchError):
    """The text generator failed or returned nothing usable."""


class DeliveryError(DispatchError):
    """A push delivery attempt failed."""


class ConfigurationError(DispatchError):
    pass
