"""Exception hierarchy for free_geocoder.

Only ``InvalidUsage`` and ``NotSupported`` reach callers of the public API.
The rest are raised between pipeline stages and turned into "no match" or a
lower-confidence match by the orchestrator.
"""


class GeocoderError(Exception):
    """Base exception for all free_geocoder errors."""


class InvalidUsage(GeocoderError, ValueError):
    """A required parameter is missing or empty."""

    def __init__(self, usage: str):
        self.usage = usage
        super().__init__(f"Usage: {usage}")


class NotSupported(GeocoderError, NotImplementedError):
    """The operation is out of scope for this geocoder."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} is not supported")


class ShapeUnrecognized(GeocoderError):
    """The input matches none of the known address shapes."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Unrecognized location shape: '{text}'")


class Unresolved(GeocoderError):
    """No administrative code could be derived for the components."""

    def __init__(self, description: str):
        self.description = description
        super().__init__(f"Could not resolve a region for '{description}'")


class LookupMiss(GeocoderError):
    """A single candidate query found nothing."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No row for '{key}'")


class CapabilityUnavailable(GeocoderError):
    """An optional address-segmentation library is not installed."""

    def __init__(self, capability: str, detail: str = ""):
        self.capability = capability
        message = f"{capability} is not available"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
