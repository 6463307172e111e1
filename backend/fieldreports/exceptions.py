"""Error taxonomy for report processing.

Only ``MandatoryDataError`` and ``DeliveryError`` reach the queue's retry
counter; the rest are absorbed by the component that raised them.
"""


class ReportError(Exception):
    """Base class for report processing failures."""


class MandatoryDataError(ReportError):
    """The triggering field (or its farm/user join) could not be loaded."""


class DeliveryError(ReportError):
    """The report email could not be sent after all attempts."""


class WeatherError(ReportError):
    """Weather data could not be fetched or parsed."""


class NarrativeError(ReportError):
    """The narrative provider failed or returned nothing."""
