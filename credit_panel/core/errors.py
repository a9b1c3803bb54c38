"""
Error taxonomy shared by the panel components.

Business-rule rejections (an expired coupon, a purchase under the floor)
are returned as data, not raised. Only bad input and upstream failures
are exceptions.
"""


class PanelError(Exception):
    """Base class for all Credit Panel errors."""


class ValidationError(PanelError, ValueError):
    """Input has the wrong shape or is out of range."""


class UpstreamFailure(PanelError):
    """An external collaborator (the record store) failed."""


class StoreError(UpstreamFailure):
    """A read or write against the record store failed."""


class MalformedRecordError(UpstreamFailure):
    """A stored record could not be interpreted."""


class RankingUnavailable(UpstreamFailure):
    """The reseller ranking could not be built."""

    def __init__(self, message: str = "Ranking unavailable"):
        super().__init__(message)
