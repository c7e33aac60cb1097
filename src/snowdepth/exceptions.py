"""Exception hierarchy for snowdepth ingestion."""


class IngestError(Exception):
    """Base class for all ingestion errors."""


class MissingCredentialError(IngestError):
    """Raised when a source is invoked without its required token, key or endpoint."""


class FetchError(IngestError):
    """A fetch-level failure: network error or non-success HTTP status."""


class SnotelFetchError(FetchError):
    """SNOTEL report generator request failed."""


class NOAAFetchError(FetchError):
    """NOAA Climate Data Online request failed."""


class RateLimitError(NOAAFetchError):
    """NOAA kept answering 429 after the retry ceiling was reached."""


class BulletinFetchError(FetchError):
    """NWS text bulletin request failed."""


class CDECFetchError(FetchError):
    """CDEC CSV servlet request failed."""


class ResortFeedFetchError(FetchError):
    """Resort conditions feed request failed."""
