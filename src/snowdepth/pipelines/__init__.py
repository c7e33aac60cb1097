"""Source adapters for snowdepth.

Each adapter fetches one upstream source and normalizes it to
ObservationRecord:
- snotel: NRCS SNOTEL report generator (CSV, per station)
- noaa: NOAA Climate Data Online (paged JSON, one request per calendar year)
- bulletin: NWS office text bulletins (free text, per reporting office)
- cdec: California Data Exchange Center (CSV, per station)
- resorts: ski resort conditions feed (JSON, per state, current day only)
"""

from snowdepth.models import SourceType

from .bulletin import BulletinAdapter
from .cdec import CDECAdapter
from .noaa import NOAAAdapter
from .resorts import ResortFeedAdapter
from .snotel import SnotelAdapter

ADAPTERS = {
    SourceType.AUTOMATED_SENSOR: SnotelAdapter,
    SourceType.FEDERAL_API: NOAAAdapter,
    SourceType.FEDERAL_BULLETIN: BulletinAdapter,
    SourceType.STATE_SENSOR: CDECAdapter,
    SourceType.RESORT_FEED: ResortFeedAdapter,
}

__all__ = [
    "ADAPTERS",
    "SnotelAdapter",
    "NOAAAdapter",
    "BulletinAdapter",
    "CDECAdapter",
    "ResortFeedAdapter",
]
