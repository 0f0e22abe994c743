"""
Fetch pacing strategies.

The runner picks one policy at startup from whether the privileged stream
endpoint is in use, and asks it two things on every page:

- next_fetch_delay: how long to wait before issuing the next request
- max_read_ahead: how many fetches may be in flight beyond the page being processed
"""

from abc import ABC, abstractmethod
from models.base import PacingMode


class PacingPolicy(ABC):

    mode: PacingMode

    @property
    @abstractmethod
    def max_read_ahead(self) -> int:
        ...

    @abstractmethod
    def next_fetch_delay(self, elapsed_since_last_fetch: float) -> float:
        """Seconds to sleep before the next fetch, given time since the previous one started"""
        ...


class StandardPacing(PacingPolicy):
    """
    Strictly sequential fetching spaced to stay under a known rate limit.

    With 10 requests per minute the interval is 6 seconds; time spent
    transforming and writing counts toward it.
    """

    mode = PacingMode.STANDARD

    def __init__(self, requests_per_minute: int = 10):
        if requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1")
        self.requests_per_minute = requests_per_minute
        self.interval = 60.0 / requests_per_minute

    @property
    def max_read_ahead(self) -> int:
        return 0

    def next_fetch_delay(self, elapsed_since_last_fetch: float) -> float:
        return max(0.0, self.interval - elapsed_since_last_fetch)


class OverlappedPacing(PacingPolicy):
    """No throttling; the next page is fetched while the current one is written."""

    mode = PacingMode.OVERLAPPED

    @property
    def max_read_ahead(self) -> int:
        return 1

    def next_fetch_delay(self, elapsed_since_last_fetch: float) -> float:
        return 0.0


def select_pacing(privileged: bool, requests_per_minute: int = 10) -> PacingPolicy:
    """Overlapped on the privileged endpoint, standard otherwise"""
    if privileged:
        return OverlappedPacing()
    return StandardPacing(requests_per_minute)
