from datetime import datetime, timedelta, timezone

import pytest

from astarte_connector.sources.appengine.appengine_errors import TransportError
from astarte_connector.sources.appengine.appengine_utils import isoformat_nano, parse_ts_ns


BASE_TIME = datetime(2023, 1, 1, tzinfo=timezone.utc)


def make_samples(count, start=BASE_TIME, step=timedelta(seconds=1)):
    """Build raw datastream samples, one per step, oldest first."""
    samples = []
    for i in range(count):
        ts = start + i * step
        samples.append(
            {
                "value": i,
                "timestamp": isoformat_nano(ts),
                "reception_timestamp": isoformat_nano(ts + timedelta(milliseconds=100)),
            }
        )
    return samples


class FakeDatastreamClient:
    """In-memory stand-in for AppEngineClient serving one datastream path.

    Honors limit, since (inclusive), since_after (exclusive) and to (exclusive).
    With newest_first the `limit` newest samples in the window are returned,
    otherwise the oldest ones.
    """

    def __init__(self, samples, newest_first=False, max_page=None):
        self.samples = samples
        self.newest_first = newest_first
        self.max_page = max_page
        self.calls = []
        self.fail_next = 0

    def get_data(self, path, params=None):
        params = dict(params or {})
        self.calls.append((path, params))

        if self.fail_next:
            self.fail_next -= 1
            raise TransportError("Unexpected status 503", status_code=503, body="unavailable")

        window = self.samples
        if "since" in params:
            since = parse_ts_ns(params["since"])
            window = [s for s in window if parse_ts_ns(s["timestamp"]) >= since]
        if "since_after" in params:
            since_after = parse_ts_ns(params["since_after"])
            window = [s for s in window if parse_ts_ns(s["timestamp"]) > since_after]
        if "to" in params:
            to = parse_ts_ns(params["to"])
            window = [s for s in window if parse_ts_ns(s["timestamp"]) < to]

        limit = int(params.get("limit", len(window)))
        if self.max_page is not None:
            limit = min(limit, self.max_page)
        if self.newest_first:
            return list(reversed(window))[:limit]
        return window[:limit]


@pytest.fixture
def fake_client_factory():
    return FakeDatastreamClient


@pytest.fixture
def samples_factory():
    return make_samples
