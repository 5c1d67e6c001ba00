"""Windowed pagination over the AppEngine datastream endpoint.

The endpoint returns at most `limit` samples of one interface path per
request, restricted to a time window. DatastreamPaginator walks that window
page by page, moving the window boundary past the last sample it returned, so
that an unbounded history can be consumed without holding it in memory.

Boundaries are kept in integer nanoseconds, the precision of the server, so
samples less than a microsecond apart are neither skipped nor repeated.
"""

from datetime import datetime
from typing import Iterator, List, Optional, Union

from astarte_connector.sources.appengine.appengine_errors import MalformedResponseError
from astarte_connector.sources.appengine.appengine_flatten import parse_datastream_value
from astarte_connector.sources.appengine.appengine_http import AppEngineClient
from astarte_connector.sources.appengine.appengine_utils import (
    DEFAULT_PAGE_SIZE,
    DatastreamValue,
    ResultOrder,
    datetime_to_ns,
    format_ns,
    parse_ts,
    parse_ts_ns,
)


def datastream_path(realm: str, device_id: str, interface_name: str, interface_path: str = "") -> str:
    """Build the API path of an interface, or of one path within it."""
    if interface_path and not interface_path.startswith("/"):
        interface_path = "/" + interface_path
    return f"/v1/{realm}/devices/{device_id}/interfaces/{interface_name}{interface_path}"


def _to_ns(value: Union[datetime, str, None]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        return parse_ts_ns(value)
    return datetime_to_ns(value)


class DatastreamPaginator:  # pylint: disable=too-many-instance-attributes
    """Pull-based cursor over the samples of one datastream interface path.

    Not safe for concurrent use; one owner calls get_next_page() until
    has_next_page() turns false. since/to of None mean the window is open on
    that side. resume_after continues strictly after an already consumed
    sample, e.g. one stored as an ingestion cursor; pass the RFC3339 string
    from next_window_cursor to keep nanosecond precision.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        client: AppEngineClient,
        realm: str,
        device_id: str,
        interface_name: str,
        interface_path: str,
        since: Union[datetime, str, None] = None,
        to: Union[datetime, str, None] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        order: ResultOrder = ResultOrder.ASCENDING,
        resume_after: Union[datetime, str, None] = None,
    ) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")

        self._client = client
        self._base_path = datastream_path(realm, device_id, interface_name, interface_path)
        self._window_start = _to_ns(since)
        self._window_end = _to_ns(to)
        self._next_window_boundary = _to_ns(resume_after)
        self._page_size = page_size
        self._order = order
        self._has_next_page = True

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def order(self) -> ResultOrder:
        return self._order

    @property
    def next_window_boundary(self) -> Optional[datetime]:
        """Timestamp of the last sample returned so far, truncated to microseconds."""
        if self._next_window_boundary is None:
            return None
        return parse_ts(format_ns(self._next_window_boundary))

    @property
    def next_window_cursor(self) -> Optional[str]:
        """RFC3339Nano timestamp of the last sample returned so far, if any."""
        if self._next_window_boundary is None:
            return None
        return format_ns(self._next_window_boundary)

    def has_next_page(self) -> bool:
        return self._has_next_page

    def get_next_page(self) -> List[DatastreamValue]:
        """Fetch the next page of samples.

        Returns an empty list without issuing a request once exhausted.
        has_next_page() turns false when the server's page is shorter than
        page_size, even if samples already returned were dropped from it.

        Raises:
            TransportError: If the request fails. The window is left untouched,
                so calling again retries the same page.
            MalformedSampleError: If a sample in the page cannot be parsed.
            MalformedResponseError: If the payload is not a list.
        """
        if not self._has_next_page:
            return []

        raw_page = self._client.get_data(self._base_path, params=self._build_params())
        if not isinstance(raw_page, list):
            raise MalformedResponseError(
                f"Expected a list of samples from {self._base_path}, "
                f"got {type(raw_page).__name__}"
            )

        page = sorted(
            (parse_datastream_value(sample) for sample in raw_page),
            key=lambda sample: sample.timestamp_ns,
            reverse=self._order is ResultOrder.DESCENDING,
        )
        page = [sample for sample in page if self._is_beyond_boundary(sample.timestamp_ns)]

        if page:
            self._next_window_boundary = page[-1].timestamp_ns
        if len(raw_page) < self._page_size or not page:
            self._has_next_page = False

        return page

    def iter_pages(self) -> Iterator[List[DatastreamValue]]:
        """Yield non-empty pages until the paginator is exhausted."""
        while self._has_next_page:
            page = self.get_next_page()
            if page:
                yield page

    def _is_beyond_boundary(self, timestamp_ns: int) -> bool:
        if self._next_window_boundary is None:
            return True
        if self._order is ResultOrder.ASCENDING:
            return timestamp_ns > self._next_window_boundary
        return timestamp_ns < self._next_window_boundary

    def _build_params(self) -> dict:
        params = {"limit": self._page_size}
        boundary = self._next_window_boundary

        if self._order is ResultOrder.ASCENDING:
            if boundary is not None:
                params["since_after"] = format_ns(boundary)
            elif self._window_start is not None:
                params["since"] = format_ns(self._window_start)
            if self._window_end is not None:
                params["to"] = format_ns(self._window_end)
        else:
            if self._window_start is not None:
                params["since"] = format_ns(self._window_start)
            if boundary is not None:
                params["to"] = format_ns(boundary)
            elif self._window_end is not None:
                params["to"] = format_ns(self._window_end)

        return params


def get_last_datastreams(  # pylint: disable=too-many-arguments
    client: AppEngineClient,
    realm: str,
    device_id: str,
    interface_name: str,
    interface_path: str,
    limit: int,
    max_page_size: int = DEFAULT_PAGE_SIZE,
) -> List[DatastreamValue]:
    """Return the newest samples of an interface path, newest first.

    A positive limit caps the result at exactly that many samples and stops
    fetching as soon as it is reached. A non-positive limit returns the whole
    history; prefer DatastreamPaginator for that, since everything is held
    in memory.
    """
    page_size = min(limit, max_page_size) if limit > 0 else max_page_size
    paginator = DatastreamPaginator(
        client,
        realm,
        device_id,
        interface_name,
        interface_path,
        page_size=page_size,
        order=ResultOrder.DESCENDING,
    )

    result: List[DatastreamValue] = []
    while paginator.has_next_page():
        page = paginator.get_next_page()

        if limit > 0:
            total = len(result) + len(page)
            if total == limit:
                return result + page
            if total > limit:
                return result + page[: limit - len(result)]

        result.extend(page)

    return result
