"""AppEngine API calls for devices, interfaces and interface values."""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, List

from astarte_connector.sources.appengine.appengine_errors import MalformedResponseError
from astarte_connector.sources.appengine.appengine_flatten import (
    flatten_aggregate_sample,
    flatten_datastream_snapshot,
    flatten_properties,
)
from astarte_connector.sources.appengine.appengine_http import AppEngineClient
from astarte_connector.sources.appengine.appengine_paginator import (
    DatastreamPaginator,
    datastream_path,
    get_last_datastreams,
)
from astarte_connector.sources.appengine.appengine_utils import (
    DEFAULT_PAGE_SIZE,
    DatastreamAggregateValue,
    DatastreamValue,
    ResultOrder,
    isoformat_nano,
    utcnow,
)


class AppEngineService:
    """Device registry and interface value calls against one AppEngine API.

    Every call takes the realm explicitly; the client carries the token.
    """

    def __init__(self, client: AppEngineClient, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self.client = client
        self.page_size = page_size

    def list_devices(self, realm: str) -> List[str]:
        return self._get_list(f"/v1/{realm}/devices")

    def get_device(self, realm: str, device_id: str) -> Dict[str, Any]:
        """Return the device details (status, introspection, aliases, ...) as sent."""
        return self._get_object(f"/v1/{realm}/devices/{device_id}")

    def list_device_interfaces(self, realm: str, device_id: str) -> List[str]:
        """List the interfaces in the device's introspection."""
        return self._get_list(f"/v1/{realm}/devices/{device_id}/interfaces")

    def get_properties(self, realm: str, device_id: str, interface_name: str) -> Dict[str, Any]:
        """Return every property currently set on an interface, keyed by path."""
        tree = self._get_object(datastream_path(realm, device_id, interface_name))
        return flatten_properties(tree)

    def get_datastream_snapshot(
        self, realm: str, device_id: str, interface_name: str
    ) -> Dict[str, DatastreamValue]:
        """Return the last sample of every path of a datastream interface."""
        tree = self._get_object(datastream_path(realm, device_id, interface_name))
        return flatten_datastream_snapshot(tree)

    def get_last_datastreams(  # pylint: disable=too-many-arguments
        self,
        realm: str,
        device_id: str,
        interface_name: str,
        interface_path: str,
        limit: int,
    ) -> List[DatastreamValue]:
        """Return the last `limit` samples on a path, newest first.

        A limit <= 0 returns the whole history. Consider
        get_datastreams_paginator in that case.
        """
        return get_last_datastreams(
            self.client,
            realm,
            device_id,
            interface_name,
            interface_path,
            limit,
            max_page_size=self.page_size,
        )

    def get_datastreams_paginator(
        self,
        realm: str,
        device_id: str,
        interface_name: str,
        interface_path: str,
        order: ResultOrder = ResultOrder.ASCENDING,
    ) -> DatastreamPaginator:
        """Return a paginator over every sample on a path up to now."""
        return DatastreamPaginator(
            self.client,
            realm,
            device_id,
            interface_name,
            interface_path,
            to=utcnow(),
            page_size=self.page_size,
            order=order,
        )

    def get_datastreams_time_window_paginator(  # pylint: disable=too-many-arguments
        self,
        realm: str,
        device_id: str,
        interface_name: str,
        interface_path: str,
        since: datetime,
        to: datetime,
        order: ResultOrder = ResultOrder.ASCENDING,
    ) -> DatastreamPaginator:
        """Return a paginator over the samples on a path between since and to."""
        return DatastreamPaginator(
            self.client,
            realm,
            device_id,
            interface_name,
            interface_path,
            since=since,
            to=to,
            page_size=self.page_size,
            order=order,
        )

    def get_aggregate_datastream_snapshot(
        self, realm: str, device_id: str, interface_name: str
    ) -> DatastreamAggregateValue:
        """Return the last record of an aggregate interface, empty when there is none."""
        records = self._get_list(
            datastream_path(realm, device_id, interface_name), params={"limit": 1}
        )
        if not records:
            return DatastreamAggregateValue()
        return self._aggregate_records(records[:1])[0]

    def get_last_aggregate_datastreams(
        self, realm: str, device_id: str, interface_name: str, count: int
    ) -> List[DatastreamAggregateValue]:
        records = self._get_list(
            datastream_path(realm, device_id, interface_name), params={"limit": count}
        )
        return self._aggregate_records(records)

    def get_aggregate_datastreams_time_window(  # pylint: disable=too-many-arguments
        self,
        realm: str,
        device_id: str,
        interface_name: str,
        since: datetime,
        to: datetime,
    ) -> List[DatastreamAggregateValue]:
        records = self._get_list(
            datastream_path(realm, device_id, interface_name),
            params={"since": isoformat_nano(since), "to": isoformat_nano(to)},
        )
        return self._aggregate_records(records)

    def _aggregate_records(self, records: list) -> List[DatastreamAggregateValue]:
        for record in records:
            if not isinstance(record, Mapping):
                raise MalformedResponseError(
                    f"Expected aggregate records to be objects, got {type(record).__name__}"
                )
        return [flatten_aggregate_sample(record) for record in records]

    def _get_list(self, path: str, params: dict = None) -> list:
        data = self.client.get_data(path, params=params)
        if not isinstance(data, list):
            raise MalformedResponseError(
                f"Expected a list from {path}, got {type(data).__name__}"
            )
        return data

    def _get_object(self, path: str, params: dict = None) -> dict:
        data = self.client.get_data(path, params=params)
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"Expected an object from {path}, got {type(data).__name__}"
            )
        return data
