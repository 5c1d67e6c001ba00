"""
AppEngine service tests. The HTTP client is mocked at get_data.

Run with: pytest tests/unit/sources/appengine/test_appengine_service.py -v
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from astarte_connector.sources.appengine.appengine_errors import (
    MalformedResponseError,
    MalformedSampleError,
    TransportError,
)
from astarte_connector.sources.appengine.appengine_paginator import DatastreamPaginator
from astarte_connector.sources.appengine.appengine_service import AppEngineService
from astarte_connector.sources.appengine.appengine_utils import (
    DatastreamAggregateValue,
    ResultOrder,
)


INTERFACE_PATH = "/v1/test/devices/dev1/interfaces/org.example.Sensors"


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def service(client):
    return AppEngineService(client, page_size=100)


class TestRegistryCalls:
    def test_list_devices(self, service, client):
        client.get_data.return_value = ["dev1", "dev2"]
        assert service.list_devices("test") == ["dev1", "dev2"]
        client.get_data.assert_called_once_with("/v1/test/devices", params=None)

    def test_get_device(self, service, client):
        details = {"id": "dev1", "connected": True, "introspection": {}}
        client.get_data.return_value = details
        assert service.get_device("test", "dev1") == details
        client.get_data.assert_called_once_with("/v1/test/devices/dev1", params=None)

    def test_list_device_interfaces(self, service, client):
        client.get_data.return_value = ["org.example.Sensors"]
        assert service.list_device_interfaces("test", "dev1") == ["org.example.Sensors"]
        client.get_data.assert_called_once_with("/v1/test/devices/dev1/interfaces", params=None)

    def test_wrong_payload_kind(self, service, client):
        client.get_data.return_value = {"dev1": {}}
        with pytest.raises(MalformedResponseError):
            service.list_devices("test")

    def test_transport_error_propagates(self, service, client):
        client.get_data.side_effect = TransportError("Unexpected status 403", status_code=403)
        with pytest.raises(TransportError):
            service.get_device("test", "dev1")


class TestInterfaceValues:
    def test_get_properties(self, service, client):
        client.get_data.return_value = {"a": {"b": 1, "c": {"d": 2}}}
        assert service.get_properties("test", "dev1", "org.example.Sensors") == {
            "/a/b": 1,
            "/a/c/d": 2,
        }
        client.get_data.assert_called_once_with(INTERFACE_PATH, params=None)

    def test_get_properties_empty(self, service, client):
        client.get_data.return_value = {}
        assert service.get_properties("test", "dev1", "org.example.Sensors") == {}

    def test_get_datastream_snapshot(self, service, client):
        client.get_data.return_value = {
            "temperature": {"value": 21.5, "timestamp": "2023-01-01T00:00:00Z"}
        }
        snapshot = service.get_datastream_snapshot("test", "dev1", "org.example.Sensors")
        assert snapshot["/temperature"].value == 21.5

    def test_get_datastream_snapshot_malformed(self, service, client):
        client.get_data.return_value = {"temperature": {"value": 21.5, "timestamp": 0}}
        with pytest.raises(MalformedSampleError):
            service.get_datastream_snapshot("test", "dev1", "org.example.Sensors")

    def test_get_last_datastreams_uses_service_page_size(self, service, client):
        client.get_data.return_value = [
            {"value": 1, "timestamp": "2023-01-01T00:00:00Z"},
            {"value": 2, "timestamp": "2023-01-01T00:00:01Z"},
        ]
        result = service.get_last_datastreams("test", "dev1", "org.example.Sensors", "/temp", 0)

        assert [s.value for s in result] == [2, 1]
        client.get_data.assert_called_once_with(INTERFACE_PATH + "/temp", params={"limit": 100})


class TestPaginatorFactories:
    def test_get_datastreams_paginator_ends_at_now(self, service, client):
        client.get_data.return_value = []
        paginator = service.get_datastreams_paginator(
            "test", "dev1", "org.example.Sensors", "/temp", ResultOrder.DESCENDING
        )

        assert isinstance(paginator, DatastreamPaginator)
        assert paginator.order is ResultOrder.DESCENDING
        assert paginator.page_size == 100

        paginator.get_next_page()
        _, kwargs = client.get_data.call_args
        assert set(kwargs["params"]) == {"limit", "to"}

    def test_time_window_paginator(self, service, client):
        client.get_data.return_value = []
        paginator = service.get_datastreams_time_window_paginator(
            "test", "dev1", "org.example.Sensors", "/temp",
            since=datetime(2023, 1, 1, tzinfo=timezone.utc),
            to=datetime(2023, 1, 2, tzinfo=timezone.utc),
        )

        paginator.get_next_page()

        client.get_data.assert_called_once_with(
            INTERFACE_PATH + "/temp",
            params={
                "limit": 100,
                "since": "2023-01-01T00:00:00Z",
                "to": "2023-01-02T00:00:00Z",
            },
        )


class TestAggregates:
    def test_snapshot(self, service, client):
        record = {"lat": 45.0, "lon": 9.0, "timestamp": "2023-01-01T00:00:00Z"}
        client.get_data.return_value = [record]

        result = service.get_aggregate_datastream_snapshot("test", "dev1", "org.example.Sensors")

        assert result == DatastreamAggregateValue(raw=record)
        client.get_data.assert_called_once_with(INTERFACE_PATH, params={"limit": 1})

    def test_snapshot_without_data_is_empty(self, service, client):
        client.get_data.return_value = []
        result = service.get_aggregate_datastream_snapshot("test", "dev1", "org.example.Sensors")
        assert result == DatastreamAggregateValue()

    def test_last_aggregates(self, service, client):
        client.get_data.return_value = [{"a": 1}, {"a": 2}]
        result = service.get_last_aggregate_datastreams("test", "dev1", "org.example.Sensors", 2)
        assert [r.raw for r in result] == [{"a": 1}, {"a": 2}]
        client.get_data.assert_called_once_with(INTERFACE_PATH, params={"limit": 2})

    def test_time_window(self, service, client):
        client.get_data.return_value = []
        result = service.get_aggregate_datastreams_time_window(
            "test", "dev1", "org.example.Sensors",
            since=datetime(2023, 1, 1, tzinfo=timezone.utc),
            to=datetime(2023, 1, 1, 0, 0, 0, 500000, tzinfo=timezone.utc),
        )
        assert result == []
        client.get_data.assert_called_once_with(
            INTERFACE_PATH,
            params={"since": "2023-01-01T00:00:00Z", "to": "2023-01-01T00:00:00.5Z"},
        )

    def test_non_object_record_is_rejected(self, service, client):
        client.get_data.return_value = [1]
        with pytest.raises(MalformedResponseError, match="int"):
            service.get_last_aggregate_datastreams("test", "dev1", "org.example.Sensors", 1)

    def test_non_object_snapshot_is_rejected(self, service, client):
        client.get_data.return_value = ["x"]
        with pytest.raises(MalformedResponseError):
            service.get_aggregate_datastream_snapshot("test", "dev1", "org.example.Sensors")
