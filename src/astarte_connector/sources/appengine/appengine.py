"""
Astarte AppEngine connector.

Exposes the devices of one realm, their interfaces, and the values those
interfaces hold as tables. Snapshot tables are re-read in full on every run;
`datastream_values` is read incrementally with a time-window paginator and
resumes after the last ingested sample.
"""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pyspark.sql.types import StructType

from astarte_connector.interface import LakeflowConnect
from astarte_connector.sources.appengine.appengine_http import (
    AppEngineClient,
    parse_client_options,
)
from astarte_connector.sources.appengine.appengine_paginator import DatastreamPaginator
from astarte_connector.sources.appengine.appengine_schemas import (
    REQUIRED_TABLE_OPTIONS,
    SUPPORTED_TABLES,
    TABLE_METADATA,
    TABLE_SCHEMAS,
)
from astarte_connector.sources.appengine.appengine_service import AppEngineService
from astarte_connector.sources.appengine.appengine_utils import (
    ZERO_TIMESTAMP,
    DatastreamValue,
    ResultOrder,
    as_int,
    clamp_page_size,
    format_ns,
    isoformat_nano,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES_PER_BATCH = 10


class AppEngineLakeflowConnect(LakeflowConnect):
    def __init__(self, options: dict[str, str]) -> None:
        """
        Initialize the AppEngine connector with connection-level options.

        Expected options:
            - appengine_url or astarte_url: API location.
            - token: Bearer token authorised for the realm's AppEngine API.
            - realm: Realm whose devices are read.
            - page_size (optional): Largest datastream page (default 10000).
        """
        super().__init__(options)
        config = parse_client_options(options)

        self.realm = config.realm
        self.page_size = config.page_size
        self._client = AppEngineClient.from_options(config)
        self._service = AppEngineService(self._client, page_size=config.page_size)

    def list_tables(self) -> list[str]:
        return SUPPORTED_TABLES.copy()

    def get_table_schema(self, table_name: str, table_options: dict[str, str]) -> StructType:
        self._validate_table(table_name)
        return TABLE_SCHEMAS[table_name]

    def read_table_metadata(self, table_name: str, table_options: dict[str, str]) -> dict:
        self._validate_table(table_name)
        return dict(TABLE_METADATA[table_name])

    def read_table(
        self, table_name: str, start_offset: dict, table_options: dict[str, str]
    ) -> tuple[Iterator[dict], dict]:
        """
        Read records from a table.

        Required table_options:
            - device_interfaces: device_id
            - properties, datastream_snapshot, aggregate_datastream_values:
              device_id, interface
            - datastream_values: device_id, interface, path

        Optional table_options:
            - datastream_values: start_time, end_time (RFC3339), page_size,
              max_pages_per_batch (default 10).
            - aggregate_datastream_values: limit (default 1).
        """
        self._validate_table(table_name)
        self._require_options(table_name, table_options)

        reader_map = {
            "devices": self._read_devices,
            "device_interfaces": self._read_device_interfaces,
            "properties": self._read_properties,
            "datastream_snapshot": self._read_datastream_snapshot,
            "aggregate_datastream_values": self._read_aggregate_datastream_values,
        }

        logger.info("Reading table %s from realm %s", table_name, self.realm)
        if table_name == "datastream_values":
            return self._read_datastream_values(start_offset, table_options)
        return iter(reader_map[table_name](table_options)), {}

    # ─── Helpers ──────────────────────────────────────────────────────────────

    def _validate_table(self, table_name: str) -> None:
        if table_name not in TABLE_SCHEMAS:
            raise ValueError(f"Unsupported table: {table_name!r}")

    def _require_options(self, table_name: str, table_options: Dict[str, str]) -> None:
        missing = [
            key for key in REQUIRED_TABLE_OPTIONS[table_name] if not table_options.get(key)
        ]
        if missing:
            raise ValueError(
                f"table_configuration for '{table_name}' must include "
                f"non-empty {', '.join(repr(key) for key in missing)}"
            )

    # ─── Snapshot Tables ──────────────────────────────────────────────────────

    def _read_devices(self, table_options: Dict[str, str]) -> List[dict]:
        return [{"device_id": device_id} for device_id in self._service.list_devices(self.realm)]

    def _read_device_interfaces(self, table_options: Dict[str, str]) -> List[dict]:
        device_id = table_options["device_id"]
        interfaces = self._service.list_device_interfaces(self.realm, device_id)
        return [{"device_id": device_id, "interface_name": name} for name in interfaces]

    def _read_properties(self, table_options: Dict[str, str]) -> List[dict]:
        device_id = table_options["device_id"]
        interface = table_options["interface"]
        properties = self._service.get_properties(self.realm, device_id, interface)
        return [
            {
                "device_id": device_id,
                "interface_name": interface,
                "path": path,
                "value": _to_json(value),
            }
            for path, value in sorted(properties.items())
        ]

    def _read_datastream_snapshot(self, table_options: Dict[str, str]) -> List[dict]:
        device_id = table_options["device_id"]
        interface = table_options["interface"]
        snapshot = self._service.get_datastream_snapshot(self.realm, device_id, interface)
        return [
            _datastream_record(device_id, interface, path, sample)
            for path, sample in sorted(snapshot.items())
        ]

    def _read_aggregate_datastream_values(self, table_options: Dict[str, str]) -> List[dict]:
        device_id = table_options["device_id"]
        interface = table_options["interface"]
        limit = max(1, as_int(table_options.get("limit"), 1))
        records = self._service.get_last_aggregate_datastreams(
            self.realm, device_id, interface, limit
        )
        return [
            {
                "device_id": device_id,
                "interface_name": interface,
                "timestamp": r.raw.get("timestamp"),
                "record": _to_json(r.raw),
            }
            for r in records
        ]

    # ─── Incremental Datastream Table ─────────────────────────────────────────

    def _read_datastream_values(
        self, start_offset: Optional[dict], table_options: Dict[str, str]
    ) -> Tuple[Iterator[dict], dict]:
        """Read the next batch of samples on one path, oldest first.

        The offset is {"cursor": <RFC3339 timestamp of the last sample read>}.
        When no sample lies past the cursor, start_offset is returned unchanged.
        """
        device_id = table_options["device_id"]
        interface = table_options["interface"]
        path = table_options["path"]

        cursor = _cursor_from_offset(start_offset)
        start_time = table_options.get("start_time")
        end_time = table_options.get("end_time")
        max_pages = max(
            1, as_int(table_options.get("max_pages_per_batch"), DEFAULT_MAX_PAGES_PER_BATCH)
        )
        page_size = clamp_page_size(
            as_int(table_options.get("page_size"), self.page_size), self.page_size
        )

        paginator = DatastreamPaginator(
            self._client,
            self.realm,
            device_id,
            interface,
            path,
            since=start_time or None,
            to=end_time or utcnow(),
            page_size=page_size,
            order=ResultOrder.ASCENDING,
            resume_after=cursor,
        )

        records: List[dict] = []
        pages_fetched = 0
        while paginator.has_next_page() and pages_fetched < max_pages:
            page = paginator.get_next_page()
            pages_fetched += 1
            records.extend(_datastream_record(device_id, interface, path, s) for s in page)

        logger.info(
            "Read %d samples from %s%s of device %s in %d pages",
            len(records),
            interface,
            path,
            device_id,
            pages_fetched,
        )

        if not records:
            return iter([]), start_offset if start_offset else {}

        next_offset = {"cursor": paginator.next_window_cursor}
        return iter(records), next_offset


def _cursor_from_offset(start_offset: Optional[dict]) -> Optional[str]:
    if start_offset and isinstance(start_offset, dict):
        cursor = start_offset.get("cursor")
        if isinstance(cursor, str) and cursor:
            return cursor
    return None


def _to_json(value: Any) -> str:
    return json.dumps(value, default=str)


def _datastream_record(
    device_id: str, interface: str, path: str, sample: DatastreamValue
) -> dict:
    reception = sample.reception_timestamp
    return {
        "device_id": device_id,
        "interface_name": interface,
        "path": path,
        "value": _to_json(sample.value),
        "timestamp": (
            format_ns(sample.timestamp_ns)
            if sample.timestamp_ns is not None
            else isoformat_nano(sample.timestamp)
        ),
        "reception_timestamp": None if reception == ZERO_TIMESTAMP else isoformat_nano(reception),
    }
