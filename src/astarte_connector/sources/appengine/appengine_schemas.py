"""Static schema definitions for AppEngine connector tables.

This module contains all Spark StructType schema definitions and table metadata
for the AppEngine Lakeflow connector. Interface values have no fixed type, so
they are carried as JSON-encoded strings.
"""

from pyspark.sql.types import (
    StructType,
    StructField,
    StringType,
)


# =============================================================================
# Table Schemas
# =============================================================================

DEVICES_SCHEMA = StructType(
    [
        StructField("device_id", StringType(), False),
    ]
)

DEVICE_INTERFACES_SCHEMA = StructType(
    [
        StructField("device_id", StringType(), False),
        StructField("interface_name", StringType(), False),
    ]
)

PROPERTIES_SCHEMA = StructType(
    [
        StructField("device_id", StringType(), False),
        StructField("interface_name", StringType(), False),
        StructField("path", StringType(), False),
        StructField("value", StringType(), True),
    ]
)

DATASTREAM_SCHEMA = StructType(
    [
        StructField("device_id", StringType(), False),
        StructField("interface_name", StringType(), False),
        StructField("path", StringType(), False),
        StructField("value", StringType(), True),
        StructField("timestamp", StringType(), False),
        StructField("reception_timestamp", StringType(), True),
    ]
)
"""Shared by the snapshot and the incremental datastream tables.

Timestamps are RFC3339Nano strings; Spark timestamps would drop the
nanoseconds the datastream cursor depends on.
"""

AGGREGATE_DATASTREAM_SCHEMA = StructType(
    [
        StructField("device_id", StringType(), False),
        StructField("interface_name", StringType(), False),
        StructField("timestamp", StringType(), True),
        StructField("record", StringType(), True),
    ]
)


TABLE_SCHEMAS: dict[str, StructType] = {
    "devices": DEVICES_SCHEMA,
    "device_interfaces": DEVICE_INTERFACES_SCHEMA,
    "properties": PROPERTIES_SCHEMA,
    "datastream_snapshot": DATASTREAM_SCHEMA,
    "datastream_values": DATASTREAM_SCHEMA,
    "aggregate_datastream_values": AGGREGATE_DATASTREAM_SCHEMA,
}


# =============================================================================
# Table Metadata
# =============================================================================

TABLE_METADATA: dict[str, dict] = {
    "devices": {
        "primary_keys": ["device_id"],
        "ingestion_type": "snapshot",
    },
    "device_interfaces": {
        "primary_keys": ["device_id", "interface_name"],
        "ingestion_type": "snapshot",
    },
    "properties": {
        "primary_keys": ["device_id", "interface_name", "path"],
        "ingestion_type": "snapshot",
    },
    "datastream_snapshot": {
        "primary_keys": ["device_id", "interface_name", "path"],
        "ingestion_type": "snapshot",
    },
    "datastream_values": {
        "primary_keys": ["device_id", "interface_name", "path", "timestamp"],
        "cursor_field": "timestamp",
        "ingestion_type": "append",
    },
    "aggregate_datastream_values": {
        "primary_keys": ["device_id", "interface_name", "timestamp"],
        "ingestion_type": "snapshot",
    },
}

REQUIRED_TABLE_OPTIONS: dict[str, list[str]] = {
    "devices": [],
    "device_interfaces": ["device_id"],
    "properties": ["device_id", "interface"],
    "datastream_snapshot": ["device_id", "interface"],
    "datastream_values": ["device_id", "interface", "path"],
    "aggregate_datastream_values": ["device_id", "interface"],
}

SUPPORTED_TABLES: list[str] = list(TABLE_SCHEMAS.keys())
"""List of all table names supported by the AppEngine connector."""
