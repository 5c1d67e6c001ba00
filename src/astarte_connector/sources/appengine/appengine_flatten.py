"""Flattening of interface value trees into path-addressed values.

Properties and datastream snapshots come back from AppEngine as nested JSON
objects that mirror the interface's path hierarchy. These helpers turn such a
tree into a flat mapping keyed by slash-delimited paths, for example
{"a": {"b": 1}} becomes {"/a/b": 1}.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict

from astarte_connector.sources.appengine.appengine_errors import MalformedSampleError
from astarte_connector.sources.appengine.appengine_utils import (
    ZERO_TIMESTAMP,
    DatastreamAggregateValue,
    DatastreamValue,
    datetime_to_ns,
    ensure_aware,
    parse_ts,
    parse_ts_ns,
)


def flatten_properties(tree: Mapping) -> Dict[str, Any]:
    """Flatten a properties tree into a path -> leaf value mapping.

    Any non-object value is a leaf, including None and lists.
    """
    return _flatten_properties(tree, "")


def _flatten_properties(node: Mapping, prefix: str) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, child in node.items():
        path = f"{prefix}/{key}"
        if isinstance(child, Mapping):
            result.update(_flatten_properties(child, path))
        else:
            result[path] = child
    return result


def flatten_datastream_snapshot(tree: Mapping) -> Dict[str, DatastreamValue]:
    """Flatten a datastream snapshot into a path -> DatastreamValue mapping.

    Descent stops at the first object holding a "value" key; that object is a
    terminal sample, even when "value" is itself an object. A tree that is a
    terminal sample at the top level maps to the empty path.

    Raises:
        MalformedSampleError: If a terminal sample has an invalid timestamp.
            No partial result is returned.
    """
    return _flatten_datastream(tree, "")


def _flatten_datastream(node: Mapping, prefix: str) -> Dict[str, DatastreamValue]:
    if "value" in node:
        return {prefix: parse_datastream_value(node, path=prefix)}

    result: Dict[str, DatastreamValue] = {}
    for key, child in node.items():
        # Scalars outside a terminal sample carry no timestamp
        if isinstance(child, Mapping):
            result.update(_flatten_datastream(child, f"{prefix}/{key}"))
    return result


def parse_datastream_value(sample: Mapping, path: str = "") -> DatastreamValue:
    """Parse one terminal sample into a DatastreamValue.

    The "timestamp" field must be a datetime or an RFC3339 string. An absent
    or unparseable "reception_timestamp" yields ZERO_TIMESTAMP.

    Raises:
        MalformedSampleError: If "timestamp" is absent, of another type, or
            fails to parse.
    """
    where = f" at {path!r}" if path else ""
    if not isinstance(sample, Mapping):
        raise MalformedSampleError(
            f"Unable to parse datastream{where}: expected an object, got {type(sample).__name__}"
        )
    raw_timestamp = sample.get("timestamp")

    if isinstance(raw_timestamp, datetime):
        timestamp = ensure_aware(raw_timestamp)
        timestamp_ns = datetime_to_ns(timestamp)
    elif isinstance(raw_timestamp, str):
        try:
            timestamp = parse_ts(raw_timestamp)
            timestamp_ns = parse_ts_ns(raw_timestamp)
        except ValueError as e:
            raise MalformedSampleError(f"Unable to parse datastream{where}: {e}") from e
    else:
        raise MalformedSampleError(
            f"Unable to parse datastream{where}: timestamp is "
            f"{type(raw_timestamp).__name__}, expected datetime or RFC3339 string"
        )

    return DatastreamValue(
        value=sample.get("value"),
        timestamp=timestamp,
        reception_timestamp=_parse_reception_timestamp(sample.get("reception_timestamp")),
        timestamp_ns=timestamp_ns,
    )


def _parse_reception_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return ensure_aware(raw)
    try:
        return parse_ts(raw)
    except ValueError:
        return ZERO_TIMESTAMP


def flatten_aggregate_sample(sample: Mapping) -> DatastreamAggregateValue:
    """Wrap one aggregate record; its inner layout depends on the interface schema."""
    return DatastreamAggregateValue(raw=dict(sample))
