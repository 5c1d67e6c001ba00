"""Astarte AppEngine source: devices, interfaces and datastreams of one realm."""

from astarte_connector.sources.appengine.appengine_errors import (
    AppEngineError,
    MalformedResponseError,
    MalformedSampleError,
    TransportError,
)
from astarte_connector.sources.appengine.appengine_flatten import (
    flatten_datastream_snapshot,
    flatten_properties,
)
from astarte_connector.sources.appengine.appengine_http import (
    AppEngineClient,
    AppEngineOptions,
    parse_client_options,
)
from astarte_connector.sources.appengine.appengine_paginator import (
    DatastreamPaginator,
    get_last_datastreams,
)
from astarte_connector.sources.appengine.appengine_service import AppEngineService
from astarte_connector.sources.appengine.appengine_utils import (
    DatastreamAggregateValue,
    DatastreamValue,
    ResultOrder,
)

__all__ = [
    "AppEngineClient",
    "AppEngineError",
    "AppEngineOptions",
    "AppEngineService",
    "DatastreamAggregateValue",
    "DatastreamPaginator",
    "DatastreamValue",
    "MalformedResponseError",
    "MalformedSampleError",
    "ResultOrder",
    "TransportError",
    "flatten_datastream_snapshot",
    "flatten_properties",
    "get_last_datastreams",
    "parse_client_options",
]
