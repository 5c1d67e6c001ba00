"""Exceptions raised by the AppEngine client and the datastream helpers."""

from typing import Optional

import requests


class AppEngineError(Exception):
    """Base class for every AppEngine connector error."""


class TransportError(AppEngineError, requests.HTTPError):
    """A request failed at the network level or returned an unexpected status.

    Attributes:
        status_code: HTTP status of the response, or None when no response arrived.
        body: Response body (truncated), empty when no response arrived.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        response: Optional[requests.Response] = None,
    ) -> None:
        super().__init__(message, response=response)
        self.status_code = status_code
        self.body = body


class MalformedSampleError(AppEngineError, ValueError):
    """A datastream sample has a missing or unparseable timestamp."""


class MalformedResponseError(AppEngineError, ValueError):
    """A response envelope is missing `data` or holds the wrong JSON kind."""
