"""HTTP client and configuration for the AppEngine connector.

This module contains the option parsing that turns connection options into an
AppEngineOptions record, and the AppEngine API client that issues
authenticated GET requests and unwraps the {"data": ...} response envelope.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from astarte_connector.sources.appengine.appengine_errors import (
    MalformedResponseError,
    TransportError,
)
from astarte_connector.sources.appengine.appengine_utils import (
    DEFAULT_PAGE_SIZE,
    as_bool,
    as_int,
    clamp_page_size,
)

logger = logging.getLogger(__name__)

_MAX_BODY_CHARS = 2000


@dataclass
class AppEngineOptions:
    """Connection-level configuration for the AppEngine API."""

    base_url: str
    token: str
    realm: str
    page_size: int = DEFAULT_PAGE_SIZE
    timeout_seconds: int = 60
    verify_ssl: bool = True


def parse_client_options(options: Dict[str, str]) -> AppEngineOptions:
    """
    Parse connection options into an AppEngineOptions record.

    Args:
        options: Connection options. Recognised keys:
            - appengine_url: AppEngine API base URL.
            - astarte_url: Platform base URL, used as <astarte_url>/appengine
              when appengine_url is absent.
            - token (or access_token): Bearer token for the realm.
            - realm: Realm to query.
            - page_size (optional): Largest datastream page, max 10000.
            - timeout_seconds (optional): HTTP timeout, default 60.
            - verify_ssl (optional): TLS verification, default true.

    Returns:
        AppEngineOptions with parsed values.

    Raises:
        ValueError: If the base URL, token or realm is missing.
    """
    base_url = (options.get("appengine_url") or "").strip().rstrip("/")
    if not base_url:
        astarte_url = (options.get("astarte_url") or "").strip().rstrip("/")
        if not astarte_url:
            raise ValueError(
                "AppEngine connector requires either 'appengine_url' or 'astarte_url' in options"
            )
        base_url = f"{astarte_url}/appengine"

    token = options.get("token") or options.get("access_token")
    if not token:
        raise ValueError("AppEngine connector requires 'token' in options")

    realm = options.get("realm")
    if not realm:
        raise ValueError("AppEngine connector requires 'realm' in options")

    return AppEngineOptions(
        base_url=base_url,
        token=token,
        realm=realm,
        page_size=clamp_page_size(as_int(options.get("page_size"), DEFAULT_PAGE_SIZE)),
        timeout_seconds=as_int(options.get("timeout_seconds"), 60),
        verify_ssl=as_bool(options.get("verify_ssl"), default=True),
    )


class AppEngineClient:
    """HTTP client for the AppEngine API with bearer token authentication."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout_seconds: int = 60,
        verify_ssl: bool = True,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.verify_ssl = verify_ssl

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "Authorization": f"Bearer {token}",
            }
        )

    @classmethod
    def from_options(cls, options: AppEngineOptions) -> "AppEngineClient":
        return cls(
            base_url=options.base_url,
            token=options.token,
            timeout_seconds=options.timeout_seconds,
            verify_ssl=options.verify_ssl,
        )

    def get_json(
        self, path: str, params: Optional[Any] = None, expected_status: int = 200
    ) -> dict:
        """Make a GET request and return the decoded JSON body.

        Args:
            path: API path (e.g., "/v1/myrealm/devices").
            params: Query parameters.
            expected_status: The only status accepted as success.

        Returns:
            JSON response as dictionary.

        Raises:
            TransportError: On network failure, on any other status, or when
                the body is not JSON.
        """
        url = f"{self.base_url}{path}"
        logger.debug("GET %s params=%s", url, params)

        try:
            r = self.session.get(
                url, params=params, timeout=self.timeout_seconds, verify=self.verify_ssl
            )
        except requests.RequestException as e:
            logger.warning("GET %s failed: %s", url, e)
            raise TransportError(f"Request to {url} failed: {e}") from e

        if r.status_code != expected_status:
            body = (getattr(r, "text", None) or "")[:_MAX_BODY_CHARS]
            logger.warning("GET %s returned %s", url, r.status_code)
            raise TransportError(
                f"Unexpected status {r.status_code} from {url}. "
                f"Response body (truncated): {body}",
                status_code=r.status_code,
                body=body,
                response=r,
            )

        try:
            return r.json()
        except ValueError as e:
            raise TransportError(
                f"Response from {url} is not valid JSON",
                status_code=r.status_code,
                body=(r.text or "")[:_MAX_BODY_CHARS],
                response=r,
            ) from e

    def get_data(self, path: str, params: Optional[Any] = None) -> Any:
        """Make a GET request and return the payload of the {"data": ...} envelope.

        Raises:
            TransportError: As for get_json.
            MalformedResponseError: If the body is not an envelope with "data".
        """
        body = self.get_json(path, params=params)
        if not isinstance(body, dict) or "data" not in body:
            raise MalformedResponseError(f"Response from {path} has no 'data' envelope")
        return body["data"]
