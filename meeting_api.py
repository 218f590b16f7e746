#!/usr/bin/env python3
"""
Meetings backend API client.

Fetches the fully resolved protocol snapshot (meeting, agenda items, vote
records grouped by item, protocol hash) that the generator consumes.
Transient failures are retried with exponential backoff; anything else is
reported as UpstreamFetchFailed before the generator is ever invoked.

Usage:
    from meeting_api import MeetingApiClient

    client = MeetingApiClient()
    data = client.fetch_protocol_data("42")
"""

from typing import Optional

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import get_config
from logging_config import get_logger
from protocol_errors import UpstreamFetchFailed
from protocol_types import ProtocolData

logger = get_logger(__name__)

PROTOCOL_DATA_PATH = "/api/meetings/{meeting_id}/protocol/data"


class TransientApiError(Exception):
    """A 5xx response worth retrying."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class MeetingApiClient:
    """
    Client for the meetings REST API.

    Args:
        base_url: Backend root URL (default: MEETING_API_BASE_URL)
        token: Bearer token (default: MEETING_API_TOKEN)
        timeout: Request timeout in seconds (default: API_TIMEOUT)
        session: Optional requests.Session (for connection reuse or testing)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        cfg = get_config()
        self.base_url = (base_url or cfg.meeting_api_base_url).rstrip("/")
        self.timeout = timeout or cfg.api_timeout
        self.session = session or requests.Session()
        token = token or cfg.meeting_api_token
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        self.session.headers["Accept"] = "application/json"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout, TransientApiError)),
        reraise=True
    )
    def _get_json(self, path: str) -> dict:
        """
        GET a JSON document, retrying connection errors, timeouts and 5xx.

        Raises:
            requests.HTTPError: On a 4xx response (not retried)
            TransientApiError: On a 5xx response after 3 attempts
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"GET {url}")
        response = self.session.get(url, timeout=self.timeout)
        if response.status_code >= 500:
            raise TransientApiError(response.status_code, f"Server error {response.status_code} for {url}")
        response.raise_for_status()
        return response.json()

    def fetch_protocol_data(self, meeting_id: str, building_address: Optional[str] = None) -> ProtocolData:
        """
        Fetch and validate the protocol snapshot of a meeting.

        Args:
            meeting_id: Meeting identifier
            building_address: Optional address override for the protocol title

        Returns:
            Validated ProtocolData

        Raises:
            UpstreamFetchFailed: The snapshot could not be fetched
            InvalidSnapshot: The snapshot arrived but is incomplete or inconsistent
        """
        path = PROTOCOL_DATA_PATH.format(meeting_id=meeting_id)
        try:
            body = self._get_json(path)
        except TransientApiError as e:
            raise UpstreamFetchFailed(str(e), meeting_id, status_code=e.status_code) from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise UpstreamFetchFailed(f"Protocol data request rejected: {e}", meeting_id, status_code=status) from e
        except requests.RequestException as e:
            raise UpstreamFetchFailed(f"Protocol data request failed: {e}", meeting_id) from e
        except ValueError as e:
            raise UpstreamFetchFailed(f"Protocol data is not valid JSON: {e}", meeting_id) from e

        # Some deployments wrap payloads as {"success": true, "data": {...}}
        if isinstance(body, dict) and "meeting" not in body and isinstance(body.get("data"), dict):
            body = body["data"]
        if not isinstance(body, dict):
            raise UpstreamFetchFailed("Protocol data has unexpected shape", meeting_id)

        data = ProtocolData.from_dict(body, building_address=building_address)
        logger.info(
            f"Fetched protocol data for meeting {meeting_id}: "
            f"{len(data.agenda_items)} agenda items, {len(data.vote_records)} vote records"
        )
        return data
