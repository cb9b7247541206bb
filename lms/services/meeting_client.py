"""Zoom-style video meeting client (server-to-server OAuth)."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import httpx

from lms.core.config import Settings
from lms.core.errors import MeetingProviderError
from lms.services.credential_cache import CachedCredential

logger = logging.getLogger(__name__)

TOKEN_URL = "https://zoom.us/oauth/token"
API_BASE_URL = "https://api.zoom.us/v2"


@dataclass(frozen=True, slots=True)
class Meeting:
    id: str
    start_url: str
    join_url: str
    password: str | None


class ZoomMeetingClient:
    def __init__(
        self,
        *,
        account_id: str,
        client_id: str,
        client_secret: str,
        http: httpx.AsyncClient,
        now: Callable[[], float] = time.time,
        token_url: str = TOKEN_URL,
        api_base_url: str = API_BASE_URL,
    ) -> None:
        self._account_id = account_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = http
        self._token_url = token_url
        self._api = api_base_url.rstrip("/")
        self._credential = CachedCredential(
            self._fetch_token, provider="meeting", now=now
        )

    def __repr__(self) -> str:
        return f"ZoomMeetingClient(account_id={self._account_id!r})"

    async def _fetch_token(self) -> tuple[str, int]:
        try:
            response = await self._http.post(
                self._token_url,
                params={
                    "grant_type": "account_credentials",
                    "account_id": self._account_id,
                },
                auth=(self._client_id, self._client_secret),
                timeout=10,
            )
        except httpx.HTTPError as exc:
            raise MeetingProviderError("Failed to authenticate with meeting provider") from exc
        if response.is_error:
            logger.error("Meeting provider token request failed: status=%d", response.status_code)
            raise MeetingProviderError("Failed to authenticate with meeting provider")
        data = response.json()
        return str(data["access_token"]), int(data.get("expires_in", 3600))

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        token = await self._credential.get()
        try:
            response = await self._http.request(
                method,
                f"{self._api}{path}",
                headers={"Authorization": f"Bearer {token}"},
                timeout=10,
                **kwargs,
            )
        except httpx.HTTPError as exc:
            raise MeetingProviderError() from exc
        if response.status_code == 401:
            # Token revoked early; the next call fetches a new one
            self._credential.invalidate()
        return response

    async def create_meeting(
        self,
        *,
        topic: str,
        start_time: datetime,
        duration: int,
        agenda: str | None = None,
        timezone: str | None = None,
    ) -> Meeting:
        body: dict[str, object] = {
            "topic": topic,
            "type": 2,  # scheduled
            "start_time": start_time.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "duration": duration,
            "agenda": agenda or "",
            "settings": {
                "host_video": True,
                "participant_video": False,
                "join_before_host": False,
                "mute_upon_entry": True,
                "waiting_room": True,
            },
        }
        if timezone:
            body["timezone"] = timezone

        response = await self._request("POST", "/users/me/meetings", json=body)
        if response.is_error:
            logger.error("Create meeting failed: status=%d", response.status_code)
            raise MeetingProviderError("Failed to create meeting", status=response.status_code)
        data = response.json()
        return Meeting(
            id=str(data["id"]),
            start_url=data["start_url"],
            join_url=data["join_url"],
            password=data.get("password"),
        )

    async def delete_meeting(self, meeting_id: str) -> None:
        response = await self._request("DELETE", f"/meetings/{meeting_id}")
        # Already gone counts as deleted
        if response.is_error and response.status_code != 404:
            raise MeetingProviderError("Failed to delete meeting", status=response.status_code)


def build_meeting_client(
    settings: Settings, http: httpx.AsyncClient
) -> ZoomMeetingClient | None:
    if not settings.meetings_enabled:
        return None
    return ZoomMeetingClient(
        account_id=settings.meeting_account_id,
        client_id=settings.meeting_client_id,
        client_secret=settings.meeting_client_secret,
        http=http,
    )
