from __future__ import annotations

import copy
from typing import Mapping, Optional, Protocol

import httpx

from .availability import DEFAULT_WEEKLY_HOURS


class HoursServiceError(Exception):
    """Represents failures while loading the opening hours document."""


class HoursSource(Protocol):
    def fetch_hours(self) -> Mapping: ...


class HTTPHoursClient:
    def __init__(self, base_url: str, timeout: float = 5.0, client: Optional[httpx.Client] = None):
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def fetch_hours(self) -> Mapping:
        try:
            response = self._client.get(f"{self._base_url}/hours")
        except httpx.HTTPError as exc:
            raise HoursServiceError(f"Hours-Service nicht erreichbar: {exc}") from exc

        if response.status_code >= 400:
            raise HoursServiceError(
                f"Oeffnungszeiten konnten nicht geladen werden ({response.status_code}): {response.text}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise HoursServiceError(f"Antwort ist kein JSON: {exc}") from exc

        hours = payload.get("hours") if isinstance(payload, dict) else None
        if not isinstance(hours, dict):
            raise HoursServiceError("Antwort enthaelt kein 'hours'-Objekt.")
        return hours

    def close(self) -> None:
        self._client.close()


class StaticHoursSource:
    """Serves a fixed schedule, the default hours unless one is given."""

    def __init__(self, hours: Optional[Mapping] = None):
        self._hours = copy.deepcopy(dict(hours if hours is not None else DEFAULT_WEEKLY_HOURS))

    def fetch_hours(self) -> Mapping:
        return copy.deepcopy(self._hours)
