from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

import httpx

from .constants import FACILITIES_HEADER, MAX_FACILITIES
from .models import Facility

logger = logging.getLogger(__name__)

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"


class FacilityLookupError(RuntimeError):
    pass


class FacilityFinder:
    def __init__(
        self,
        api_key: str | None,
        radius_m: int = 5000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.radius_m = radius_m
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=8.0))

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.client.get(url, params={**params, "key": self.api_key})
        except httpx.HTTPError as exc:
            raise FacilityLookupError(f"Places request failed: {exc}") from exc

        if response.status_code >= 400:
            raise FacilityLookupError(f"Places request returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise FacilityLookupError("Places response was not valid JSON") from exc
        if not isinstance(payload, dict):
            raise FacilityLookupError("Places response must be an object")
        return payload

    async def _fetch_phone(self, place_id: str | None) -> str | None:
        if not place_id:
            return None
        try:
            payload = await self._get_json(
                f"{PLACES_BASE_URL}/details/json",
                {"place_id": place_id, "fields": "formatted_phone_number"},
            )
        except FacilityLookupError as exc:
            logger.warning("Place details lookup failed for %s: %s", place_id, exc)
            return None

        result = payload.get("result") or {}
        phone = result.get("formatted_phone_number") if isinstance(result, dict) else None
        return phone.strip() if isinstance(phone, str) and phone.strip() else None

    async def find_nearby(self, lat: float, lng: float) -> list[Facility]:
        if not self.api_key:
            logger.warning("GOOGLE_PLACES_API_KEY is not set, skipping facility lookup")
            return []

        payload = await self._get_json(
            f"{PLACES_BASE_URL}/nearbysearch/json",
            {
                "location": f"{lat},{lng}",
                "radius": self.radius_m,
                "type": "hospital",
            },
        )
        places = [p for p in payload.get("results") or [] if isinstance(p, dict)][:MAX_FACILITIES]

        phones = await asyncio.gather(*(self._fetch_phone(p.get("place_id")) for p in places))
        return [
            Facility(
                name=str(place.get("name") or "Unknown"),
                address=str(place.get("vicinity") or ""),
                phone=phone,
            )
            for place, phone in zip(places, phones)
        ]


def phone_link(phone: str) -> str:
    return re.sub(r"[^+\d]", "", phone)


def format_facilities(facilities: list[Facility]) -> str:
    lines = [FACILITIES_HEADER, ""]
    for index, facility in enumerate(facilities, start=1):
        lines.append(f"{index}. {facility.name}")
        if facility.address:
            lines.append(facility.address)
        if facility.phone:
            lines.append(f"📞 {facility.phone} (tel:{phone_link(facility.phone)})")
        else:
            lines.append("📞 Phone: Not available")
        lines.append("")
    return "\n".join(lines).strip()
