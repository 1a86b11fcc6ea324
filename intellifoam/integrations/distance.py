"""
distance.py — Intellifoam Driving Distance

Driving distance from the depot to a customer address, used by the travel
cost model. Geocoding via OpenStreetMap Nominatim, routing via OSRM.
Every failure is logged and returns None; the quote then falls back to
a manually entered distance.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)

COMPANY_ADDRESS = "Elektrikergatan 3, 80291 Gävle"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
OSRM_URL = "https://router.project-osrm.org/route/v1/driving"
USER_AGENT = "Intellifoam-Calculator/1.0"      # required by Nominatim
REQUEST_TIMEOUT = 15


@dataclass
class DistanceResult:
    distance_km: int
    from_address: str
    to_address: str


async def geocode(session: aiohttp.ClientSession, address: str) -> Optional[tuple[float, float]]:
    """(lat, lon) for an address, or None."""
    try:
        async with session.get(
            NOMINATIM_URL,
            params={"format": "json", "q": address, "limit": "1"},
            headers={"User-Agent": USER_AGENT},
            timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
        ) as resp:
            resp.raise_for_status()
            data = await resp.json()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(f"Geocoding failed for {address!r}: {e}")
        return None
    if not data:
        return None
    return float(data[0]["lat"]), float(data[0]["lon"])


async def route_distance_km(
    session: aiohttp.ClientSession, origin: tuple[float, float], dest: tuple[float, float]
) -> Optional[int]:
    (from_lat, from_lon), (to_lat, to_lon) = origin, dest
    url = f"{OSRM_URL}/{from_lon},{from_lat};{to_lon},{to_lat}"
    try:
        async with session.get(
            url, params={"overview": "false"}, timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)
        ) as resp:
            resp.raise_for_status()
            data = await resp.json()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(f"OSRM routing failed: {e}")
        return None
    if data.get("code") != "Ok" or not data.get("routes"):
        return None
    return round(data["routes"][0]["distance"] / 1000)


async def distance_to_customer(
    customer_address: str,
    company_address: str = COMPANY_ADDRESS,
    session: Optional[aiohttp.ClientSession] = None,
) -> Optional[DistanceResult]:
    """Driving distance depot -> customer. Opens its own session unless one is passed in."""
    if session is None:
        async with aiohttp.ClientSession() as own_session:
            return await _distance(own_session, customer_address, company_address)
    return await _distance(session, customer_address, company_address)


async def _distance(session, customer_address: str, company_address: str) -> Optional[DistanceResult]:
    origin, dest = await asyncio.gather(
        geocode(session, company_address), geocode(session, customer_address)
    )
    if origin is None or dest is None:
        logger.error(f"Could not geocode addresses (company={origin is not None}, customer={dest is not None})")
        return None
    km = await route_distance_km(session, origin, dest)
    if km is None:
        logger.error("Could not calculate route distance")
        return None
    return DistanceResult(distance_km=km, from_address=company_address, to_address=customer_address)
