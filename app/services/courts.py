"""
Court registry.

Courts are created by admins and are read-mostly; metadata editing is not
offered.  Nearby search prefilters with a lat/lng bounding box in SQL and
then applies the exact great-circle distance, ordering by distance.
"""

from __future__ import annotations

import json
import logging
import math
from uuid import uuid4

from app.constants import SUPPORTED_SPORTS
from app.db import Database, row_to_court, ts
from app.errors import NotFound, ValidationError
from app.models import Court, CourtCreate
from app.services.clock import Clock

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points, in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def bounding_box(lat: float, lng: float, radius_m: float) -> tuple[float, float, float, float]:
    """(min_lat, max_lat, min_lng, max_lng) enclosing the search circle."""
    dlat = math.degrees(radius_m / EARTH_RADIUS_M)
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    dlng = min(math.degrees(radius_m / (EARTH_RADIUS_M * cos_lat)), 180.0)
    return lat - dlat, lat + dlat, lng - dlng, lng + dlng


class CourtRepository:
    def __init__(self, db: Database, clock: Clock) -> None:
        self._db = db
        self._clock = clock

    async def create(self, data: CourtCreate, created_by: str) -> Court:
        unknown = sorted(set(data.sport_types) - set(SUPPORTED_SPORTS))
        if unknown:
            raise ValidationError(
                "Unsupported sport type",
                {"sport_types": unknown, "supported": list(SUPPORTED_SPORTS)},
            )
        court_id = str(uuid4())
        await self._db.execute(
            """
            INSERT INTO courts
                (id, name, lat, lng, address, sport_types, description, status, created_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, 'active', ?, ?)
            """,
            (
                court_id, data.name, data.location.lat, data.location.lng,
                data.location.address, json.dumps(sorted(set(data.sport_types))),
                data.description, created_by, ts(self._clock.now()),
            ),
        )
        logger.info("Court %s (%s) registered by %s", court_id, data.name, created_by)
        return await self.get(court_id)

    async def get(self, court_id: str) -> Court:
        row = await self._db.fetchone("SELECT * FROM courts WHERE id = ?", (court_id,))
        if row is None:
            raise NotFound("Court", court_id)
        return row_to_court(row)

    async def list_courts(
        self,
        *,
        sport_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Court], int]:
        where, params = self._filters(sport_type)
        total_row = await self._db.fetchone(
            f"SELECT COUNT(*) AS total FROM courts WHERE {where}", params
        )
        rows = await self._db.fetchall(
            f"SELECT * FROM courts WHERE {where} ORDER BY name, id LIMIT ? OFFSET ?",
            [*params, limit, offset],
        )
        return [row_to_court(r) for r in rows], total_row["total"]

    async def nearby(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        *,
        sport_type: str | None = None,
    ) -> list[Court]:
        """Active courts within ``radius_m`` of the point, nearest first."""
        min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius_m)
        where, params = self._filters(sport_type)
        rows = await self._db.fetchall(
            f"""
            SELECT * FROM courts
            WHERE {where} AND lat BETWEEN ? AND ? AND lng BETWEEN ? AND ?
            """,
            [*params, min_lat, max_lat, min_lng, max_lng],
        )
        hits = []
        for row in rows:
            distance = haversine_m(lat, lng, row["lat"], row["lng"])
            if distance <= radius_m:
                hits.append((distance, row["id"], row_to_court(row)))
        hits.sort(key=lambda h: (h[0], h[1]))
        return [court for _, _, court in hits]

    @staticmethod
    def _filters(sport_type: str | None) -> tuple[str, list]:
        where = "status = 'active'"
        params: list = []
        if sport_type:
            # sport_types is a JSON array of plain strings
            where += " AND EXISTS (SELECT 1 FROM json_each(courts.sport_types) WHERE value = ?)"
            params.append(sport_type)
        return where, params
