"""Relational store for cities and their weather observations.

:class:`WeatherStore` owns the engine (and so the bounded connection pool) and
is built once per application, then handed to the request handlers. Sessions
are always opened as context managers so the connection goes back to the pool
on success, on conflicts and on driver errors alike.
"""
from __future__ import annotations
import logging
from datetime import date, timezone
from typing import Dict, List, Optional

from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .config import Settings
from .db import make_engine, make_session_factory, init_db
from .errors import ConflictError, StoreError
from .models import City, WeatherData

log = logging.getLogger(__name__)

HISTORY_LIMIT = 10

# Metric names the aggregate view accepts, mapped to fixed column objects.
METRIC_COLUMNS = {
    "temperature": WeatherData.temperature,
    "humidity": WeatherData.humidity,
    "wind_speed": WeatherData.wind_speed,
}


class WeatherStore:
    def __init__(self, engine):
        self.engine = engine
        self._sessions = make_session_factory(engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "WeatherStore":
        engine = make_engine(
            settings.DATABASE_URL,
            pool_size=settings.POOL_SIZE,
            max_overflow=settings.MAX_OVERFLOW,
            pool_timeout=settings.POOL_TIMEOUT,
        )
        return cls(engine)

    def create_schema(self) -> None:
        init_db(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    def ping(self) -> bool:
        """Return True when a pooled connection can run ``SELECT 1``."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            log.error("Database connectivity check failed: %s", exc)
            return False
        return True

    # -- writes ---------------------------------------------------------------
    def record_observation(
        self,
        city_name: str,
        record_date: date,
        temperature: float,
        humidity: float,
        wind_speed: float,
    ) -> int:
        """Insert one observation, creating the city on first sight.

        City lookup/creation and the observation insert share one transaction:
        both commit or neither does. Returns the city id.
        """
        try:
            with self._sessions() as session, session.begin():
                city_id = self._resolve_city(session, city_name)
                session.add(WeatherData(
                    city_id=city_id,
                    record_date=record_date,
                    temperature=temperature,
                    humidity=humidity,
                    wind_speed=wind_speed,
                ))
                try:
                    session.flush()
                except IntegrityError as exc:
                    log.warning("Duplicate observation for %r on %s: %s", city_name, record_date, exc.orig)
                    raise ConflictError("Data for this city on this date already exists.") from exc
        except SQLAlchemyError as exc:
            log.exception("Error processing data insertion for %r on %s", city_name, record_date)
            raise StoreError("Database transaction failed.") from exc
        log.info("Recorded observation for %r (city_id=%s) on %s", city_name, city_id, record_date)
        return city_id

    def _resolve_city(self, session, city_name: str) -> int:
        lookup = select(City.id).where(City.name == city_name)
        city_id: Optional[int] = session.execute(lookup).scalar_one_or_none()
        if city_id is not None:
            return city_id

        city = City(name=city_name)
        try:
            with session.begin_nested():
                session.add(city)
        except IntegrityError:
            # a concurrent submission created the same city first
            log.info("City %r was created concurrently, reusing it", city_name)
            # a locking read sees the latest committed row, not the
            # REPEATABLE READ snapshot taken by the first lookup
            return session.execute(lookup.with_for_update()).scalar_one()
        log.info("Created city %r with id %s", city_name, city.id)
        return city.id

    # -- reads ----------------------------------------------------------------
    def city_averages(self, metric: str) -> List[Dict[str, object]]:
        """Mean of ``metric`` per city that has observations, ordered by city name."""
        column = METRIC_COLUMNS[metric]
        q = (
            select(
                City.name.label("city_name"),
                func.avg(column).label("average_value"),
            )
            .join(WeatherData, WeatherData.city_id == City.id)
            .group_by(City.id, City.name)
            .order_by(City.name)
        )
        try:
            with self._sessions() as session:
                rows = session.execute(q).all()
        except SQLAlchemyError as exc:
            log.exception("Error executing analysis query for metric %s", metric)
            raise StoreError("Failed to retrieve analysis data.") from exc
        return [
            {"city_name": row.city_name, "average_value": round(float(row.average_value), 2)}
            for row in rows
        ]

    def recent_history(self, limit: int = HISTORY_LIMIT) -> List[Dict[str, object]]:
        """The ``limit`` most recently recorded observations, newest first."""
        q = (
            select(
                WeatherData.id.label("record_id"),
                City.name.label("city_name"),
                WeatherData.record_date,
                WeatherData.temperature,
                WeatherData.humidity,
                WeatherData.wind_speed,
                WeatherData.recorded_at,
            )
            .join(City, WeatherData.city_id == City.id)
            .order_by(WeatherData.recorded_at.desc(), WeatherData.id.desc())
            .limit(limit)
        )
        try:
            with self._sessions() as session:
                rows = session.execute(q).all()
        except SQLAlchemyError as exc:
            log.exception("Error executing history query")
            raise StoreError("Failed to retrieve history data.") from exc
        items = []
        for row in rows:
            item = dict(row._mapping)
            item["record_date"] = row.record_date.isoformat()
            recorded_at = row.recorded_at
            if recorded_at.tzinfo is None:
                # sqlite drops the offset; values are always written in UTC
                recorded_at = recorded_at.replace(tzinfo=timezone.utc)
            item["recorded_at"] = recorded_at.isoformat()
            items.append(item)
        return items
