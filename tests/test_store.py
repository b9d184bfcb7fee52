from datetime import date
import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects import mysql
from cityweather.errors import ConflictError, StoreError
from cityweather.models import City, WeatherData
from cityweather.store import METRIC_COLUMNS


def cities(store):
    with store.engine.connect() as conn:
        return conn.execute(select(City.name).order_by(City.name)).scalars().all()


def test_record_and_conflict(store):
    city_id = store.record_observation("Lagos", date(2024, 1, 1), 30.0, 70.0, 5.0)
    with pytest.raises(ConflictError):
        store.record_observation("Lagos", date(2024, 1, 1), 31.0, 71.0, 6.0)
    assert store.record_observation("Lagos", date(2024, 1, 2), 29.0, 60.0, 4.0) == city_id
    with store.engine.connect() as conn:
        temps = conn.execute(select(WeatherData.temperature).order_by(WeatherData.record_date)).scalars().all()
    assert temps == [30.0, 29.0]


def test_failed_observation_insert_rolls_back_new_city(store):
    store.record_observation("Lagos", date(2024, 1, 1), 30.0, 70.0, 5.0)
    WeatherData.__table__.drop(store.engine)
    with pytest.raises(StoreError):
        store.record_observation("Accra", date(2024, 1, 1), 30.0, 70.0, 5.0)
    assert cities(store) == ["Lagos"]


class _Miss:
    def scalar_one_or_none(self):
        return None


def test_concurrently_created_city_is_reused(store):
    existing = store.record_observation("Lagos", date(2024, 1, 1), 30.0, 70.0, 5.0)

    with store._sessions() as session, session.begin():
        execute = session.execute
        calls = []

        def stale_first_lookup(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                # another request committed "Lagos" after this lookup ran
                return _Miss()
            return execute(*args, **kwargs)

        session.execute = stale_first_lookup
        assert store._resolve_city(session, "Lagos") == existing
        assert "FOR UPDATE" in str(calls[1][0].compile(dialect=mysql.dialect()))

    assert cities(store) == ["Lagos"]


def test_city_averages_cover_every_metric(store):
    store.record_observation("Lagos", date(2024, 1, 1), 30.0, 70.0, 5.0)
    store.record_observation("Lagos", date(2024, 1, 2), 31.0, 80.0, 6.0)
    expected = {"temperature": 30.5, "humidity": 75.0, "wind_speed": 5.5}
    for metric in METRIC_COLUMNS:
        assert store.city_averages(metric) == [{"city_name": "Lagos", "average_value": expected[metric]}]


def test_recent_history_limit(store):
    for day in range(1, 4):
        store.record_observation("Lagos", date(2024, 1, day), float(day), 50.0, 1.0)
    rows = store.recent_history(limit=2)
    assert [row["record_date"] for row in rows] == ["2024-01-03", "2024-01-02"]


def test_foreign_keys_are_enforced(store):
    from sqlalchemy.exc import IntegrityError

    with pytest.raises(IntegrityError):
        with store.engine.begin() as conn:
            conn.execute(WeatherData.__table__.insert().values(
                city_id=999, record_date=date(2024, 1, 1), temperature=1.0, humidity=1.0,
                wind_speed=1.0, recorded_at=func.current_timestamp(),
            ))


def test_ping(store):
    assert store.ping() is True
