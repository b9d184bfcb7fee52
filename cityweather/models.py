from __future__ import annotations
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Integer, Float, Date, DateTime, ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class City(Base):
    __tablename__ = "cities"
    id = Column("city_id", Integer, primary_key=True, autoincrement=True)
    name = Column("city_name", String(255), nullable=False, unique=True)

    observations = relationship("WeatherData", back_populates="city")


class WeatherData(Base):
    __tablename__ = "weather_data"
    id = Column("record_id", Integer, primary_key=True, autoincrement=True)
    city_id = Column(Integer, ForeignKey("cities.city_id"), nullable=False)
    record_date = Column(Date, nullable=False)
    temperature = Column(Float, nullable=False)
    humidity = Column(Float, nullable=False)
    wind_speed = Column(Float, nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)  # assigned on insert

    city = relationship("City", back_populates="observations")

    __table_args__ = (
        UniqueConstraint("city_id", "record_date", name="uq_city_date"),
        Index("ix_weather_data_recorded_at", "recorded_at"),
    )
