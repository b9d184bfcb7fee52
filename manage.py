from __future__ import annotations
import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Dict
from cityweather.config import Settings
from cityweather.errors import ConflictError, StoreError, ValidationError
from cityweather.handlers import submit_observation
from cityweather.store import WeatherStore

log = logging.getLogger("manage")

CSV_FIELDS = {"city": "city", "date": "date", "temperature": "temperature", "humidity": "humidity", "wind_speed": "windSpeed"}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def load_csv(store: WeatherStore, path: Path) -> Dict[str, int]:
    """Submit every row of ``path`` as an observation; existing ones are left alone."""
    counts = {"inserted": 0, "conflicts": 0, "invalid": 0}
    with path.open(newline="") as f:
        for lineno, row in enumerate(csv.DictReader(f), start=2):
            payload = {key: row.get(column) for column, key in CSV_FIELDS.items()}
            try:
                submit_observation(store, payload)
            except ValidationError as exc:
                log.warning("Line %d skipped: %s %s", lineno, exc.message, exc.details.get("fields"))
                counts["invalid"] += 1
            except ConflictError:
                log.warning("Line %d skipped: %s on %s already recorded", lineno, payload["city"], payload["date"])
                counts["conflicts"] += 1
            else:
                counts["inserted"] += 1
    return counts


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="City weather service management commands.")
    ap.add_argument("--database", help="Database URL (overrides CITYWEATHER_DATABASE_URL)")
    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create the cities and weather_data tables")
    sub.add_parser("check-db", help="Test the database connection")
    serve = sub.add_parser("serve", help="Run the development server")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.add_argument("--debug", action="store_true")
    load = sub.add_parser("load", help="Record observations from a CSV file (city,date,temperature,humidity,wind_speed)")
    load.add_argument("csv_path", type=Path)
    args = ap.parse_args(argv)

    settings = Settings()
    if args.database:
        settings = settings.model_copy(update={"DATABASE_URL": args.database})
    configure_logging(settings.LOG_LEVEL)
    store = WeatherStore.from_settings(settings)

    try:
        if args.command == "check-db":
            if not store.ping():
                log.error("Cannot connect to %s", store.engine.url.render_as_string(hide_password=True))
                return 1
            log.info("Connected to %s", store.engine.url.render_as_string(hide_password=True))
            return 0

        store.create_schema()
        if args.command == "init-db":
            log.info("Schema ready")
        elif args.command == "load":
            counts = load_csv(store, args.csv_path)
            log.info("Load complete: %s", counts)
            print(json.dumps(counts))
        elif args.command == "serve":
            from cityweather.web import create_app

            if not store.ping():
                log.error("Starting without a reachable database")
            app = create_app(settings, store=store)
            app.run(host=args.host or settings.HOST, port=args.port or settings.PORT, debug=args.debug or settings.DEBUG)
    except StoreError as exc:
        log.error("%s", exc.message)
        return 1
    finally:
        store.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
