from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Optional
from flask import Flask, jsonify, request
from flasgger import Swagger
from werkzeug.exceptions import HTTPException
from . import handlers
from .config import Settings
from .errors import WeatherServiceError
from .store import WeatherStore

log = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def create_app(settings: Optional[Settings] = None, store: Optional[WeatherStore] = None) -> Flask:
    settings = settings or Settings()
    app = Flask(__name__)
    app.config["DEBUG"] = settings.DEBUG
    app.config["SWAGGER"] = {
        "title": "City Weather API",
        "uiversion": 3,
    }
    Swagger(app)

    if store is None:
        store = WeatherStore.from_settings(settings)
    store.create_schema()
    app.extensions["weather_store"] = store
    log.info("Serving weather data from %s", store.engine.url.render_as_string(hide_password=True))

    @app.before_request
    def preflight():
        if request.method == "OPTIONS" and request.path.startswith("/api/"):
            return "", 200

    @app.after_request
    def add_cors_headers(response):
        response.headers.update(CORS_HEADERS)
        return response

    @app.errorhandler(WeatherServiceError)
    def handle_service_error(err: WeatherServiceError):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(err: HTTPException):
        return jsonify({"error": err.description}), err.code

    @app.get("/api/health")
    def health():
        """Database connectivity check.
        ---
        responses:
          200:
            description: The store answered
          503:
            description: The store is unreachable
        """
        ok = store.ping()
        body = {
            "status": "ok" if ok else "degraded",
            "database": "ok" if ok else "unavailable",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        return jsonify(body), 200 if ok else 503

    @app.get("/api/analysis")
    def get_analysis():
        """Average of one metric per city, ordered by city name.
        ---
        parameters:
          - name: metric
            in: query
            schema: {type: string, enum: [temperature, humidity, wind_speed], default: temperature}
        responses:
          200:
            description: A list of {city_name, average_value}
          400:
            description: Invalid metric selected
          500:
            description: Store failure
        """
        rows = handlers.query_aggregate(store, request.args.get("metric"))
        return jsonify(rows)

    @app.post("/api/data")
    def post_data():
        """Record one observation, creating the city if it is new.
        ---
        parameters:
          - name: body
            in: body
            required: true
            schema:
              type: object
              required: [city, date, temperature, humidity, windSpeed]
              properties:
                city: {type: string}
                date: {type: string, format: date}
                temperature: {type: number}
                humidity: {type: number}
                windSpeed: {type: number}
        responses:
          201:
            description: Recorded; returns {message, cityId}
          400:
            description: Missing or invalid required fields
          409:
            description: Data for this city on this date already exists
          500:
            description: Database transaction failed
        """
        result = handlers.submit_observation(store, request.get_json(silent=True))
        return jsonify(result), 201

    @app.get("/api/history")
    def get_history():
        """The ten most recently recorded observations, newest first.
        ---
        responses:
          200:
            description: A list of observations joined with their city name
          500:
            description: Store failure
        """
        return jsonify(handlers.query_history(store))

    return app
