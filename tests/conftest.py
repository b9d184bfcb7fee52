import pytest
from cityweather.config import Settings
from cityweather.store import WeatherStore
from cityweather.web import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(DATABASE_URL=f"sqlite:///{tmp_path}/t.db", POOL_SIZE=2, MAX_OVERFLOW=0, POOL_TIMEOUT=5)


@pytest.fixture
def store(settings):
    s = WeatherStore.from_settings(settings)
    s.create_schema()
    yield s
    s.dispose()


@pytest.fixture
def client(settings, store):
    app = create_app(settings, store=store)
    return app.test_client()
