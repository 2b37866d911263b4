"""
Pytest configuration and shared fixtures for backend tests.

This module provides test fixtures for database sessions, the garden services,
the API test client, and commonly used test data.

Each test gets its own SQLite file in a temporary directory: the garden
services open several sessions per command, and a file database lets them
all see the same data without sharing one connection.

NOTE: Heavy imports (main, models, services) are done lazily inside fixtures
to avoid loading the entire app for tests that don't need it.
"""

import gc
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

# Add backend directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from tests.fixtures import T0, ScriptedRandom  # noqa: E402

# Type hints only - not imported at runtime
if TYPE_CHECKING:
    from typing import AsyncGenerator

    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession


# Files that use database fixtures
DB_FIXTURE_FILES = {
    "test_crud.py",
    "test_crud_field_entities.py",
    "test_database.py",
    "test_garden_service.py",
    "test_inventory_service.py",
    "test_lifecycle_service.py",
}

# Files that exercise the CRUD layer directly
CRUD_FILES = {
    "test_crud.py",
    "test_crud_field_entities.py",
}


def pytest_collection_modifyitems(items):
    """Auto-apply markers based on test directory and fixtures used."""
    for item in items:
        filepath = str(item.fspath)
        filename = Path(filepath).name

        # Apply 'unit' marker to tests in unit directory
        if "/tests/unit/" in filepath:
            item.add_marker(pytest.mark.unit)
            if filename in DB_FIXTURE_FILES:
                item.add_marker(pytest.mark.db)
            if filename in CRUD_FILES:
                item.add_marker(pytest.mark.crud)
        # Apply 'integration' marker to tests in integration directory
        elif "/tests/integration/" in filepath:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.db)  # All integration tests use db
            item.add_marker(pytest.mark.api)


@pytest.fixture(autouse=True)
def cleanup_after_test():
    """Reset the SQLite write lock (bound to the previous event loop) and free memory."""
    from infrastructure.database.connection import reset_write_lock

    reset_write_lock()
    yield
    reset_write_lock()
    gc.collect()


# ============================================================================
# Database fixtures (only loaded when needed)
# ============================================================================


@pytest.fixture
async def test_engine(tmp_path):
    """Create a fresh SQLite database file for one test."""
    from infrastructure.database.connection import create_engine_for_url, init_db

    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'garden_test.db'}")
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_engine):
    """Create session factory for tests."""
    from infrastructure.database.connection import make_session_factory

    return make_session_factory(test_engine)


@pytest.fixture
async def test_db(test_session_factory) -> "AsyncGenerator[AsyncSession, None]":
    """Provide a test database session."""
    async with test_session_factory() as session:
        yield session


# ============================================================================
# Garden fixtures
# ============================================================================


@pytest.fixture
def now():
    return T0


@pytest.fixture
def rng():
    return ScriptedRandom()


@pytest.fixture
def layout():
    """The classic 5x10 garden with its centre pond (fields 12-19, 22-29, 32-39)."""
    from domain.services.field_layout import FieldLayout

    return FieldLayout.build(5, 10)


@pytest.fixture
def timing():
    from domain.services.lifecycle_rules import LifecycleTiming

    return LifecycleTiming()


@pytest.fixture
def catalog():
    from services.catalog_service import CatalogService

    return CatalogService(Path(__file__).parent.parent / "config" / "catalog.yaml")


@pytest.fixture
def inventory(test_session_factory):
    from services.inventory_service import DatabaseInventoryGateway

    return DatabaseInventoryGateway(test_session_factory)


@pytest.fixture
def lifecycle_service(test_session_factory, catalog, inventory, layout, timing, rng):
    from services.lifecycle_service import LifecycleService

    return LifecycleService(
        session_factory=test_session_factory,
        catalog=catalog,
        inventory=inventory,
        layout=layout,
        timing=timing,
        rng=rng,
    )


@pytest.fixture
def garden_service(test_session_factory, catalog, inventory, layout, timing, rng):
    from services.garden_service import GardenService

    return GardenService(
        session_factory=test_session_factory,
        catalog=catalog,
        inventory=inventory,
        currency=inventory,
        layout=layout,
        timing=timing,
        rng=rng,
    )


@pytest.fixture
def give_item(inventory):
    """Credit an owned item to a user: await give_item(user, kind, item_id, rarity, quantity=1)."""
    from domain.value_objects.enums import ItemKind, RarityTier

    async def _give(user_id, item_kind, item_id, rarity=RarityTier.COMMON, quantity=1, name=""):
        await inventory.credit_item(
            user_id, ItemKind(item_kind), item_id, RarityTier.from_value(rarity), quantity=quantity, name=name
        )

    return _give


# ============================================================================
# App/Client fixtures (only loaded when needed)
# ============================================================================


@pytest.fixture
async def app(test_engine, test_session_factory):
    """FastAPI app wired to the per-test database, scheduler not started."""
    from core import get_settings, reset_settings
    from core.app_factory import build_services, create_app
    from routers.garden import limiter

    reset_settings()
    limiter.reset()
    application = create_app(session_factory=test_session_factory, bind=test_engine, start_scheduler=False)

    # ASGITransport does not run the lifespan, so wire app state here
    for name, service in build_services(get_settings(), test_session_factory).items():
        setattr(application.state, name, service)

    yield application

    reset_settings()


@pytest.fixture
async def client(app) -> "AsyncGenerator[AsyncClient, None]":
    """Create a test client that acts as user 'alice'."""
    from httpx import ASGITransport, AsyncClient

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers={"X-User-Id": "alice"}) as ac:
        yield ac


@pytest.fixture
async def anonymous_client(app) -> "AsyncGenerator[AsyncClient, None]":
    """Create a test client without the user header."""
    from httpx import ASGITransport, AsyncClient

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
