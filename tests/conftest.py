"""Shared fixtures: a small manufacturer frame, fresh stores and an API client."""

from datetime import datetime, timedelta, timezone
import itertools

import pytest
from fastapi.testclient import TestClient

from api.main import app, get_auth_store, get_manufacturers, get_workspace
from core import auth, workspace
from core.data import AUTH_SEED_FILE, load_seed, records_frame


def _record(id, name, city, state, caps, mats, certs, employees, revenue, capacity, rating, sustainability, year, moq, lead, diversity, distance):
    return {
        "id": id,
        "name": name,
        "city": city,
        "state": state,
        "capabilities": caps,
        "materials": mats,
        "certifications": certs,
        "number_of_employees": employees,
        "annual_revenue": revenue,
        "current_capacity": capacity,
        "rating": rating,
        "sustainability_score": sustainability,
        "year_established": year,
        "moq": moq,
        "lead_time_days": lead,
        "diversity_flag": diversity,
        "distance": distance,
    }


MANUFACTURERS = [
    _record("m01", "Acme, Inc.", "San Jose", "CA", ["Welding", "CNC Machining"], ["Steel"], ["ISO 9001"], 25, 999_999, 49.9, 4.5, 80, 2020, 100, 14, True, 10),
    _record("m02", "Bay Fabrication", "Oakland", "CA", ["Welding"], ["Aluminum"], ["AS9100"], 26, 1_000_000, 50, 4.0, 60, 2019, 500, 21, False, 25),
    _record("m03", "Coastal Plastics", "San Diego", "CA", ["Injection Molding"], ["ABS"], ["ISO 13485"], 500, 100_000_000, 80, 3.5, 90, 1995, 1000, 30, False, 400),
    _record("m04", "Delta Metals", "Houston", "TX", ["Welding", "Sheet Metal"], ["Steel", "Aluminum"], ["ISO 9001"], 120, 15_000_000, 70, 4.8, 55, 1994, 50, 10, True, 1200),
    _record("m05", "Empire Electronics", "Buffalo", "NY", ["PCB Assembly"], ["FR4"], ["IPC-A-610"], 300, 60_000_000, 90, 4.2, 70, 2010, 250, 35, False, 2500),
    _record("m06", "Frontier Castings", "Denver", "CO", ["Casting"], ["Iron"], [], 40, 5_000_000, 65, None, 40, 1980, 20, 45, None, 900),
    _record("m07", "Great Lakes Machining", "Detroit", "MI", ["CNC Machining"], ["Steel", "Titanium"], ["AS9100"], 75, 9_000_000, 85, 4.6, 65, 2001, 200, 25, True, 2000),
    _record("m08", "Heartland Assembly", "Omaha", "NE", ["Assembly"], ["Plastic"], ["ISO 9001"], 10, 500_000, 30, 3.9, 20, 2023, 10, 7, False, 1400),
    _record("m09", "Iron Ridge Welding", "Pittsburgh", "PA", ["Welding"], ["Steel"], ["AWS D1.1"], 600, 150_000_000, 95, 4.9, 85, 1950, 5000, 60, False, 2200),
    _record("m10", "Juniper Textiles", "Charlotte", "NC", ["Sewing"], ["Cotton"], ["OEKO-TEX"], None, None, None, 4.1, None, None, None, None, None, None),
]

START = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def manufacturers():
    return records_frame(MANUFACTURERS)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def auth_store(clock):
    seed = load_seed(AUTH_SEED_FILE)
    counter = itertools.count(1)
    return auth.AuthStore(
        auth.state_from_seed(seed),
        clock=clock,
        token_factory=lambda: f"token-{next(counter)}",
        demo_profile=seed["demo_profile"],
    )


@pytest.fixture
def workspace_store():
    return workspace.WorkspaceStore(workspace.state_from_seed())


@pytest.fixture
def client(manufacturers, auth_store, workspace_store):
    app.dependency_overrides[get_manufacturers] = lambda: manufacturers
    app.dependency_overrides[get_auth_store] = lambda: auth_store
    app.dependency_overrides[get_workspace] = lambda: workspace_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
