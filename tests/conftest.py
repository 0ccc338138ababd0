from __future__ import annotations

import os
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from chillertrack.config import Settings
from chillertrack.domain.inventory import InventoryEntry, new_entry_id
from chillertrack.persistence.uow import UnitOfWorkFactory
from chillertrack.services.entry_service import EntryService
from chillertrack.services.totals_service import TotalsService


@pytest.fixture(autouse=True)
def isolate_settings_from_host_env(monkeypatch: pytest.MonkeyPatch):
    original_env_file = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    settings_env_keys: set[str] = set()
    for field in Settings.model_fields.values():
        if isinstance(field.alias, str):
            settings_env_keys.add(field.alias)

    for key in list(os.environ):
        if key in settings_env_keys:
            monkeypatch.delenv(key, raising=False)

    yield

    Settings.model_config["env_file"] = original_env_file


@pytest.fixture(autouse=True)
def isolate_default_state_db_per_test(
    isolate_settings_from_host_env: None,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    del isolate_settings_from_host_env
    monkeypatch.setenv("STATE_DB_PATH", str(tmp_path / "default_state.db"))


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "depot.db")


@pytest.fixture
def uow_factory(db_path: str) -> UnitOfWorkFactory:
    return UnitOfWorkFactory(db_path)


class StepClock:
    def __init__(self, start: datetime) -> None:
        self.now = start
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        return self.now.replace(microsecond=self.calls % 1_000_000)


@pytest.fixture
def clock() -> StepClock:
    return StepClock(datetime(2024, 3, 1, 6, 0, tzinfo=UTC))


@pytest.fixture
def totals_service(uow_factory: UnitOfWorkFactory, clock: StepClock) -> TotalsService:
    return TotalsService(uow_factory, clock=clock)


@pytest.fixture
def entry_service(
    uow_factory: UnitOfWorkFactory, totals_service: TotalsService, clock: StepClock
) -> EntryService:
    return EntryService(uow_factory, totals_service, clock=clock)


@pytest.fixture
def make_entry():
    def _make(category: str = "Red", total="1", kilograms="20", chiller="1", **overrides):
        base = {
            "id": new_entry_id(),
            "category": category,
            "total": Decimal(str(total)),
            "kilograms": Decimal(str(kilograms)),
            "chiller": chiller,
            "created_at": datetime(2024, 3, 1, 6, 0, tzinfo=UTC),
        }
        base.update(overrides)
        return InventoryEntry(**base)

    return _make
