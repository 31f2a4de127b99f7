from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.errors import AccessDeniedError, NotFoundError, StoreError, UniquenessViolationError, ValidationError
from app.models.enums import LogTypeEnum, SubscriptionStatusEnum
from app.schemas.account import FarmerCreate, FarmerUpdate, MayorCreate, MayorStatusUpdate
from app.services.farmer_service import DEFAULT_COLORS, FarmerService
from app.services.mayor_service import MayorService
from app.services.settings_service import SettingsService
from conftest import FakeResult

VILLAGE = "Valea Mare"


def _farmer_create(**overrides: Any) -> FarmerCreate:
    values = {
        "name": " Ion Popescu ",
        "company_code": "RO123",
        "village": VILLAGE,
        "password": "s3cret-pass",
    }
    values.update(overrides)
    return FarmerCreate(**values)


def _stored_farmer(**overrides: Any) -> SimpleNamespace:
    values = {
        "id": uuid4(),
        "name": "Ion Popescu",
        "company_code": "RO123",
        "village": VILLAGE,
        "email": None,
        "phone": None,
        "color": DEFAULT_COLORS[0],
    }
    values.update(overrides)
    return SimpleNamespace(**values)


# ── Farmers ─────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_farmer_hashes_password_and_picks_color(fake_db_session: Any, fake_audit: Any) -> None:
    fake_db_session.execute.side_effect = [FakeResult(), FakeResult(scalar=3)]

    farmer = await FarmerService(fake_db_session, audit=fake_audit).create_farmer(_farmer_create(), "admin:root")

    assert farmer.name == "Ion Popescu"
    assert farmer.color == DEFAULT_COLORS[3]
    assert farmer.password_hash.startswith("$2")
    assert farmer.password_hash != "s3cret-pass"
    fake_db_session.add.assert_called_once_with(farmer)
    fake_db_session.commit.assert_awaited_once()
    assert fake_audit.records == [
        (LogTypeEnum.USER_ACTION, "admin:root", "Farmer Added", "Farmer: Ion Popescu (RO123), village Valea Mare.")
    ]


@pytest.mark.asyncio
async def test_create_farmer_rejects_weak_password(fake_db_session: Any, fake_audit: Any) -> None:
    with pytest.raises(ValidationError):
        await FarmerService(fake_db_session, audit=fake_audit).create_farmer(
            _farmer_create(password="short"), "admin:root"
        )
    fake_db_session.add.assert_not_called()
    assert fake_audit.actions == ["Add Farmer Failed"]


@pytest.mark.asyncio
async def test_create_farmer_duplicate_company_code(fake_db_session: Any, fake_audit: Any) -> None:
    fake_db_session.execute.return_value = FakeResult(rows=[SimpleNamespace(company_code="RO123", email=None)])

    with pytest.raises(UniquenessViolationError, match="company code"):
        await FarmerService(fake_db_session, audit=fake_audit).create_farmer(_farmer_create(), "admin:root")

    fake_db_session.commit.assert_not_awaited()
    assert fake_audit.actions == ["Add Farmer Failed"]


@pytest.mark.asyncio
async def test_create_farmer_integrity_error_is_uniqueness(fake_db_session: Any, fake_audit: Any) -> None:
    fake_db_session.execute.side_effect = [FakeResult(), FakeResult(scalar=0)]
    fake_db_session.commit.side_effect = IntegrityError("INSERT INTO farmers", {}, Exception("duplicate key"))

    with pytest.raises(UniquenessViolationError):
        await FarmerService(fake_db_session, audit=fake_audit).create_farmer(
            _farmer_create(color="hsl(1, 2%, 3%)"), "admin:root"
        )

    fake_db_session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_farmer_records_diff(fake_db_session: Any, fake_audit: Any) -> None:
    stored = _stored_farmer()
    fake_db_session.get.return_value = stored

    farmer = await FarmerService(fake_db_session, audit=fake_audit).update_farmer(
        stored.id, FarmerUpdate(name="Ion I. Popescu", phone="0722000000"), "admin:root"
    )

    assert farmer.name == "Ion I. Popescu"
    assert farmer.phone == "0722000000"
    fake_db_session.commit.assert_awaited_once()
    assert fake_audit.actions == ["Farmer Updated"]
    assert "name: 'Ion Popescu' -> 'Ion I. Popescu'" in fake_audit.records[0][3]


@pytest.mark.asyncio
async def test_update_farmer_cannot_change_village_while_holding_parcels(fake_db_session: Any, fake_audit: Any) -> None:
    stored = _stored_farmer()
    fake_db_session.get.return_value = stored
    fake_db_session.execute.return_value = FakeResult(scalar=2)

    with pytest.raises(ValidationError, match="holds parcels"):
        await FarmerService(fake_db_session, audit=fake_audit).update_farmer(
            stored.id, FarmerUpdate(village="Dealu Mic"), "admin:root"
        )

    assert stored.village == VILLAGE
    fake_db_session.commit.assert_not_awaited()
    assert fake_audit.actions == ["Update Farmer Failed"]


@pytest.mark.asyncio
async def test_mayor_cannot_move_farmer_out_of_village(fake_db_session: Any, fake_audit: Any) -> None:
    stored = _stored_farmer()
    fake_db_session.get.return_value = stored

    with pytest.raises(AccessDeniedError):
        await FarmerService(fake_db_session, audit=fake_audit).update_farmer(
            stored.id, FarmerUpdate(village="Dealu Mic"), "mayor:valea", scope_village=VILLAGE
        )


@pytest.mark.asyncio
async def test_mayor_cannot_touch_farmer_in_other_village(fake_db_session: Any, fake_audit: Any) -> None:
    fake_db_session.get.return_value = _stored_farmer(village="Dealu Mic")

    with pytest.raises(AccessDeniedError):
        await FarmerService(fake_db_session, audit=fake_audit).delete_farmer(
            uuid4(), "mayor:valea", scope_village=VILLAGE
        )
    assert fake_audit.actions == ["Delete Farmer Failed"]


@pytest.mark.asyncio
async def test_delete_farmer_clears_assignments(fake_db_session: Any, fake_audit: Any) -> None:
    stored = _stored_farmer()
    fake_db_session.get.return_value = stored

    await FarmerService(fake_db_session, audit=fake_audit).delete_farmer(stored.id, "admin:root")

    assert fake_db_session.execute.await_count == 2
    fake_db_session.delete.assert_awaited_once_with(stored)
    fake_db_session.commit.assert_awaited_once()
    assert fake_audit.actions == ["Farmer Deleted"]


@pytest.mark.asyncio
async def test_delete_farmer_store_failure_rolls_back_and_audits(fake_db_session: Any, fake_audit: Any) -> None:
    stored = _stored_farmer()
    fake_db_session.get.return_value = stored
    fake_db_session.execute.side_effect = OperationalError("UPDATE parcels", {}, Exception("db down"))

    with pytest.raises(StoreError):
        await FarmerService(fake_db_session, audit=fake_audit).delete_farmer(stored.id, "admin:root")

    fake_db_session.rollback.assert_awaited_once()
    fake_db_session.delete.assert_not_awaited()
    fake_db_session.commit.assert_not_awaited()
    assert fake_audit.actions == ["Delete Farmer Failed"]


@pytest.mark.asyncio
async def test_update_farmer_store_failure_during_checks(fake_db_session: Any, fake_audit: Any) -> None:
    stored = _stored_farmer()
    fake_db_session.get.return_value = stored
    fake_db_session.execute.side_effect = OperationalError("SELECT count", {}, Exception("db down"))

    with pytest.raises(StoreError):
        await FarmerService(fake_db_session, audit=fake_audit).update_farmer(
            stored.id, FarmerUpdate(village="Dealu Mic"), "admin:root"
        )

    fake_db_session.rollback.assert_awaited_once()
    assert stored.village == VILLAGE
    assert fake_audit.actions == ["Update Farmer Failed"]


@pytest.mark.asyncio
async def test_create_farmer_store_failure_during_uniqueness_check(fake_db_session: Any, fake_audit: Any) -> None:
    fake_db_session.execute.side_effect = OperationalError("SELECT farmers", {}, Exception("db down"))

    with pytest.raises(StoreError):
        await FarmerService(fake_db_session, audit=fake_audit).create_farmer(_farmer_create(), "admin:root")

    fake_db_session.add.assert_not_called()
    assert fake_audit.actions == ["Add Farmer Failed"]


@pytest.mark.asyncio
async def test_get_unknown_farmer(fake_db_session: Any, fake_audit: Any) -> None:
    with pytest.raises(NotFoundError):
        await FarmerService(fake_db_session, audit=fake_audit).get_farmer(uuid4())


# ── Mayors ──────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_mayor_starts_pending(fake_db_session: Any, fake_audit: Any) -> None:
    payload = MayorCreate(name="Gheorghe Marin", village=VILLAGE, email="primar@valeamare.ro", password="s3cret-pass")

    mayor = await MayorService(fake_db_session, audit=fake_audit).create_mayor(payload, "admin:root")

    assert mayor.subscription_status == SubscriptionStatusEnum.PENDING
    assert fake_audit.actions == ["Mayor Added"]


@pytest.mark.asyncio
async def test_second_mayor_for_village_is_rejected(fake_db_session: Any, fake_audit: Any) -> None:
    fake_db_session.execute.return_value = FakeResult(rows=[SimpleNamespace(email="other@x.ro", village=VILLAGE)])
    payload = MayorCreate(name="Vasile Dinu", village=VILLAGE, email="vasile@x.ro", password="s3cret-pass")

    with pytest.raises(UniquenessViolationError, match="already has a mayor"):
        await MayorService(fake_db_session, audit=fake_audit).create_mayor(payload, "admin:root")


@pytest.mark.asyncio
async def test_status_update_keeps_end_date_unless_sent(fake_db_session: Any, fake_audit: Any) -> None:
    end = datetime(2027, 6, 30, tzinfo=UTC)
    stored = SimpleNamespace(
        id=uuid4(),
        name="Gheorghe Marin",
        village=VILLAGE,
        subscription_status=SubscriptionStatusEnum.PENDING,
        subscription_end_date=end,
    )
    fake_db_session.get.return_value = stored
    service = MayorService(fake_db_session, audit=fake_audit)

    await service.update_mayor_status(stored.id, MayorStatusUpdate(status=SubscriptionStatusEnum.ACTIVE), "admin:root")
    assert stored.subscription_status == SubscriptionStatusEnum.ACTIVE
    assert stored.subscription_end_date == end
    assert "ends 2027-06-30" in fake_audit.records[-1][3]

    await service.update_mayor_status(
        stored.id,
        MayorStatusUpdate(status=SubscriptionStatusEnum.INACTIVE, subscription_end_date=None),
        "admin:root",
    )
    assert stored.subscription_end_date is None


@pytest.mark.asyncio
async def test_create_mayor_store_failure_during_uniqueness_check(fake_db_session: Any, fake_audit: Any) -> None:
    fake_db_session.execute.side_effect = OperationalError("SELECT mayors", {}, Exception("db down"))
    payload = MayorCreate(name="Vasile Dinu", village=VILLAGE, email="vasile@x.ro", password="s3cret-pass")

    with pytest.raises(StoreError):
        await MayorService(fake_db_session, audit=fake_audit).create_mayor(payload, "admin:root")

    fake_db_session.rollback.assert_awaited_once()
    assert fake_audit.actions == ["Add Mayor Failed"]


# ── Settings ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_site_name_defaults_then_persists(fake_db_session: Any, fake_audit: Any) -> None:
    service = SettingsService(fake_db_session, audit=fake_audit)

    assert await service.get_site_name() == "AgriCad Platform"

    saved = await service.update_site_name("  Registrul Agricol  ", "admin:root")

    assert saved == "Registrul Agricol"
    added = fake_db_session.add.call_args.args[0]
    assert (added.key, added.value) == ("site_name", "Registrul Agricol")
    assert fake_audit.records[-1][0] == LogTypeEnum.SYSTEM


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["ab", "x" * 51, "   "])
async def test_site_name_length_bounds(fake_db_session: Any, fake_audit: Any, name: str) -> None:
    with pytest.raises(ValidationError):
        await SettingsService(fake_db_session, audit=fake_audit).update_site_name(name, "admin:root")
    fake_db_session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_clear_application_data_counts_and_commits_once(fake_db_session: Any, fake_audit: Any) -> None:
    fake_db_session.execute.side_effect = [
        FakeResult(scalar=4),
        FakeResult(),
        FakeResult(scalar=2),
        FakeResult(),
        FakeResult(scalar=1),
        FakeResult(),
    ]

    counts = await SettingsService(fake_db_session, audit=fake_audit).clear_application_data("admin:root")

    assert counts == {"parcels": 4, "farmers": 2, "mayors": 1}
    fake_db_session.commit.assert_awaited_once()
    assert fake_audit.actions == ["Application Data Cleared"]
