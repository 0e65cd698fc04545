try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from fakes import FakeTonieCloud, Harness, tonie_payload
from toniesync.core.errors import NotFound
from toniesync.services.tonie_library import TonieLibraryService


def _library(harness: Harness) -> TonieLibraryService:
    return TonieLibraryService(
        cloud_client=harness.cloud, credentials=harness.credentials, records=harness.records
    )


@pytest.mark.asyncio
async def test_refresh_mirrors_households_and_tonies(
    fake_cloud: FakeTonieCloud, db_path: str
) -> None:
    harness = Harness(fake_cloud, db_path)
    harness.store_login()
    fake_cloud.households.append(
        {"id": "hh-2", "name": "Cousins", "access": "member", "canLeave": True}
    )
    fake_cloud.tonies["ct-2"] = tonie_payload("ct-2", "hh-2", "Dino")
    fake_cloud.tonies["ct-3"] = tonie_payload("ct-3", "hh-2", "Unicorn")

    summary = await _library(harness).refresh("user-1")

    assert (summary.households, summary.devices) == (2, 3)
    households = {
        household.external_id: household
        for household in harness.records.list_households("user-1")
    }
    assert set(households) == {"hh-1", "hh-2"}
    cousins = harness.records.list_devices(households["hh-2"].id)
    assert sorted(device.name for device in cousins) == ["Dino", "Unicorn"]
    assert all(device.remote_household_identifier == "hh-2" for device in cousins)


@pytest.mark.asyncio
async def test_refresh_is_idempotent_and_renames(fake_cloud: FakeTonieCloud, db_path: str) -> None:
    harness = Harness(fake_cloud, db_path)
    harness.store_login()
    library = _library(harness)

    await library.refresh("user-1")
    fake_cloud.tonies["ct-1"]["name"] = "Living Room"
    await library.refresh("user-1")

    [household] = harness.records.list_households("user-1")
    [device] = harness.records.list_devices(household.id)
    assert device.id == harness.device.id
    assert device.name == "Living Room"


@pytest.mark.asyncio
async def test_refresh_requires_linked_account(fake_cloud: FakeTonieCloud, db_path: str) -> None:
    harness = Harness(fake_cloud, db_path)

    with pytest.raises(NotFound):
        await _library(harness).refresh("user-1")

    assert fake_cloud.requests == []
