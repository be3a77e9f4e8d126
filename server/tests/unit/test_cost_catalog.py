"""Unit tests for the seasonal cost catalog."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from package_pricing.core.exceptions import NotFoundError, ValidationError
from package_pricing.schemas.season import AddSeasonRequest, EditSeasonRequest
from package_pricing.services.cost_catalog import CostCatalog


@pytest.mark.asyncio
async def test_add_season(test_session, create_package, summer_season):
    """Test adding a season to a package."""
    package = await create_package()
    catalog = CostCatalog(test_session)

    season = await catalog.add_season(AddSeasonRequest(package_id=str(package.id), **summer_season))

    assert season.id is not None
    assert season.package_id == package.id
    assert season.label == "Summer 2025"
    assert season.land_cost_per_person == Decimal("500")
    assert season.total_land_cost == Decimal("500")


@pytest.mark.asyncio
async def test_add_season_total_includes_hotel(test_session, create_package, summer_season):
    package = await create_package()
    season = await CostCatalog(test_session).add_season(
        AddSeasonRequest(package_id=str(package.id), hotel_cost_per_person=Decimal("120.50"), **summer_season)
    )
    assert season.total_land_cost == Decimal("620.50")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"start_date": date(2025, 9, 1), "end_date": date(2025, 8, 31)},
        {"land_cost_per_person": Decimal("0")},
        {"land_cost_per_person": Decimal("-10")},
        {"hotel_cost_per_person": Decimal("-1")},
        {"label": "   "},
    ],
)
async def test_add_season_rejects_invalid_fields(test_session, create_package, summer_season, overrides):
    """Test that malformed seasons are rejected."""
    package = await create_package()
    data = {**summer_season, **overrides}

    with pytest.raises(ValidationError):
        await CostCatalog(test_session).add_season(AddSeasonRequest(package_id=str(package.id), **data))


@pytest.mark.asyncio
async def test_add_season_single_day(test_session, create_package):
    """A season may start and end on the same day."""
    package = await create_package()
    season = await CostCatalog(test_session).add_season(
        AddSeasonRequest(
            package_id=str(package.id),
            label="Diwali",
            start_date=date(2025, 10, 20),
            end_date=date(2025, 10, 20),
            land_cost_per_person=Decimal("899"),
        )
    )
    assert season.covers(date(2025, 10, 20))


@pytest.mark.asyncio
async def test_add_season_unknown_package(test_session, summer_season):
    with pytest.raises(NotFoundError):
        await CostCatalog(test_session).add_season(AddSeasonRequest(package_id=str(uuid4()), **summer_season))


@pytest.mark.asyncio
async def test_add_overlapping_season_rejected(test_session, create_package, summer_season):
    """Test that a season overlapping another season of the package is rejected."""
    package = await create_package()
    catalog = CostCatalog(test_session)
    await catalog.add_season(AddSeasonRequest(package_id=str(package.id), **summer_season))

    with pytest.raises(ValidationError) as exc_info:
        await catalog.add_season(
            AddSeasonRequest(
                package_id=str(package.id),
                label="Late Summer",
                start_date=date(2025, 8, 31),
                end_date=date(2025, 9, 30),
                land_cost_per_person=Decimal("450"),
            )
        )
    assert "overlaps" in exc_info.value.reason


@pytest.mark.asyncio
async def test_adjacent_seasons_allowed(test_session, create_package, summer_season):
    package = await create_package()
    catalog = CostCatalog(test_session)
    await catalog.add_season(AddSeasonRequest(package_id=str(package.id), **summer_season))
    autumn = await catalog.add_season(
        AddSeasonRequest(
            package_id=str(package.id),
            label="Autumn 2025",
            start_date=date(2025, 9, 1),
            end_date=date(2025, 11, 30),
            land_cost_per_person=Decimal("450"),
        )
    )

    seasons = await catalog.list_seasons(package.id)
    assert [season.id for season in seasons][-1] == autumn.id
    assert len(seasons) == 2


@pytest.mark.asyncio
async def test_same_range_on_other_package_allowed(test_session, create_package, summer_season):
    """Overlap is only checked within one package."""
    first = await create_package()
    second = await create_package(slug="kerala-backwaters", title="Kerala Backwaters")
    catalog = CostCatalog(test_session)

    await catalog.add_season(AddSeasonRequest(package_id=str(first.id), **summer_season))
    season = await catalog.add_season(AddSeasonRequest(package_id=str(second.id), **summer_season))

    assert season.package_id == second.id


@pytest.mark.asyncio
async def test_find_season(test_session, create_package, summer_season):
    """Test looking up the season covering a travel date."""
    package = await create_package()
    catalog = CostCatalog(test_session)
    season = await catalog.add_season(AddSeasonRequest(package_id=str(package.id), **summer_season))

    assert (await catalog.find_season(package.id, date(2025, 6, 1))).id == season.id
    assert (await catalog.find_season(package.id, date(2025, 7, 10))).id == season.id
    assert (await catalog.find_season(package.id, date(2025, 8, 31))).id == season.id
    assert await catalog.find_season(package.id, date(2025, 5, 31)) is None
    assert await catalog.find_season(package.id, date(2025, 9, 1)) is None


@pytest.mark.asyncio
async def test_find_season_is_deterministic(test_session, create_package, summer_season):
    """Repeated lookups of the same date return the same season."""
    package = await create_package()
    catalog = CostCatalog(test_session)
    await catalog.add_season(AddSeasonRequest(package_id=str(package.id), **summer_season))

    found = {(await catalog.find_season(package.id, date(2025, 7, 1))).id for _ in range(5)}
    assert len(found) == 1


@pytest.mark.asyncio
async def test_edit_season(test_session, create_package, summer_season):
    """Test editing only some fields of a season."""
    package = await create_package()
    catalog = CostCatalog(test_session)
    season = await catalog.add_season(AddSeasonRequest(package_id=str(package.id), **summer_season))

    edited = await catalog.edit_season(
        EditSeasonRequest(season_id=str(season.id), land_cost_per_person=Decimal("525"))
    )

    assert edited.land_cost_per_person == Decimal("525")
    assert edited.start_date == summer_season["start_date"]
    assert edited.label == summer_season["label"]


@pytest.mark.asyncio
async def test_edit_season_revalidates(test_session, create_package, summer_season):
    """Test that an edit leaving the season inverted is rejected."""
    package = await create_package()
    catalog = CostCatalog(test_session)
    season = await catalog.add_season(AddSeasonRequest(package_id=str(package.id), **summer_season))

    with pytest.raises(ValidationError):
        await catalog.edit_season(EditSeasonRequest(season_id=str(season.id), end_date=date(2025, 5, 1)))


@pytest.mark.asyncio
async def test_edit_season_into_overlap_rejected(test_session, create_package, summer_season):
    package = await create_package()
    catalog = CostCatalog(test_session)
    await catalog.add_season(AddSeasonRequest(package_id=str(package.id), **summer_season))
    autumn = await catalog.add_season(
        AddSeasonRequest(
            package_id=str(package.id),
            label="Autumn 2025",
            start_date=date(2025, 9, 1),
            end_date=date(2025, 11, 30),
            land_cost_per_person=Decimal("450"),
        )
    )

    with pytest.raises(ValidationError):
        await catalog.edit_season(EditSeasonRequest(season_id=str(autumn.id), start_date=date(2025, 8, 15)))


@pytest.mark.asyncio
async def test_delete_season(test_session, create_package, summer_season):
    """Test deleting a season uncovers its dates."""
    package = await create_package()
    catalog = CostCatalog(test_session)
    season = await catalog.add_season(AddSeasonRequest(package_id=str(package.id), **summer_season))

    await catalog.delete_season(str(season.id))

    assert await catalog.find_season(package.id, date(2025, 7, 10)) is None
    assert await catalog.list_seasons(package.id) == []


@pytest.mark.asyncio
async def test_unknown_season(test_session):
    """Test that unknown and malformed season ids are not found."""
    catalog = CostCatalog(test_session)

    with pytest.raises(NotFoundError):
        await catalog.delete_season(str(uuid4()))
    with pytest.raises(NotFoundError):
        await catalog.edit_season(EditSeasonRequest(season_id="not-a-uuid", label="x"))
