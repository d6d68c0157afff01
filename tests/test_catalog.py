# tests/test_catalog.py
"""Catalog lookups, cache invalidation and admin mutations"""

import pytest
from pydantic import ValidationError

from app.config import catalog_path
from app.schemas.catalog import DeviceModel, Issue, IssueUpdate, ModelUpdate, PriceEntry
from app.services.catalog import CatalogCache, CatalogError, CatalogRepository, format_price, whatsapp_link


@pytest.fixture
def repo(store, clock):
    return CatalogRepository(store, catalog_path(), cache_ttl_seconds=30, clock=clock)


@pytest.mark.asyncio
async def test_lookups_from_seed(repo):
    assert (await repo.lookup_model("ip15")).name == "iPhone 15"
    assert (await repo.lookup_issue("screen")).name == "Screen Replacement"
    assert await repo.lookup_model("nokia3310") is None
    assert await repo.is_valid_model("ip15")
    assert not await repo.is_valid_issue("unknown")
    entry = await repo.lookup_price("ip15", "screen")
    assert entry.type == "fixed" and entry.price == 699


@pytest.mark.asyncio
async def test_quote_preserves_variant_tag(repo):
    tbd = await repo.get_quote("ip15", "water")
    assert tbd["pricing"]["type"] == "tbd"
    assert "price" not in tbd["pricing"]

    ranged = await repo.get_quote("ip14", "screen")
    assert ranged["pricing"] == {"type": "range", "min": 459, "max": 599, "warrantyDays": 90,
                                 "eta": "1-2 hours", "notes": "Depends on panel grade"}

    assert await repo.get_quote("ip13", "water") is None


def test_price_entry_rejects_incomplete_variants():
    with pytest.raises(ValidationError):
        PriceEntry(modelId="ip15", issueId="screen", type="fixed")
    with pytest.raises(ValidationError):
        PriceEntry(modelId="ip15", issueId="screen", type="range", min=10)
    with pytest.raises(ValidationError):
        PriceEntry(modelId="ip15", issueId="screen", type="from")


def test_price_entry_drops_other_variant_amounts():
    entry = PriceEntry(modelId="ip15", issueId="screen", type="tbd", price=100, min=1, max=2)
    assert entry.pricing() == {"type": "tbd", "warrantyDays": 0, "eta": "", "notes": ""}


@pytest.mark.asyncio
async def test_cache_reloads_after_ttl_and_invalidate(clock):
    calls = []

    async def loader():
        calls.append(1)
        return len(calls)

    cache = CatalogCache(loader, ttl_seconds=30, clock=clock)
    assert await cache.get_or_load() == 1
    assert await cache.get_or_load() == 1
    clock.advance(30)
    assert await cache.get_or_load() == 2
    cache.invalidate_all()
    assert await cache.get_or_load() == 3


@pytest.mark.asyncio
async def test_mutation_invalidates_cache(repo):
    assert await repo.lookup_model("px8") is None
    await repo.add_model(DeviceModel(id="px8", name="Pixel 8", brand="google"))
    assert (await repo.lookup_model("px8")).name == "Pixel 8"


@pytest.mark.asyncio
async def test_duplicate_and_unknown_ids(repo):
    with pytest.raises(CatalogError):
        await repo.add_model(DeviceModel(id="ip15", name="dup", brand="apple"))
    with pytest.raises(CatalogError):
        await repo.add_issue(Issue(id="screen", name="dup"))
    with pytest.raises(CatalogError):
        await repo.delete_model("nope")
    with pytest.raises(CatalogError):
        await repo.upsert_price(PriceEntry(modelId="nope", issueId="screen", type="tbd"))
    with pytest.raises(CatalogError):
        await repo.delete_price("ip13", "water")


@pytest.mark.asyncio
async def test_renaming_model_moves_its_prices(repo):
    await repo.update_model("ip15", ModelUpdate(id="iphone15", name="iPhone 15 (2023)"))
    assert await repo.lookup_price("ip15", "screen") is None
    entry = await repo.lookup_price("iphone15", "screen")
    assert entry.price == 699
    assert (await repo.lookup_model("iphone15")).brand == "apple"


@pytest.mark.asyncio
async def test_renaming_issue_moves_its_prices(repo):
    await repo.update_issue("battery", IssueUpdate(id="batt"))
    assert (await repo.lookup_price("ip15", "batt")).type == "from"
    with pytest.raises(CatalogError):
        await repo.update_issue("batt", IssueUpdate(id="screen"))


@pytest.mark.asyncio
async def test_delete_cascades_to_prices(repo):
    await repo.delete_issue("screen")
    data = await repo.data()
    assert all(p.issue_id != "screen" for p in data.prices)
    await repo.delete_model("s23")
    data = await repo.data()
    assert all(p.model_id != "s23" for p in data.prices)


@pytest.mark.asyncio
async def test_upsert_replaces_existing_price(repo):
    await repo.upsert_price(PriceEntry(modelId="ip15", issueId="screen", type="range", min=650, max=750))
    entries = [p for p in (await repo.data()).prices if p.model_id == "ip15" and p.issue_id == "screen"]
    assert len(entries) == 1
    assert entries[0].type == "range"
    await repo.delete_price("ip15", "screen")
    assert await repo.lookup_price("ip15", "screen") is None


@pytest.mark.asyncio
async def test_seed_only_once(repo, store):
    assert await repo.seed()
    assert not await repo.seed()


def test_format_price_variants():
    assert format_price({"type": "fixed", "price": 699}, "RM") == "RM 699"
    assert format_price({"type": "fixed", "price": 0}, "RM") == "FREE"
    assert format_price({"type": "range", "min": 459.0, "max": 599.5}, "RM") == "RM 459 - 599.5"
    assert format_price({"type": "from", "from": 229}, "RM") == "From RM 229"
    assert format_price({"type": "tbd"}, "RM") == "Price TBD"
    assert format_price({}, "RM") == "Contact for quote"


def test_whatsapp_link_is_encoded():
    url = whatsapp_link("60123456789", "SPR Phone Repair", "iPhone 15", "Screen Replacement", "60123456789")
    assert url.startswith("https://wa.me/60123456789?text=Hi%20SPR%20Phone%20Repair")
    assert " " not in url
