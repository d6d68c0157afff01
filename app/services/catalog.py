"""
Brand/model/issue/price catalog.

Catalog data lives in the key-value store under `catalog:data`, seeded from
the bundled JSON file. Reads go through a CatalogCache that the application
owns; every admin mutation drops the whole cache.
"""

import json
import logging
import time
from typing import Awaitable, Callable, Optional
from urllib.parse import quote as urlquote

from app.schemas.catalog import DeviceModel, Issue, ModelUpdate, IssueUpdate, PriceData, PriceEntry
from app.services.store import KeyValueStore

log = logging.getLogger(__name__)

CATALOG_KEY = "catalog:data"
CATALOG_TTL_SECONDS = 365 * 24 * 60 * 60


class CatalogError(Exception):
    """Admin mutation rejected (duplicate id, unknown id)."""


class CatalogCache:
    def __init__(self, loader: Callable[[], Awaitable[PriceData]], ttl_seconds: float = 30,
                 clock: Callable[[], float] = time.time):
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._value: Optional[PriceData] = None
        self._loaded_at = 0.0

    async def get_or_load(self) -> PriceData:
        now = self._clock()
        if self._value is None or now - self._loaded_at >= self._ttl:
            self._value = await self._loader()
            self._loaded_at = now
        return self._value

    def invalidate_all(self) -> None:
        self._value = None
        self._loaded_at = 0.0


def load_seed(path: str) -> PriceData:
    with open(path, "r", encoding="utf-8") as fh:
        return PriceData.model_validate(json.load(fh))


class CatalogRepository:
    def __init__(self, store: KeyValueStore, seed_path: str, cache_ttl_seconds: float = 30,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.seed_path = seed_path
        self.cache = CatalogCache(self._load, cache_ttl_seconds, clock)

    async def _load(self) -> PriceData:
        raw = await self.store.get(CATALOG_KEY)
        if raw:
            return PriceData.model_validate(raw)
        return load_seed(self.seed_path)

    async def data(self) -> PriceData:
        return await self.cache.get_or_load()

    async def _save(self, data: PriceData) -> PriceData:
        await self.store.set(CATALOG_KEY, data.dump(), CATALOG_TTL_SECONDS)
        self.cache.invalidate_all()
        return data

    async def _fresh(self) -> PriceData:
        # mutations must start from persisted state, not a cached copy
        return (await self._load()).model_copy(deep=True)

    async def seed(self) -> bool:
        if await self.store.get(CATALOG_KEY):
            return False
        await self._save(load_seed(self.seed_path))
        log.info("Catalog seeded from %s", self.seed_path)
        return True

    # --- lookups ---

    async def lookup_model(self, model_id: str) -> Optional[DeviceModel]:
        data = await self.data()
        return next((m for m in data.models if m.id == model_id), None)

    async def lookup_issue(self, issue_id: str) -> Optional[Issue]:
        data = await self.data()
        return next((i for i in data.issues if i.id == issue_id), None)

    async def lookup_price(self, model_id: str, issue_id: str) -> Optional[PriceEntry]:
        data = await self.data()
        return next((p for p in data.prices if p.model_id == model_id and p.issue_id == issue_id), None)

    async def is_valid_model(self, model_id: str) -> bool:
        return await self.lookup_model(model_id) is not None

    async def is_valid_issue(self, issue_id: str) -> bool:
        return await self.lookup_issue(issue_id) is not None

    async def get_quote(self, model_id: str, issue_id: str) -> Optional[dict]:
        data = await self.data()
        model = await self.lookup_model(model_id)
        issue = await self.lookup_issue(issue_id)
        entry = await self.lookup_price(model_id, issue_id)
        if not model or not issue or not entry:
            return None
        return {
            "brand": data.brand,
            "currency": data.currency,
            "disclaimer": data.disclaimer,
            "whatsappNumber": data.whatsappNumber,
            "model": model,
            "issue": issue,
            "pricing": entry.pricing(),
        }

    # --- admin mutations ---

    async def add_model(self, model: DeviceModel) -> PriceData:
        data = await self._fresh()
        if any(m.id == model.id for m in data.models):
            raise CatalogError(f'Model with id "{model.id}" already exists')
        data.models.append(model)
        return await self._save(data)

    async def update_model(self, model_id: str, updates: ModelUpdate) -> PriceData:
        data = await self._fresh()
        idx = next((i for i, m in enumerate(data.models) if m.id == model_id), None)
        if idx is None:
            raise CatalogError(f'Model with id "{model_id}" not found')
        if updates.id and updates.id != model_id:
            if any(m.id == updates.id for m in data.models):
                raise CatalogError(f'Model with id "{updates.id}" already exists')
            for p in data.prices:
                if p.model_id == model_id:
                    p.model_id = updates.id
        data.models[idx] = data.models[idx].model_copy(update=updates.model_dump(exclude_none=True))
        return await self._save(data)

    async def delete_model(self, model_id: str) -> PriceData:
        data = await self._fresh()
        if not any(m.id == model_id for m in data.models):
            raise CatalogError(f'Model with id "{model_id}" not found')
        data.models = [m for m in data.models if m.id != model_id]
        data.prices = [p for p in data.prices if p.model_id != model_id]
        return await self._save(data)

    async def add_issue(self, issue: Issue) -> PriceData:
        data = await self._fresh()
        if any(i.id == issue.id for i in data.issues):
            raise CatalogError(f'Issue with id "{issue.id}" already exists')
        data.issues.append(issue)
        return await self._save(data)

    async def update_issue(self, issue_id: str, updates: IssueUpdate) -> PriceData:
        data = await self._fresh()
        idx = next((i for i, x in enumerate(data.issues) if x.id == issue_id), None)
        if idx is None:
            raise CatalogError(f'Issue with id "{issue_id}" not found')
        if updates.id and updates.id != issue_id:
            if any(x.id == updates.id for x in data.issues):
                raise CatalogError(f'Issue with id "{updates.id}" already exists')
            for p in data.prices:
                if p.issue_id == issue_id:
                    p.issue_id = updates.id
        data.issues[idx] = data.issues[idx].model_copy(update=updates.model_dump(exclude_none=True))
        return await self._save(data)

    async def delete_issue(self, issue_id: str) -> PriceData:
        data = await self._fresh()
        if not any(x.id == issue_id for x in data.issues):
            raise CatalogError(f'Issue with id "{issue_id}" not found')
        data.issues = [x for x in data.issues if x.id != issue_id]
        data.prices = [p for p in data.prices if p.issue_id != issue_id]
        return await self._save(data)

    async def upsert_price(self, entry: PriceEntry) -> PriceData:
        data = await self._fresh()
        if not any(m.id == entry.model_id for m in data.models):
            raise CatalogError(f'Model with id "{entry.model_id}" not found')
        if not any(x.id == entry.issue_id for x in data.issues):
            raise CatalogError(f'Issue with id "{entry.issue_id}" not found')
        data.prices = [
            p for p in data.prices
            if not (p.model_id == entry.model_id and p.issue_id == entry.issue_id)
        ]
        data.prices.append(entry)
        return await self._save(data)

    async def delete_price(self, model_id: str, issue_id: str) -> PriceData:
        data = await self._fresh()
        kept = [p for p in data.prices if not (p.model_id == model_id and p.issue_id == issue_id)]
        if len(kept) == len(data.prices):
            raise CatalogError(f'No price for model "{model_id}" and issue "{issue_id}"')
        data.prices = kept
        return await self._save(data)


def format_price(pricing: dict, currency: str) -> str:
    kind = pricing.get("type")
    if kind == "fixed":
        amount = pricing.get("price")
        return "FREE" if amount == 0 else f"{currency} {_amount(amount)}"
    if kind == "range":
        return f"{currency} {_amount(pricing.get('min'))} - {_amount(pricing.get('max'))}"
    if kind == "from":
        return f"From {currency} {_amount(pricing.get('from'))}"
    if kind == "tbd":
        return "Price TBD"
    return "Contact for quote"


def _amount(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def whatsapp_link(number: str, brand: str, model_name: str, issue_name: str, reference: str) -> str:
    text = f"Hi {brand}, I'd like to enquire about {issue_name} for my {model_name}. Quote reference: {reference}"
    return f"https://wa.me/{number}?text={urlquote(text)}"
