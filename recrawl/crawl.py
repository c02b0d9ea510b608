import asyncio
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import orjson

from .adapters.adapter_everlane import EverlaneAdapter
from .adapters.adapter_free_people import FreePeopleAdapter
from .adapters.adapter_good_american import GoodAmericanAdapter
from .adapters.base import RetailerAdapter
from .batch import run_in_batches
from .config import Settings, get_settings
from .errors import MalformedRecord
from .exporter import CatalogFiles, write_catalog
from .fetcher import Fetcher
from .normalizer import dedupe_by_key
from .reconcile import OperationSummary, reconcile
from .repository import CatalogRepository, WriteReport
from .validation import filter_valid_products

logger = logging.getLogger(__name__)

ADAPTERS = {
    GoodAmericanAdapter.key: GoodAmericanAdapter,
    EverlaneAdapter.key: EverlaneAdapter,
    FreePeopleAdapter.key: FreePeopleAdapter,
    # add more retailers here...
}

RESULTS_FILE = "recrawl-processing-results.json"


def get_adapter(key: str) -> RetailerAdapter:
    try:
        return ADAPTERS[key]()
    except KeyError:
        raise ValueError(f"Unknown retailer {key!r}; choose from {', '.join(sorted(ADAPTERS))}") from None


@dataclass
class RecrawlReport:
    store: str
    listed: int = 0
    duplicates: int = 0
    malformed: int = 0
    detail_errors: int = 0
    conversion_errors: int = 0
    summary: OperationSummary = field(default_factory=OperationSummary)
    writes: WriteReport = field(default_factory=WriteReport)
    valid_count: int = 0
    invalid_count: int = 0
    files: Optional[CatalogFiles] = None

    def as_dict(self) -> Dict:
        return {
            "store": self.store,
            "listed": self.listed,
            "duplicates": self.duplicates,
            "malformed": self.malformed,
            "detail_errors": self.detail_errors,
            "conversion_errors": self.conversion_errors,
            "operations": self.summary.as_dict(),
            "writes": {"operations": self.writes.operations, "failed": self.writes.failed},
            "valid_products": self.valid_count,
            "invalid_products": self.invalid_count,
            "catalog": str(self.files.gzip_path) if self.files else None,
        }


async def collect_products(adapter: RetailerAdapter, fetcher: Fetcher, settings: Settings, report: RecrawlReport):
    raw = await adapter.fetch_listing(fetcher, delay=settings.batch_delay)
    report.listed = len(raw)
    unique, report.duplicates = dedupe_by_key(raw, adapter.dedupe_key)
    logger.info("[INIT] %s: %d listed, %d unique", adapter.name, len(raw), len(unique))

    async def enrich(record):
        # A failed detail fetch degrades to listing-only fields.
        try:
            detail = await adapter.fetch_detail(fetcher, record)
        except Exception as exc:
            report.detail_errors += 1
            logger.warning("[DETAIL] %s %s: %s", adapter.key, adapter.dedupe_key(record), exc)
            detail = None
        try:
            return adapter.to_product(record, detail)
        except MalformedRecord as exc:
            report.malformed += 1
            logger.warning("[SKIP] %s", exc)
            return None

    batch = await run_in_batches(
        unique,
        enrich,
        concurrency=settings.concurrency,
        delay=settings.batch_delay,
        label="detail",
    )
    report.conversion_errors = batch.error_count
    return [product for _, product in batch.results if product is not None]


async def run_recrawl(
    adapter: RetailerAdapter,
    repository: CatalogRepository,
    settings: Settings,
    fetcher: Optional[Fetcher] = None,
) -> RecrawlReport:
    """
    One retailer, end to end: fetch, reconcile against the stored catalog,
    persist, update the store, validate and export.
    """
    report = RecrawlReport(store=adapter.name)

    owns_fetcher = fetcher is None
    if owns_fetcher:
        fetcher = Fetcher.from_settings(settings, credentials=adapter.credentials(settings))
    try:
        fresh = await collect_products(adapter, fetcher, settings, report)
    finally:
        if owns_fetcher:
            await fetcher.aclose()

    store = repository.get_store(adapter.key, adapter.country)
    existing = repository.load_products(store.products) if store else []
    logger.info("[RECONCILE] %s: %d fresh vs %d stored products", adapter.name, len(fresh), len(existing))

    result = reconcile(fresh, existing)
    result.summary.skipped += report.malformed
    report.summary = result.summary

    report.writes = repository.apply(result.products)
    repository.save_store(adapter.store_template(), report.writes.product_ids, existing=store)

    validation = filter_valid_products(result.products)
    report.valid_count = validation.valid_count
    report.invalid_count = validation.invalid_count

    report.files = write_catalog(
        validation.valid_products,
        adapter.store_info(),
        settings.output_dir,
        adapter.key,
        adapter.country,
    )
    logger.info(
        "[DONE] %s: %d products processed, %d valid products saved",
        adapter.name,
        len(result.products),
        report.valid_count,
    )
    return report


async def main(keys: List[str]) -> Dict:
    settings = get_settings()
    repository = CatalogRepository()
    results = {"successful": [], "failed": [], "total": len(keys)}

    for key in keys:
        try:
            report = await run_recrawl(get_adapter(key), repository, settings)
            results["successful"].append(report.as_dict())
        except Exception as exc:
            logger.exception("[JOB] ERR  → %s", key)
            results["failed"].append({"store": key, "error": f"{type(exc).__name__}: {exc}"})

    out = Path(settings.output_dir) / RESULTS_FILE
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(orjson.dumps(results, option=orjson.OPT_INDENT_2))
    logger.info("[DONE] %d successful, %d failed; results at %s", len(results["successful"]), len(results["failed"]), out)
    return results


if __name__ == "__main__":
    # Usage:
    #   python -m recrawl.crawl                       -> every registered retailer
    #   python -m recrawl.crawl good_american everlane -> only those
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    arg_keys = sys.argv[1:] or list(ADAPTERS)
    summary = asyncio.run(main(arg_keys))
    sys.exit(1 if summary["failed"] else 0)
