# recrawl/repository.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import logging

from .errors import PersistenceError
from .schema import OperationType, Product, Store

logger = logging.getLogger(__name__)

PRODUCTS_TABLE = "products"
STORES_TABLE = "stores"


@dataclass
class WriteReport:
    operations: Dict[str, int] = field(default_factory=lambda: {op.value: 0 for op in OperationType})
    failed: int = 0
    product_ids: List[str] = field(default_factory=list)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _rows(response) -> List[Dict[str, Any]]:
    # supabase-py v2 returns an object with .data; an .error attribute only on older clients
    error = getattr(response, "error", None)
    if error:
        raise PersistenceError(f"Supabase error: {error}")
    return getattr(response, "data", None) or []


class CatalogRepository:
    """
    Reads and writes stores and products in Supabase.

    Products are documents with their variants embedded in a JSON column;
    stores keep the list of product ids they own.
    """

    def __init__(self, client=None):
        if client is None:
            from .supabase_client import get_supabase
            client = get_supabase()
        self.client = client

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def get_store(self, store_type: str, country: str = "US") -> Optional[Store]:
        resp = (
            self.client.table(STORES_TABLE)
            .select("*")
            .eq("store_type", store_type)
            .eq("country", country)
            .limit(1)
            .execute()
        )
        rows = _rows(resp)
        if not rows:
            logger.info("[STORE] no %s store for %s yet", store_type, country)
            return None
        return Store.model_validate(rows[0])

    def load_products(self, ids: Iterable[str], page_size: int = 500) -> List[Product]:
        ids = [str(i) for i in ids]
        found: Dict[str, Product] = {}
        for start in range(0, len(ids), page_size):
            chunk = ids[start:start + page_size]
            resp = self.client.table(PRODUCTS_TABLE).select("*").in_("id", chunk).execute()
            for row in _rows(resp):
                product = Product.model_validate(row)
                found[product.id] = product

        missing = len(ids) - len(found)
        if missing:
            logger.warning("[STORE] %d referenced products not found in %s", missing, PRODUCTS_TABLE)
        # keep the store's reference order
        return [found[i] for i in ids if i in found]

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    def _write(self, product: Product):
        op = OperationType(product.operation_type)
        table = self.client.table(PRODUCTS_TABLE)
        doc = product.to_document()

        if op == OperationType.INSERT:
            _rows(table.insert(doc).execute())
        elif op == OperationType.UPDATE:
            doc.pop("id", None)
            _rows(table.update(doc).eq("id", product.id).execute())
        elif op == OperationType.DELETE:
            # kept for audit; only the operation tags change
            patch = {"operation_type": doc["operation_type"], "variants": doc["variants"]}
            _rows(table.update(patch).eq("id", product.id).execute())
        # NO_CHANGE: acknowledged without a write

    def apply(self, products: Iterable[Product]) -> WriteReport:
        """
        Persist products one at a time. A failed write is logged and
        counted; the remaining products are still written.
        """
        report = WriteReport()
        for product in products:
            try:
                self._write(product)
            except Exception as exc:
                report.failed += 1
                logger.error(
                    "[STORE] %s of %s (%s) failed: %s",
                    OperationType(product.operation_type).value,
                    product.parent_product_id,
                    product.name,
                    exc,
                )
                continue
            report.operations[OperationType(product.operation_type).value] += 1
            report.product_ids.append(product.id)

        logger.info("[STORE] writes %s | failed %d", report.operations, report.failed)
        return report

    def save_store(self, store_data: Store, product_ids: Iterable[str], existing: Optional[Store] = None) -> Store:
        """
        Create the store on its first scrape, otherwise extend it: the
        reference list becomes the union of prior and new product ids.
        """
        new_ids = [str(i) for i in product_ids]
        table = self.client.table(STORES_TABLE)

        if existing is not None and existing.id:
            merged = list(dict.fromkeys([*existing.products, *new_ids]))
            patch = {"products": merged, "is_scrapped": True, "updated_at": _now()}
            rows = _rows(table.update(patch).eq("id", existing.id).execute())
            logger.info("[STORE] updated %s with %d total products", existing.name, len(merged))
            if rows:
                return Store.model_validate(rows[0])
            return existing.model_copy(update={"products": merged, "is_scrapped": True})

        record = store_data.model_dump(mode="json", exclude={"id"})
        record.update(
            {
                "products": list(dict.fromkeys(new_ids)),
                "is_scrapped": True,
                "created_at": _now(),
                "updated_at": _now(),
            }
        )
        rows = _rows(table.insert(record).execute())
        logger.info("[STORE] created store entry %s", store_data.name)
        return Store.model_validate(rows[0]) if rows else Store.model_validate(record)
