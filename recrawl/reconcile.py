"""
Catalog reconciliation
======================
Diffs a freshly scraped product set against the products already persisted
for a store and tags every product and variant with the operation the
persistence step has to perform (INSERT / UPDATE / DELETE / NO_CHANGE).

The reconciler is pure: no I/O, no clock, no randomness beyond the ids the
Product model hands out to products that were never persisted.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .schema import OperationType, Product, Variant

logger = logging.getLogger(__name__)

# Fields whose change turns a matched variant into an UPDATE.
VARIANT_COMPARE_FIELDS = (
    "original_price",
    "selling_price",
    "sale_price",
    "final_price",
    "is_on_sale",
    "is_in_stock",
    "image_url",
    "link_url",
    "deeplink_url",
)

_CHANGED = {OperationType.INSERT, OperationType.UPDATE, OperationType.DELETE}


def _empty_counts() -> Dict[str, int]:
    return {op.value: 0 for op in OperationType}


@dataclass
class OperationSummary:
    products: Dict[str, int] = field(default_factory=_empty_counts)
    variants: Dict[str, int] = field(default_factory=_empty_counts)
    skipped: int = 0

    def count(self, product: Product):
        self.products[OperationType(product.operation_type).value] += 1
        for variant in product.variants:
            self.variants[OperationType(variant.operation_type).value] += 1

    def as_dict(self) -> Dict:
        return {"products": dict(self.products), "variants": dict(self.variants), "skipped": self.skipped}


@dataclass
class ReconcileResult:
    products: List[Product]
    summary: OperationSummary
    product_ids: List[str]

    def by_operation(self, op: OperationType) -> List[Product]:
        return [p for p in self.products if p.operation_type == op]


def compare_variants(existing: Optional[Variant], fresh: Variant) -> OperationType:
    """Strict equality over VARIANT_COMPARE_FIELDS; no float tolerance."""
    if existing is None:
        return OperationType.INSERT
    for name in VARIANT_COMPARE_FIELDS:
        if getattr(existing, name) != getattr(fresh, name):
            return OperationType.UPDATE
    return OperationType.NO_CHANGE


def product_operation(existing: Optional[Product], variant_ops: Sequence[OperationType]) -> OperationType:
    if existing is None:
        return OperationType.INSERT
    if any(op in _CHANGED for op in variant_ops):
        return OperationType.UPDATE
    return OperationType.NO_CHANGE


def _dedupe_variants(variants: Iterable[Variant]) -> List[Variant]:
    unique: "OrderedDict[str, Variant]" = OrderedDict()
    for v in variants:
        unique.setdefault(v.variant_id, v)
    return list(unique.values())


def _mark_deleted(product: Product) -> Product:
    return product.model_copy(
        update={
            "operation_type": OperationType.DELETE,
            "variants": [v.model_copy(update={"operation_type": OperationType.DELETE}) for v in product.variants],
        }
    )


def _reconcile_product(fresh: Product, existing: Optional[Product]) -> Product:
    existing_variants: Dict[str, Variant] = {}
    if existing is not None:
        for v in existing.variants:
            existing_variants.setdefault(v.variant_id, v)

    variants: List[Variant] = []
    ops: List[OperationType] = []
    seen = set()

    for variant in fresh.variants:
        op = compare_variants(existing_variants.get(variant.variant_id), variant)
        variants.append(variant.model_copy(update={"operation_type": op}))
        ops.append(op)
        seen.add(variant.variant_id)

    # Variants the retailer stopped listing stay on the product as DELETE.
    for variant_id, old in existing_variants.items():
        if variant_id not in seen:
            variants.append(old.model_copy(update={"operation_type": OperationType.DELETE}))
            ops.append(OperationType.DELETE)

    update = {
        "operation_type": product_operation(existing, ops),
        "variants": _dedupe_variants(variants),
    }
    if existing is not None:
        update["id"] = existing.id
    return fresh.model_copy(update=update)


def reconcile(fresh_products: Iterable[Product], existing_products: Iterable[Product]) -> ReconcileResult:
    """
    Classify `fresh_products` against `existing_products`.

    Fresh products without a parent_product_id are skipped and counted;
    duplicate parent ids keep their first occurrence. Existing products the
    retailer no longer lists come back first, tagged DELETE down to every
    variant, followed by the fresh products in input order.
    """
    if fresh_products is None or existing_products is None:
        raise TypeError("reconcile() needs iterables of products, got None")

    summary = OperationSummary()

    existing_by_parent: "OrderedDict[str, Product]" = OrderedDict()
    for product in existing_products:
        if not product.parent_product_id:
            logger.warning("[RECONCILE] stored product %s has no parent_product_id; ignored", product.id)
            continue
        existing_by_parent.setdefault(product.parent_product_id, product)

    fresh_by_parent: "OrderedDict[str, Product]" = OrderedDict()
    for product in fresh_products:
        parent_id = (product.parent_product_id or "").strip()
        if not parent_id:
            summary.skipped += 1
            logger.warning("[RECONCILE] skipping scraped product without parent_product_id: %r", product.name)
            continue
        if parent_id in fresh_by_parent:
            logger.debug("[RECONCILE] duplicate parent_product_id %s dropped", parent_id)
            continue
        fresh_by_parent[parent_id] = product

    deleted = [
        _mark_deleted(product)
        for parent_id, product in existing_by_parent.items()
        if parent_id not in fresh_by_parent
    ]
    upserted = [
        _reconcile_product(product, existing_by_parent.get(parent_id))
        for parent_id, product in fresh_by_parent.items()
    ]

    products = deleted + upserted
    for product in products:
        summary.count(product)

    logger.info(
        "[RECONCILE] products %s | variants %s | skipped %d",
        summary.products,
        summary.variants,
        summary.skipped,
    )
    return ReconcileResult(
        products=products,
        summary=summary,
        product_ids=[p.id for p in products],
    )
