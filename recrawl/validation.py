import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set

from .errors import CatalogValidationError
from .schema import Product, Variant

logger = logging.getLogger(__name__)

PRODUCT_MANDATORY_FIELDS = ("name", "description")

VARIANT_MANDATORY_FIELDS = (
    "original_price",
    "color",
    "size",
    "variant_id",
    "image_url",
    "alternate_image_urls",
    "link_url",
    "deeplink_url",
    "mpn",
)


@dataclass
class ValidationResult:
    valid_products: List[Product]
    invalid_count: int
    total_count: int
    variants_filtered: int
    issues: List[str] = field(default_factory=list)

    @property
    def valid_count(self) -> int:
        return len(self.valid_products)


def _missing(value) -> bool:
    return value is None or value == "" or value == []


def _product_issues(product: Product) -> List[str]:
    issues = [f"missing product field {name}" for name in PRODUCT_MANDATORY_FIELDS if _missing(getattr(product, name))]
    if not issues and len(product.description.split()) <= 1:
        issues.append(f"description must contain more than 1 word, got {product.description!r}")
    return issues


def _variant_issues(variant: Variant) -> List[str]:
    issues = [f"missing variant field {name}" for name in VARIANT_MANDATORY_FIELDS if _missing(getattr(variant, name))]
    if not issues and not variant.original_price:
        issues.append("original_price must be a non-zero number")
    return issues


def _check_mpn_per_color(product: Product, variants: List[Variant]):
    mpns: Dict[str, Set[str]] = {}
    for v in variants:
        mpns.setdefault(v.color, set()).add(v.mpn)
    for color, values in mpns.items():
        if len(values) > 1:
            raise CatalogValidationError(
                f'MPN inconsistency detected in product "{product.parent_product_id}": '
                f'variants with color "{color}" have different MPNs: [{", ".join(sorted(values))}]. '
                "All variants with the same color must have the same MPN."
            )


def filter_valid_products(products: List[Product]) -> ValidationResult:
    """
    Keep the products a downstream catalog consumer accepts.

    Products missing a name or a real description are dropped, variants
    missing mandatory fields or repeating a variant_id are filtered, and a
    product left without variants is dropped. Two MPNs for one colour inside
    an accepted product abort the export.
    """
    valid: List[Product] = []
    issues: List[str] = []
    invalid = 0
    filtered = 0

    for index, product in enumerate(products, start=1):
        problems = _product_issues(product)
        if problems:
            invalid += 1
            issues.extend(f"#{index} {product.parent_product_id}: {p}" for p in problems)
            continue

        kept: List[Variant] = []
        seen_ids: Set[str] = set()
        for v_index, variant in enumerate(product.variants, start=1):
            problems = _variant_issues(variant)
            if variant.variant_id in seen_ids:
                problems.append(f"duplicate variant id {variant.variant_id}")
            seen_ids.add(variant.variant_id)
            if problems:
                filtered += 1
                issues.extend(f"#{index}.{v_index} {product.parent_product_id}: {p}" for p in problems)
                continue
            kept.append(variant)

        if not kept:
            invalid += 1
            issues.append(f"#{index} {product.parent_product_id}: no valid variants left")
            continue

        _check_mpn_per_color(product, kept)
        valid.append(product.model_copy(update={"variants": kept}))

    logger.info(
        "[VALIDATE] %d valid, %d invalid, %d variants filtered (of %d products)",
        len(valid),
        invalid,
        filtered,
        len(products),
    )
    return ValidationResult(
        valid_products=valid,
        invalid_count=invalid,
        total_count=len(products),
        variants_filtered=filtered,
        issues=issues,
    )
