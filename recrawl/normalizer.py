import html as html_lib
import re
from collections import OrderedDict
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple, Union
from uuid import NAMESPACE_DNS, uuid5

import tldextract
from bs4 import BeautifulSoup
from slugify import slugify

DESCRIPTION_LIMIT = 5000

_CONTROL_CHARS = re.compile(r"[\u0000-\u001F\u007F-\u009F]")
_WHITESPACE = re.compile(r"\s+")


def as_text(value) -> str:
    # Retailers send sizes like 26 or 0 as numbers.
    return "" if value is None else str(value).strip()


def make_variant_id(parent_product_id, color, size, *extra) -> str:
    """
    Content-addressed variant id: the same product/colour/size always maps
    to the same id, run after run.
    """
    parts = [as_text(parent_product_id), as_text(color), as_text(size)]
    parts.extend(as_text(e) for e in extra if e is not None)
    return str(uuid5(NAMESPACE_DNS, "|".join(parts)))


def make_mpn(parent_product_id, color) -> str:
    # Every size of one colour shares an MPN.
    return str(uuid5(NAMESPACE_DNS, f"{as_text(parent_product_id)}-{as_text(color)}"))


def dedupe_by_key(
    records: Iterable[Any],
    key: Union[str, Callable[[Any], Any]],
) -> Tuple[List[Any], int]:
    """
    Collapse records sharing a key, keeping the first occurrence.

    `key` is a dict key or a callable. Records whose key cannot be read are
    kept (in place) so the caller can report them as malformed. Returns
    (records in input order, number of duplicates dropped).
    """
    getter = key if callable(key) else (lambda r: r.get(key) if isinstance(r, dict) else None)
    seen: "OrderedDict[Hashable, Any]" = OrderedDict()
    dropped = 0
    for index, record in enumerate(records):
        try:
            k = getter(record)
        except (KeyError, AttributeError, TypeError, IndexError):
            k = None
        if k is None or str(k).strip() == "":
            seen[("__unkeyed__", index)] = record
            continue
        k = str(k).strip()
        if k in seen:
            dropped += 1
            continue
        seen[k] = record
    return list(seen.values()), dropped


def _to_float(value) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    v = str(value).replace(",", "").strip()
    for ch in "$€£":
        v = v.replace(ch, "")
    try:
        return float(v)
    except ValueError:
        return 0.0


def calculate_discount(original_price, final_price) -> int:
    original = _to_float(original_price)
    final = _to_float(final_price)
    if not original or not final or original <= final:
        return 0
    return round((original - final) / original * 100)


def build_pricing(selling, original=None, compare_at=None) -> Dict[str, Any]:
    """
    Derive the variant price block from what a retailer reports.

    `selling` is the price the shopper pays, `compare_at` a struck-through
    price (Shopify style) and `original` a list price. Whichever of
    `compare_at` / `original` is higher than the selling price marks a sale.
    """
    selling_price = _to_float(selling)
    reference = max(_to_float(compare_at), _to_float(original))
    on_sale = selling_price > 0 and reference > selling_price
    original_price = reference if on_sale else (_to_float(original) or selling_price)

    return {
        "original_price": original_price,
        "selling_price": selling_price,
        "sale_price": selling_price if on_sale else None,
        "final_price": selling_price or original_price,
        "discount": calculate_discount(original_price, selling_price) if on_sale else 0,
        "is_on_sale": on_sale,
    }


def clean_description(raw: Optional[str], limit: int = DESCRIPTION_LIMIT) -> str:
    if not raw:
        return ""
    text = BeautifulSoup(raw, "lxml").get_text(" ", strip=True)
    text = html_lib.unescape(text)
    text = _CONTROL_CHARS.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:limit]


def get_domain_name(url: str) -> str:
    if not url:
        return ""
    ext = tldextract.extract(url)
    if ext.domain and ext.suffix:
        return f"{ext.domain}.{ext.suffix}"
    host = url.split("://", 1)[-1].split("/", 1)[0]
    return host[4:] if host.startswith("www.") else host


def store_slug(name: str) -> str:
    return slugify(name or "store", separator="_")
