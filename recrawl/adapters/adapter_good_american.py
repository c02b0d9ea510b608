# adapter_good_american.py
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..normalizer import as_text, build_pricing, clean_description, make_mpn, make_variant_id
from ..schema import Product, Variant
from .base import RetailerAdapter, dig

LISTING_URL = "https://www.goodamerican.com/en-US/api/searchspring"
DETAIL_URL = "https://www.goodamerican.com/en-pk/products/{handle}"
DETAIL_DATA = "routes/($locale)/products/$handle"
PRODUCT_URL = "https://www.goodamerican.com/en-pk/products/{handle}"


def _option(variant: Dict, name: str) -> str:
    for opt in variant.get("selectedOptions") or []:
        if (opt.get("name") or "").lower() == name.lower():
            return as_text(opt.get("value"))
    return ""


def _category(tags: List[str]) -> str:
    for tag in tags or []:
        if isinstance(tag, str) and tag.startswith("category:"):
            return tag.split(":", 1)[1]
    return ""


class GoodAmericanAdapter(RetailerAdapter):
    """
    Searchspring listing; each result carries Shopify variant nodes
    (gid://shopify/ProductVariant/<n>), the numeric tail is the variant id.
    """

    key = "good_american"
    name = "Good American"
    store_url = "https://www.goodamerican.com"
    return_policy_link = "https://www.goodamerican.com/pages/returns-info"

    async def fetch_page(self, fetcher, page: int):
        data = await fetcher.get_json(
            LISTING_URL,
            params={"page": page, "bgfilter.collection_handle": "clothing"},
            headers={"Accept": "application/json"},
        )
        total = dig(data, "pagination", "totalResults")
        return dig(data, "results", default=[]), total

    async def fetch_detail(self, fetcher, raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        handle = raw.get("handle")
        if not handle:
            return None
        return await fetcher.get_json(
            DETAIL_URL.format(handle=quote(handle)),
            params={"_data": DETAIL_DATA},
            headers={"Accept": "application/json"},
        )

    def to_product(self, raw: Dict[str, Any], detail: Optional[Dict[str, Any]] = None) -> Product:
        parent_id = self.require_id(raw)
        product_url = PRODUCT_URL.format(handle=raw.get("handle") or "")

        variants = []
        for node in dig(raw, "variants", "nodes", default=[]):
            color = _option(node, "Color")
            size = _option(node, "Size")
            native = str(node.get("id") or "").split("/")[-1]
            image_url = dig(node, "image", "url", default="")
            alternates = [img.get("url") for img in node.get("images") or [] if isinstance(img, dict) and img.get("url")]
            if not alternates and node.get("images") and raw.get("imageUrl"):
                alternates = [raw["imageUrl"]]

            variants.append(
                Variant(
                    variant_id=native or make_variant_id(parent_id, color, size),
                    link_url=product_url,
                    deeplink_url=product_url,
                    image_url=image_url,
                    alternate_image_urls=[u for u in alternates if u != image_url],
                    is_in_stock=not node.get("currentlyNotInStock", False),
                    size=size,
                    color=color,
                    mpn=make_mpn(parent_id, color),
                    **build_pricing(
                        selling=dig(node, "priceV2", "amount"),
                        compare_at=dig(node, "compareAtPriceV2", "amount"),
                    ),
                )
            )

        return self.base_product(
            parent_id,
            name=raw.get("name") or "",
            description=clean_description(dig(detail, "product", "description")),
            category=_category(raw.get("ss_tags")),
            variants=variants,
        )
