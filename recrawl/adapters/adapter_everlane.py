# adapter_everlane.py
from typing import Any, Dict, Optional

import orjson

from ..normalizer import as_text, build_pricing, clean_description, make_mpn, make_variant_id
from ..schema import Product, Variant
from .base import RetailerAdapter, dig

LISTING_URL = "https://ac.cnstrc.com/browse/collection_id/womens-all"
LISTING_PARAMS = {
    "key": "key_KQlGTC4GnitM06o7",
    "c": "cio-fe-web-everlane",
    "s": 2,
}
RESULTS_PER_PAGE = 100
DETAIL_URL = "https://www.everlane.com/products/{permalink}.js"
PRODUCT_URL = "https://www.everlane.com/products/{permalink}"
IMAGE_URL = "https://media.everlane.com/image/upload/c_fill,dpr_2,f_auto,g_face:center,q_auto,w_500/v1/{src}"

IN_STOCK_STATES = {"shippable", "low_stock"}
MAX_ALTERNATES = 5


class EverlaneAdapter(RetailerAdapter):
    """Constructor.io browse results; one variant per swatch x size."""

    key = "everlane"
    name = "Everlane"
    store_url = "https://www.everlane.com"
    return_policy_link = "https://support.everlane.com/what-is-your-return-policy-H1fMnra0s"

    def dedupe_key(self, raw: Dict[str, Any]) -> Any:
        return dig(raw, "data", "product_data", "id")

    async def fetch_page(self, fetcher, page: int):
        params = dict(LISTING_PARAMS, num_results_per_page=RESULTS_PER_PAGE, page=page)
        data = await fetcher.get_json(LISTING_URL, params=params)
        total = dig(data, "response", "total_num_results")
        return dig(data, "response", "results", default=[]), total

    async def fetch_detail(self, fetcher, raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        permalink = dig(raw, "data", "product_data", "permalink")
        if not permalink:
            return None
        data = await fetcher.get_json(DETAIL_URL.format(permalink=permalink))
        for item in dig(data, "pageProps", "fallbackData", "products", default=[]):
            if item.get("permalink") == permalink:
                return item
        return None

    def to_product(self, raw: Dict[str, Any], detail: Optional[Dict[str, Any]] = None) -> Product:
        parent_id = self.require_id(raw)
        data = dig(raw, "data", "product_data", default={})

        variants = []
        for swatch in data.get("product_swatches") or []:
            color = as_text(dig(swatch, "color", "name")) or "Default"
            link = PRODUCT_URL.format(permalink=swatch.get("permalink") or data.get("permalink") or "")
            album = dig(swatch, "albums", "square", default=[])
            image_url = IMAGE_URL.format(src=album[0]["src"]) if album and album[0].get("src") else ""
            alternates = [
                IMAGE_URL.format(src=img["src"])
                for img in album
                if img.get("src") and img.get("tag") != "primary"
            ][:MAX_ALTERNATES]
            pricing = build_pricing(selling=swatch.get("price"), original=swatch.get("original_price"))
            in_stock = swatch.get("orderable_state") in IN_STOCK_STATES

            for size in swatch.get("sizes") or []:
                variants.append(
                    Variant(
                        variant_id=make_variant_id(parent_id, color, size, swatch.get("id")),
                        link_url=link,
                        deeplink_url=link,
                        image_url=image_url,
                        alternate_image_urls=alternates,
                        is_in_stock=in_stock,
                        size=as_text(size),
                        color=color,
                        mpn=make_mpn(parent_id, color),
                        **pricing,
                    )
                )

        size_chart = dig(detail, "sizeChart")
        return self.base_product(
            parent_id,
            name=data.get("display_name") or "",
            description=clean_description(dig(detail, "details", "description")),
            gender=dig(detail, "primary_collection", "gender", default=""),
            materials=dig(detail, "details", "fabric", "care", default=""),
            size_chart=orjson.dumps(size_chart).decode() if size_chart else "",
            variants=variants,
        )
