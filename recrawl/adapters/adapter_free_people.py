# adapter_free_people.py
from typing import Any, Dict, List, Optional

from ..batch import paginate
from ..fetcher import StaticCredentials
from ..normalizer import as_text, build_pricing, clean_description, make_mpn, make_variant_id
from ..schema import Product, Variant
from .base import RetailerAdapter, dig

TILES_URL = "https://api.freepeople.com/api/catalog-search-service/v0/fp-us/tiles/{slug}"
DETAIL_URL = "https://api.freepeople.com/api/catalog/v1/fp-us/pools/US_DIRECT/products"
PRODUCT_URL = "https://www.freepeople.com/products/{slug}"
IMAGE_URL = "https://images.urbndata.com/is/image/FreePeople/{style}_{code}_{image}"

PAGE_SIZE = 72
PRODUCTS_PER_CATEGORY = 500
MAX_ALTERNATES = 5

# (category, gender, tiles slug)
CATEGORIES = [
    ("Women's Dresses", "Women", "womens-clothes"),
    ("Jeans", "Women", "jeans"),
    ("Women's Activewear", "Women", "all-activewear"),
    ("Women's Swimwear", "Women", "all-swimwear"),
    ("Lingerie", "Women", "intimates"),
]

URBN_HEADERS = {
    "origin": "https://www.freepeople.com",
    "referer": "https://www.freepeople.com/",
    "x-urbn-channel": "web",
    "x-urbn-country": "US",
    "x-urbn-currency": "USD",
    "x-urbn-experience": "ss",
    "x-urbn-language": "en-US",
    "x-urbn-pool": "US_DIRECT",
    "x-urbn-site-id": "fp-us",
}


class FreePeopleAdapter(RetailerAdapter):
    """
    URBN catalog API: category tiles for the listing, a PDP projection for
    details. Both need a bearer token (FREE_PEOPLE_AUTH_TOKEN).
    """

    key = "free_people"
    name = "Free People"
    store_url = "https://www.freepeople.com"
    return_policy_link = "https://www.freepeople.com/help/returns-exchanges/"
    max_pages = -(-PRODUCTS_PER_CATEGORY // PAGE_SIZE)

    def credentials(self, settings):
        return StaticCredentials.bearer(settings.free_people_auth_token)

    def dedupe_key(self, raw: Dict[str, Any]) -> Any:
        return dig(raw, "product", "productId")

    async def fetch_category(self, fetcher, category: str, gender: str, slug: str, page: int):
        payload = {
            "pageSize": PAGE_SIZE,
            "skip": (page - 1) * PAGE_SIZE,
            "projectionSlug": "categorytiles",
            "personalization": "0",
            "customerConsent": "true",
            "featureProductIds": [],
        }
        data = await fetcher.post_json(TILES_URL.format(slug=slug), payload, headers=URBN_HEADERS)
        tiles = []
        for record in dig(data, "records", default=[]):
            tile = dig(record, "allMeta", "tile")
            if isinstance(tile, dict):
                tiles.append(dict(tile, _category=category, _gender=gender))
        return tiles, None

    async def fetch_listing(self, fetcher, delay: float = 1.0) -> List[Dict[str, Any]]:
        collected: List[Dict[str, Any]] = []
        for category, gender, slug in CATEGORIES:
            tiles = await paginate(
                lambda page, c=category, g=gender, s=slug: self.fetch_category(fetcher, c, g, s, page),
                max_pages=self.max_pages,
                delay=delay,
            )
            collected.extend(tiles[:PRODUCTS_PER_CATEGORY])
        return collected

    async def fetch_detail(self, fetcher, raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        slug = dig(raw, "product", "productSlug")
        if not slug:
            return None
        params = {"slug": slug, "projection-slug": "pdp", "req-info": "pdp", "countryCode": "US"}
        data = await fetcher.get_json(DETAIL_URL, params=params, headers=URBN_HEADERS)
        if isinstance(data, list):
            return data[0] if data else None
        return data

    def to_product(self, raw: Dict[str, Any], detail: Optional[Dict[str, Any]] = None) -> Product:
        parent_id = self.require_id(raw)
        product_url = PRODUCT_URL.format(slug=dig(raw, "product", "productSlug", default=""))
        style = dig(detail, "product", "styleNumber", default="")
        pricing = build_pricing(
            selling=dig(detail, "skuInfo", "salePriceHigh"),
            original=dig(detail, "skuInfo", "listPriceHigh"),
        )
        reviews = dig(detail, "reviews", default={})

        variants = []
        for color_item in dig(detail, "skuInfo", "primarySlice", "sliceItems", default=[]):
            color = as_text(color_item.get("displayName")) or "Default"
            code = color_item.get("code") or ""
            images = [
                IMAGE_URL.format(style=style, code=code, image=img)
                for img in color_item.get("images") or []
                if img
            ]
            for sku in color_item.get("includedSkus") or []:
                size = as_text(sku.get("size"))
                variants.append(
                    Variant(
                        variant_id=make_variant_id(parent_id, color, size, code),
                        link_url=product_url,
                        deeplink_url=product_url,
                        image_url=images[0] if images else "",
                        alternate_image_urls=images[1:1 + MAX_ALTERNATES],
                        is_in_stock=sku.get("stockLevel") != 0,
                        size=size,
                        color=color,
                        mpn=make_mpn(parent_id, color),
                        ratings_count=reviews.get("count") or 0,
                        average_ratings=reviews.get("averageRating") or 0,
                        review_count=reviews.get("count") or 0,
                        **pricing,
                    )
                )

        return self.base_product(
            parent_id,
            name=dig(raw, "product", "displayName", default=""),
            description=clean_description(dig(detail, "product", "longDescription")),
            category=raw.get("_category") or "",
            gender=raw.get("_gender") or "Women",
            brand=dig(detail, "product", "brand", default=self.name),
            materials=", ".join(dig(detail, "product", "contents", default=[])),
            variants=variants,
        )
