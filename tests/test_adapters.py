import asyncio

import pytest

from recrawl.adapters.adapter_everlane import EverlaneAdapter
from recrawl.adapters.adapter_free_people import FreePeopleAdapter
from recrawl.adapters.adapter_good_american import GoodAmericanAdapter
from recrawl.errors import MalformedRecord

GOOD_AMERICAN_RAW = {
    "id": 8123,
    "handle": "good-legs-jeans",
    "name": "Good Legs Jeans",
    "imageUrl": "https://cdn.example.com/main.jpg",
    "ss_tags": ["new", "category:Jeans"],
    "variants": {
        "nodes": [
            {
                "id": "gid://shopify/ProductVariant/4001",
                "currentlyNotInStock": False,
                "priceV2": {"amount": "119.00"},
                "compareAtPriceV2": {"amount": "149.00"},
                "selectedOptions": [{"name": "Color", "value": "Blue"}, {"name": "Size", "value": "28"}],
                "image": {"url": "https://cdn.example.com/blue.jpg"},
                "images": [{"url": "https://cdn.example.com/blue-2.jpg"}],
            },
            {
                "id": "gid://shopify/ProductVariant/4002",
                "currentlyNotInStock": True,
                "priceV2": {"amount": "149.00"},
                "selectedOptions": [{"name": "Color", "value": "Blue"}, {"name": "Size", "value": "30"}],
                "image": {"url": "https://cdn.example.com/blue.jpg"},
            },
        ]
    },
}


def test_good_american_maps_variant_nodes():
    adapter = GoodAmericanAdapter()
    product = adapter.to_product(GOOD_AMERICAN_RAW, {"product": {"description": "<p>Sculpting high rise jeans.</p>"}})

    assert product.parent_product_id == "8123"
    assert product.category == "Jeans"
    assert product.brand == "Good American"
    assert product.retailer_domain == "goodamerican.com"
    assert product.description == "Sculpting high rise jeans."

    first, second = product.variants
    assert first.variant_id == "4001"
    assert (first.color, first.size) == ("Blue", "28")
    assert first.is_on_sale is True
    assert (first.original_price, first.selling_price, first.discount) == (149.0, 119.0, 20)
    assert first.alternate_image_urls == ["https://cdn.example.com/blue-2.jpg"]
    assert first.link_url == "https://www.goodamerican.com/en-pk/products/good-legs-jeans"

    assert second.is_in_stock is False
    assert second.is_on_sale is False
    assert second.sale_price is None
    assert first.mpn == second.mpn


def test_good_american_without_detail_degrades_to_empty_description():
    product = GoodAmericanAdapter().to_product(GOOD_AMERICAN_RAW, None)

    assert product.description == ""
    assert len(product.variants) == 2


def test_record_without_id_is_malformed():
    with pytest.raises(MalformedRecord):
        GoodAmericanAdapter().to_product({"handle": "x", "name": "No id"})


EVERLANE_RAW = {
    "data": {
        "product_data": {
            "id": 77,
            "permalink": "womens-organic-tee-white",
            "display_name": "The Organic Cotton Tee",
            "product_swatches": [
                {
                    "id": 501,
                    "permalink": "womens-organic-tee-white",
                    "color": {"name": "White"},
                    "orderable_state": "shippable",
                    "original_price": 30,
                    "price": 24,
                    "sizes": ["S", "M"],
                    "albums": {"square": [{"src": "a.jpg", "tag": "primary"}, {"src": "b.jpg", "tag": "alt"}]},
                },
                {
                    "id": 502,
                    "permalink": "womens-organic-tee-black",
                    "color": {"name": "Black"},
                    "orderable_state": "sold_out",
                    "price": 30,
                    "sizes": ["M"],
                },
            ],
        }
    }
}


def test_everlane_expands_swatches_by_size():
    detail = {
        "details": {"description": "Soft organic cotton.", "fabric": {"care": "Machine wash cold"}},
        "primary_collection": {"gender": "female"},
        "sizeChart": {"S": "2-4"},
    }
    product = EverlaneAdapter().to_product(EVERLANE_RAW, detail)

    assert product.parent_product_id == "77"
    assert product.gender == "female"
    assert product.materials == "Machine wash cold"
    assert product.size_chart == '{"S":"2-4"}'
    assert [(v.color, v.size) for v in product.variants] == [("White", "S"), ("White", "M"), ("Black", "M")]

    white_s = product.variants[0]
    assert white_s.is_in_stock is True
    assert white_s.is_on_sale is True
    assert white_s.discount == 20
    assert white_s.image_url.endswith("/v1/a.jpg")
    assert white_s.alternate_image_urls == [white_s.image_url.replace("a.jpg", "b.jpg")]
    assert product.variants[2].is_in_stock is False
    assert len({v.variant_id for v in product.variants}) == 3

    again = EverlaneAdapter().to_product(EVERLANE_RAW, None)
    assert [v.variant_id for v in again.variants] == [v.variant_id for v in product.variants]


FREE_PEOPLE_TILE = {
    "product": {"productId": "FP-9", "productSlug": "lola-dress", "displayName": "Lola Dress"},
    "_category": "Women's Dresses",
    "_gender": "Women",
}

FREE_PEOPLE_DETAIL = {
    "product": {
        "longDescription": "A breezy <em>midi</em> dress.",
        "contents": ["100% Cotton", "Lining: Rayon"],
        "styleNumber": "12345",
        "brand": "FP Beach",
    },
    "skuInfo": {
        "listPriceHigh": 168,
        "salePriceHigh": 99.95,
        "primarySlice": {
            "sliceItems": [
                {
                    "displayName": "Ivory",
                    "code": "011",
                    "images": ["a", "b", "c"],
                    "includedSkus": [{"size": "S", "stockLevel": 4}, {"size": "M", "stockLevel": 0}],
                }
            ]
        },
    },
    "reviews": {"count": 12, "averageRating": 4.5},
}


def test_free_people_maps_colour_slices_and_skus():
    product = FreePeopleAdapter().to_product(FREE_PEOPLE_TILE, FREE_PEOPLE_DETAIL)

    assert product.parent_product_id == "FP-9"
    assert product.brand == "FP Beach"
    assert product.category == "Women's Dresses"
    assert product.materials == "100% Cotton, Lining: Rayon"
    assert product.description == "A breezy midi dress."

    small, medium = product.variants
    assert small.image_url == "https://images.urbndata.com/is/image/FreePeople/12345_011_a"
    assert len(small.alternate_image_urls) == 2
    assert small.is_in_stock is True and medium.is_in_stock is False
    assert small.is_on_sale is True
    assert small.discount == 41
    assert small.review_count == 12


def test_free_people_listing_walks_categories():
    class FakeFetcher:
        def __init__(self):
            self.posts = []

        async def post_json(self, url, payload, headers=None):
            self.posts.append((url, payload["skip"]))
            if payload["skip"] == 0 and url.endswith("/jeans"):
                return {"records": [{"allMeta": {"tile": {"product": {"productId": "J1"}}}}]}
            return {"records": []}

    fetcher = FakeFetcher()
    tiles = asyncio.run(FreePeopleAdapter().fetch_listing(fetcher, delay=0))

    assert tiles == [{"product": {"productId": "J1"}, "_category": "Jeans", "_gender": "Women"}]
    assert len({url for url, _ in fetcher.posts}) == 5


def test_free_people_credentials_from_settings():
    class S:
        free_people_auth_token = "tok"

    assert FreePeopleAdapter().credentials(S()).headers() == {"Authorization": "Bearer tok"}


def test_everlane_numeric_sizes_become_text():
    raw = {
        "data": {
            "product_data": {
                "id": 55,
                "permalink": "the-way-high-jean",
                "display_name": "The Way-High Jean",
                "product_swatches": [
                    {"id": 9, "color": {"name": "Bone"}, "orderable_state": "shippable", "price": 98, "sizes": [26, 27, 0]},
                ],
            }
        }
    }

    product = EverlaneAdapter().to_product(raw)

    assert [v.size for v in product.variants] == ["26", "27", "0"]
    assert len({v.variant_id for v in product.variants}) == 3


def test_free_people_numeric_sku_sizes():
    detail = {
        "product": {"styleNumber": "777"},
        "skuInfo": {
            "listPriceHigh": 128,
            "salePriceHigh": 128,
            "primarySlice": {"sliceItems": [{"displayName": "Indigo", "code": "040", "includedSkus": [{"size": 28}, {"size": 30}]}]},
        },
    }

    product = FreePeopleAdapter().to_product(FREE_PEOPLE_TILE, detail)

    assert [(v.color, v.size) for v in product.variants] == [("Indigo", "28"), ("Indigo", "30")]


@pytest.mark.parametrize(
    "adapter, domain",
    [(GoodAmericanAdapter(), "goodamerican.com"), (EverlaneAdapter(), "everlane.com"), (FreePeopleAdapter(), "freepeople.com")],
)
def test_domain_is_derived_from_store_url(adapter, domain):
    assert adapter.domain == domain
    assert adapter.store_info().domain == domain
