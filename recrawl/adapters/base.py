from typing import Any, Dict, List, Optional

from ..batch import paginate
from ..errors import MalformedRecord
from ..fetcher import CredentialProvider, Fetcher, StaticCredentials
from ..normalizer import get_domain_name
from ..schema import Product, Store, StoreInfo


def dig(data: Any, *path, default=None):
    """Walk nested dicts/lists; any missing hop yields `default`."""
    cur = data
    for step in path:
        if isinstance(cur, dict):
            cur = cur.get(step)
        elif isinstance(cur, list) and isinstance(step, int) and -len(cur) <= step < len(cur):
            cur = cur[step]
        else:
            return default
        if cur is None:
            return default
    return cur


class RetailerAdapter:
    """
    One retailer's listing/detail endpoints and its mapping onto the
    canonical Product/Variant shape.
    """

    key: str = ""
    name: str = ""
    store_url: str = ""
    country: str = "US"
    currency: str = "USD"
    return_policy_link: str = ""
    max_pages: int = 100

    @property
    def domain(self) -> str:
        return get_domain_name(self.store_url)

    # ------------------------------------------------------------------ #
    # Hooks for subclasses
    # ------------------------------------------------------------------ #
    def dedupe_key(self, raw: Dict[str, Any]) -> Any:
        return raw.get("id")

    async def fetch_page(self, fetcher: Fetcher, page: int):
        """Return (records, total_results or None) for one listing page."""
        raise NotImplementedError

    async def fetch_detail(self, fetcher: Fetcher, raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return None

    def to_product(self, raw: Dict[str, Any], detail: Optional[Dict[str, Any]] = None) -> Product:
        raise NotImplementedError

    def credentials(self, settings) -> CredentialProvider:
        return StaticCredentials()

    # ------------------------------------------------------------------ #
    # Shared behaviour
    # ------------------------------------------------------------------ #
    async def fetch_listing(self, fetcher: Fetcher, delay: float = 1.0) -> List[Dict[str, Any]]:
        return await paginate(lambda page: self.fetch_page(fetcher, page), max_pages=self.max_pages, delay=delay)

    def require_id(self, raw: Dict[str, Any]) -> str:
        value = self.dedupe_key(raw)
        if value is None or str(value).strip() == "":
            raise MalformedRecord(f"{self.key}: record without product id", record=raw)
        return str(value).strip()

    def base_product(self, parent_product_id: str, **fields) -> Product:
        data = {
            "parent_product_id": parent_product_id,
            "retailer_domain": self.domain,
            "brand": self.name,
            "return_policy_link": self.return_policy_link,
            "source": self.key,
        }
        data.update(fields)
        return Product(**data)

    def store_template(self) -> Store:
        return Store(
            name=self.name,
            store_type=self.key,
            store_url=self.store_url,
            country=self.country,
            return_policy=self.return_policy_link,
        )

    def store_info(self) -> StoreInfo:
        return StoreInfo(name=self.name, domain=self.domain, currency=self.currency, country=self.country)
