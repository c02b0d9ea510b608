import gzip
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Union

import orjson

from .normalizer import store_slug
from .schema import Product, StoreInfo

logger = logging.getLogger(__name__)

JSON_NAME = "catalog.json"
JSONL_NAME = "catalog.jsonl"


@dataclass
class CatalogFiles:
    json_path: Path
    jsonl_path: Path
    gzip_path: Path


def catalog_dir(output_dir: Union[str, Path], store_key: str, country: str) -> Path:
    # output/<country>/<retailer slug>-<country>/
    return Path(output_dir) / country / f"{store_slug(store_key)}-{country}"


def write_catalog(
    products: Iterable[Product],
    store_info: StoreInfo,
    output_dir: Union[str, Path],
    store_key: str,
    country: str = "US",
) -> CatalogFiles:
    """
    Write the catalog as pretty JSON ({store_info, products}), JSONL with one
    compact product per line, and the gzip of those JSONL bytes.
    """
    docs = [p.to_export() for p in products]
    info = store_info.model_copy(update={"total_products": len(docs)})

    target = catalog_dir(output_dir, store_key, country)
    target.mkdir(parents=True, exist_ok=True)

    json_path = target / JSON_NAME
    payload = {"store_info": info.model_dump(mode="json"), "products": docs}
    json_path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
    logger.info("[EXPORT] JSON file generated: %s", json_path)

    jsonl_path = target / JSONL_NAME
    jsonl_bytes = b"\n".join(orjson.dumps(doc) for doc in docs)
    jsonl_path.write_bytes(jsonl_bytes)
    logger.info("[EXPORT] JSONL file generated: %s", jsonl_path)

    gzip_path = target / f"{JSONL_NAME}.gz"
    gzip_path.write_bytes(gzip.compress(jsonl_bytes))
    logger.info("[EXPORT] Gzipped JSONL file generated: %s", gzip_path)

    return CatalogFiles(json_path=json_path, jsonl_path=jsonl_path, gzip_path=gzip_path)
