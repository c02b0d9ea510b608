from types import SimpleNamespace

import pytest

from recrawl.schema import Product, Variant


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.filters = []
        self.action = "select"
        self.payload = None
        self._limit = None

    def select(self, *_cols):
        self.action = "select"
        return self

    def insert(self, record):
        self.action, self.payload = "insert", record
        return self

    def update(self, patch):
        self.action, self.payload = "update", patch
        return self

    def eq(self, col, value):
        self.filters.append(lambda row: row.get(col) == value)
        return self

    def in_(self, col, values):
        values = set(values)
        self.filters.append(lambda row: row.get(col) in values)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def _matches(self):
        return [r for r in self.db.tables.setdefault(self.table, []) if all(f(r) for f in self.filters)]

    def execute(self):
        self.db.calls.append((self.table, self.action, self.payload))
        rows = self.db.tables.setdefault(self.table, [])
        if self.action == "insert":
            if self.payload.get("id") in self.db.fail_ids:
                raise RuntimeError("insert rejected")
            record = dict(self.payload)
            record.setdefault("id", f"{self.table}-{len(rows) + 1}")
            rows.append(record)
            return SimpleNamespace(data=[dict(record)])
        matched = self._matches()
        if self.action == "update":
            for row in matched:
                if row.get("id") in self.db.fail_ids:
                    raise RuntimeError("update rejected")
                row.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in matched])
        if self._limit is not None:
            matched = matched[: self._limit]
        return SimpleNamespace(data=[dict(r) for r in matched])


class FakeSupabase:
    """Just enough of supabase.Client's table API for the repository."""

    def __init__(self, tables=None, fail_ids=()):
        self.tables = tables or {}
        self.fail_ids = set(fail_ids)
        self.calls = []

    def table(self, name):
        return FakeQuery(self, name)

    def writes(self, table="products"):
        return [c for c in self.calls if c[0] == table and c[1] != "select"]


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


def make_variant(variant_id="V1", **fields):
    data = {
        "variant_id": variant_id,
        "original_price": 20.0,
        "selling_price": 10.0,
        "final_price": 10.0,
        "is_in_stock": True,
        "image_url": f"https://img.example.com/{variant_id}.jpg",
        "alternate_image_urls": [f"https://img.example.com/{variant_id}-2.jpg"],
        "link_url": "https://shop.example.com/p",
        "deeplink_url": "https://shop.example.com/p",
        "color": "Black",
        "size": "M",
        "mpn": "mpn-black",
    }
    data.update(fields)
    return Variant(**data)


def make_product(parent_id="P1", variants=None, **fields):
    data = {
        "parent_product_id": parent_id,
        "name": f"Product {parent_id}",
        "description": "A soft cotton tee for every day.",
        "brand": "Example",
        "retailer_domain": "example.com",
        "variants": variants if variants is not None else [make_variant()],
    }
    data.update(fields)
    return Product(**data)
