import itertools
from datetime import datetime
from decimal import Decimal

import pytest
import bson
from bson import ObjectId
from bson.codec_options import CodecOptions
from fastapi.testclient import TestClient
from pymongo import DESCENDING

from dependencies import get_nosql_store, get_sql_store
from document_store import MongoProductStore
from main import app
from models import SqlProduct

CODEC_OPTIONS = CodecOptions(tz_aware=True)


class FakeCollection:
    """
    Collection pymongo en mémoire (égalité simple sur les filtres).
    Les documents sont stockés encodés en BSON, comme sur un vrai serveur:
    dates tronquées à la milliseconde, entiers limités à 8 octets.
    """

    def __init__(self):
        self.docs = {}
        self.fail = None
        self._seq = itertools.count()

    def _check(self):
        if self.fail:
            raise self.fail

    def _load(self, oid):
        data = self.docs.get(oid)
        return bson.decode(data, codec_options=CODEC_OPTIONS) if data else None

    def _match(self, doc, filter):
        return all(doc.get(key) == value for key, value in filter.items())

    def create_index(self, keys):
        return "createdAt_-1"

    def insert_one(self, document):
        self._check()
        oid = ObjectId()
        self.docs[oid] = bson.encode({**document, "_id": oid, "_seq": next(self._seq)})

        class Result:
            inserted_id = oid

        return Result()

    def find(self, filter):
        self._check()
        docs = (self._load(oid) for oid in list(self.docs))
        return FakeCursor([doc for doc in docs if self._match(doc, filter)])

    def find_one(self, filter):
        self._check()
        return self._load(filter["_id"])

    def find_one_and_update(self, filter, update, return_document=None):
        self._check()
        doc = self._load(filter["_id"])
        if doc is None:
            return None
        doc.update(update["$set"])
        self.docs[filter["_id"]] = bson.encode(doc)
        return self._load(filter["_id"])

    def find_one_and_delete(self, filter):
        self._check()
        doc = self._load(filter["_id"])
        self.docs.pop(filter["_id"], None)
        return doc


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    def sort(self, key, direction):
        # Départage par ordre d'insertion pour des createdAt identiques
        return sorted(
            self.docs,
            key=lambda doc: (doc[key], doc["_seq"]),
            reverse=direction == DESCENDING,
        )


class FakeSqlStore:
    """Table products en mémoire, même interface que SqlProductStore"""

    def __init__(self):
        self.rows = {}
        self.fail = None
        self._ids = itertools.count(1)

    def _check(self):
        if self.fail:
            raise self.fail

    def insert(self, name, price, category, in_stock):
        self._check()
        product_id = next(self._ids)
        self.rows[product_id] = {
            "id": product_id,
            "name": name,
            "price": Decimal(str(price)),
            "category": category,
            "in_stock": in_stock,
            "created_at": datetime.now(),
        }
        return SqlProduct.from_row(self.rows[product_id])

    def list(self, category=None, in_stock=None):
        self._check()
        rows = list(self.rows.values())
        if category:
            rows = [row for row in rows if row["category"] == category]
        if in_stock is not None:
            rows = [row for row in rows if row["in_stock"] == (1 if in_stock else 0)]
        rows.sort(key=lambda row: (row["created_at"], row["id"]), reverse=True)
        return [SqlProduct.from_row(row) for row in rows]

    def get(self, product_id):
        self._check()
        row = self.rows.get(product_id)
        return SqlProduct.from_row(row) if row else None

    def update(self, product_id, changes):
        self._check()
        row = self.rows.get(product_id)
        if row is None:
            return None
        columns = {"inStock": "in_stock"}
        for field, value in changes.items():
            row[columns.get(field, field)] = value
        return SqlProduct.from_row(row)

    def delete(self, product_id):
        self._check()
        row = self.rows.pop(product_id, None)
        return SqlProduct.from_row(row) if row else None


@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def sql_store():
    return FakeSqlStore()


@pytest.fixture
def client(collection, sql_store):
    app.dependency_overrides[get_nosql_store] = lambda: MongoProductStore(collection)
    app.dependency_overrides[get_sql_store] = lambda: sql_store
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
