import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from config import Settings
from models import NoSqlProduct

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "gestion_bdd"
PRODUCTS_COLLECTION = "products"


def connect(settings: Settings) -> MongoClient:
    """Connexion MongoDB avec ping immédiat (échec = exception)"""
    client = MongoClient(
        settings.mongodb_uri,
        tz_aware=True,
        serverSelectionTimeoutMS=settings.mongodb_timeout_ms,
        connectTimeoutMS=settings.mongodb_timeout_ms,
    )
    try:
        client.admin.command("ping")
    except (ConnectionFailure, ServerSelectionTimeoutError) as e:
        logger.error(f"[MONGODB DOWN] {e}")
        client.close()
        raise
    logger.info("[MONGODB] Connected successfully")
    return client


def get_products_collection(client: MongoClient):
    db = client.get_default_database(default=DEFAULT_DATABASE)
    collection = db[PRODUCTS_COLLECTION]
    collection.create_index([("createdAt", DESCENDING)])
    return collection


def close(client: MongoClient):
    client.close()
    logger.info("[MONGODB] Connection closed")


def _now() -> datetime:
    """UTC tronqué à la milliseconde (précision des dates BSON)"""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class MongoProductStore:
    """Accès à la collection products (horodatage createdAt / updatedAt)"""

    def __init__(self, collection):
        self.collection = collection

    def create(self, fields: Dict[str, Any]) -> NoSqlProduct:
        now = _now()
        document = {**fields, "createdAt": now, "updatedAt": now}
        result = self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return NoSqlProduct.from_document(document)

    def list(self, filter: Dict[str, Any]) -> List[NoSqlProduct]:
        cursor = self.collection.find(filter).sort("createdAt", DESCENDING)
        return [NoSqlProduct.from_document(doc) for doc in cursor]

    def get(self, oid: ObjectId) -> Optional[NoSqlProduct]:
        doc = self.collection.find_one({"_id": oid})
        return NoSqlProduct.from_document(doc) if doc else None

    def replace(self, oid: ObjectId, fields: Dict[str, Any]) -> Optional[NoSqlProduct]:
        """Remplace les quatre champs métier, retourne le document après mise à jour"""
        doc = self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": {**fields, "updatedAt": _now()}},
            return_document=ReturnDocument.AFTER,
        )
        return NoSqlProduct.from_document(doc) if doc else None

    def delete(self, oid: ObjectId) -> Optional[NoSqlProduct]:
        doc = self.collection.find_one_and_delete({"_id": oid})
        return NoSqlProduct.from_document(doc) if doc else None
