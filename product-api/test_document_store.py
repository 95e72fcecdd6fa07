"""Tests unitaires de la connexion MongoDB, sans serveur MongoDB."""

from datetime import timezone
from unittest.mock import MagicMock, patch

import pytest
from pymongo import DESCENDING
from pymongo.errors import ServerSelectionTimeoutError

import document_store
from config import Settings


@pytest.fixture
def settings():
    return Settings(_env_file=None, mongodb_uri="mongodb://mongo:27017/shop", mongodb_timeout_ms=1000)


class TestConnect:
    def test_pings_and_returns_client(self, settings):
        with patch("document_store.MongoClient") as mongo_client:
            client = document_store.connect(settings)

        assert client is mongo_client.return_value
        mongo_client.assert_called_once_with(
            "mongodb://mongo:27017/shop",
            tz_aware=True,
            serverSelectionTimeoutMS=1000,
            connectTimeoutMS=1000,
        )
        client.admin.command.assert_called_once_with("ping")

    def test_unreachable_server_closes_client(self, settings):
        with patch("document_store.MongoClient") as mongo_client:
            client = mongo_client.return_value
            client.admin.command.side_effect = ServerSelectionTimeoutError("No servers found")

            with pytest.raises(ServerSelectionTimeoutError):
                document_store.connect(settings)

        client.close.assert_called_once()


def test_products_collection_indexed_on_created_at():
    client = MagicMock()
    db = client.get_default_database.return_value

    collection = document_store.get_products_collection(client)

    client.get_default_database.assert_called_once_with(default="gestion_bdd")
    db.__getitem__.assert_called_once_with("products")
    assert collection is db.__getitem__.return_value
    collection.create_index.assert_called_once_with([("createdAt", DESCENDING)])


def test_close():
    client = MagicMock()
    document_store.close(client)
    client.close.assert_called_once()


def test_timestamps_utc_at_millisecond_precision():
    now = document_store._now()

    assert now.tzinfo == timezone.utc
    assert now.microsecond % 1000 == 0
