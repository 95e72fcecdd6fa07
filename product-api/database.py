import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Optional
import logging

import psycopg2
import psycopg2.pool
from psycopg2.extras import RealDictCursor

from config import Settings
from models import SqlProduct

logger = logging.getLogger(__name__)

SELECT_COLUMNS = "id, name, price, category, in_stock, created_at"

# Champ JSON -> colonne, seules colonnes modifiables par un UPDATE
UPDATABLE_COLUMNS = {
    "name": "name",
    "price": "price",
    "category": "category",
    "inStock": "in_stock",
}


class DatabaseConnectionError(Exception):
    pass


class BlockingConnectionPool(psycopg2.pool.ThreadedConnectionPool):
    """ThreadedConnectionPool qui attend une connexion libre au lieu de lever PoolError"""

    def __init__(self, minconn, maxconn, *args, **kwargs):
        self._slots = threading.BoundedSemaphore(maxconn)
        super().__init__(minconn, maxconn, *args, **kwargs)

    def getconn(self, key=None):
        self._slots.acquire()
        try:
            return super().getconn(key)
        except Exception:
            self._slots.release()
            raise

    def putconn(self, conn=None, key=None, close=False):
        try:
            super().putconn(conn, key, close)
        finally:
            self._slots.release()


def create_pool(settings: Settings) -> BlockingConnectionPool:
    """Pool paresseux: minconn=0, aucune connexion avant la première requête"""
    pool = BlockingConnectionPool(
        minconn=0,
        maxconn=settings.db_pool_size,
        host=settings.db_host,
        port=settings.db_port,
        database=settings.db_name,
        user=settings.db_user,
        password=settings.db_password,
    )
    logger.info(
        f"[DB] Pool ready for {settings.db_host}:{settings.db_port}/{settings.db_name} "
        f"(max {settings.db_pool_size} connections)"
    )
    return pool


@contextmanager
def get_conn(pool):
    """Context manager pour obtenir une connexion du pool"""
    try:
        conn = pool.getconn()
    except psycopg2.Error as e:
        logger.error(f"[POOL ERROR] {e}")
        raise DatabaseConnectionError(f"Database connection failed: {e}") from e
    try:
        yield conn
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error(f"[SQL ERROR] {e}")
        raise
    finally:
        pool.putconn(conn)


def close_pool(pool):
    pool.closeall()
    logger.info("[DB] Connection pool closed")


class SqlProductStore:
    """Requêtes paramétrées sur la table products, une connexion par appel"""

    def __init__(self, pool):
        self.pool = pool

    def insert(
        self, name: Any, price: Any, category: Optional[str], in_stock: int
    ) -> SqlProduct:
        with get_conn(self.pool) as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """INSERT INTO products (name, price, category, in_stock)
                       VALUES (%s, %s, %s, %s)
                       RETURNING id""",
                    (name, price, category, in_stock),
                )
                product_id = cur.fetchone()["id"]

                cur.execute(
                    f"SELECT {SELECT_COLUMNS} FROM products WHERE id = %s",
                    (product_id,),
                )
                return SqlProduct.from_row(cur.fetchone())

    def list(
        self, category: Optional[str] = None, in_stock: Optional[bool] = None
    ) -> List[SqlProduct]:
        query = f"SELECT {SELECT_COLUMNS} FROM products WHERE 1=1"
        params: List[Any] = []

        if category:
            query += " AND category = %s"
            params.append(category)

        if in_stock is not None:
            query += " AND in_stock = %s"
            params.append(1 if in_stock else 0)

        query += " ORDER BY created_at DESC"

        with get_conn(self.pool) as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                return [SqlProduct.from_row(row) for row in cur.fetchall()]

    def get(self, product_id: int) -> Optional[SqlProduct]:
        with get_conn(self.pool) as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT {SELECT_COLUMNS} FROM products WHERE id = %s",
                    (product_id,),
                )
                row = cur.fetchone()
                return SqlProduct.from_row(row) if row else None

    def update(self, product_id: int, changes: Dict[str, Any]) -> Optional[SqlProduct]:
        """
        Met à jour uniquement les colonnes présentes dans `changes` (clés JSON).
        Retourne la ligne relue, ou None si elle a disparu entre-temps.
        """
        updates = []
        params: List[Any] = []
        for field, value in changes.items():
            updates.append(f"{UPDATABLE_COLUMNS[field]} = %s")
            params.append(value)
        params.append(product_id)

        with get_conn(self.pool) as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"UPDATE products SET {', '.join(updates)} WHERE id = %s",
                    params,
                )
                cur.execute(
                    f"SELECT {SELECT_COLUMNS} FROM products WHERE id = %s",
                    (product_id,),
                )
                row = cur.fetchone()
                return SqlProduct.from_row(row) if row else None

    def delete(self, product_id: int) -> Optional[SqlProduct]:
        """Retourne la ligne telle qu'avant la suppression, None si absente"""
        with get_conn(self.pool) as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT {SELECT_COLUMNS} FROM products WHERE id = %s",
                    (product_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                product = SqlProduct.from_row(row)

                cur.execute("DELETE FROM products WHERE id = %s", (product_id,))
                return product
