"""Database repository for the storefront API.

Provides async data access layer using aiosqlite.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

from ..config import DEFAULT_DB_PATH
from ..core.errors import DuplicateIdentity, ValidationFailed
from ..core.models import (
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductInput,
    ProductUpdateInput,
    Role,
    User,
)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

USER_PROFILE_FIELDS = ("name", "phone", "address", "bio", "profile_picture")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository:
    """Async database repository."""

    def __init__(self, db_path: Path = DEFAULT_DB_PATH) -> None:
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def connect(self, db_path: Path | None = None) -> None:
        """Connect to database and initialize schema."""
        if db_path is not None:
            self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        self._write_lock = asyncio.Lock()
        await self._db.execute("PRAGMA foreign_keys = ON")

        # Initialize schema
        schema_sql = SCHEMA_PATH.read_text()
        await self._db.executescript(schema_sql)
        await self._db.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Get database connection."""
        if not self._db:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._db

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[aiosqlite.Connection]:
        """One write transaction at a time on the shared connection.

        Commits on success and rolls back on any error.
        """
        async with self._write_lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                yield self.db
            except BaseException:
                await self.db.rollback()
                raise
            await self.db.commit()

    # =========================================================================
    # Users
    # =========================================================================

    async def create_user(
        self,
        email: str,
        password_hash: str,
        name: str,
        role: Role = Role.USER,
        approved: bool = True,
    ) -> User:
        """Create a new user.

        Raises:
            DuplicateIdentity: If the email is already registered
        """
        now = _now()
        try:
            async with self._write() as db:
                cursor = await db.execute(
                    """
                    INSERT INTO users (name, email, password_hash, role, approved, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (name, email, password_hash, role.value, int(approved), now, now),
                )
        except aiosqlite.IntegrityError as e:
            raise DuplicateIdentity("User already exists") from e

        user = await self.get_user(cursor.lastrowid)
        if user is None:
            raise RuntimeError(f"User {cursor.lastrowid} vanished after insert")
        return user

    async def get_user(self, user_id: int) -> User | None:
        """Get user by ID."""
        async with self.db.execute("SELECT * FROM users WHERE id = ?", (user_id,)) as cursor:
            row = await cursor.fetchone()
            if not row:
                return None
            return self._row_to_user(row)

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email (case-insensitive)."""
        async with self.db.execute(
            "SELECT * FROM users WHERE lower(email) = lower(?)", (email,)
        ) as cursor:
            row = await cursor.fetchone()
            if not row:
                return None
            return self._row_to_user(row)

    async def list_users(self, limit: int = 100, offset: int = 0) -> list[User]:
        async with self.db.execute(
            "SELECT * FROM users ORDER BY id LIMIT ? OFFSET ?", (limit, offset)
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_user(row) for row in rows]

    async def list_pending_users(self) -> list[User]:
        """Users awaiting manual approval."""
        async with self.db.execute(
            "SELECT * FROM users WHERE approved = 0 ORDER BY created_at"
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_user(row) for row in rows]

    async def update_user_profile(self, user_id: int, fields: dict[str, Any]) -> User | None:
        """Update profile fields. Unknown keys are ignored."""
        updates = {k: v for k, v in fields.items() if k in USER_PROFILE_FIELDS}
        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            async with self._write() as db:
                await db.execute(
                    f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?",
                    (*updates.values(), _now(), user_id),
                )
        return await self.get_user(user_id)

    async def update_password_hash(self, user_id: int, password_hash: str) -> None:
        async with self._write() as db:
            await db.execute(
                "UPDATE users SET password_hash = ?, updated_at = ? WHERE id = ?",
                (password_hash, _now(), user_id),
            )

    async def set_user_approved(self, user_id: int, approved: bool) -> User | None:
        async with self._write() as db:
            await db.execute(
                "UPDATE users SET approved = ?, updated_at = ? WHERE id = ?",
                (int(approved), _now(), user_id),
            )
        return await self.get_user(user_id)

    async def set_user_role(self, user_id: int, role: Role) -> User | None:
        async with self._write() as db:
            await db.execute(
                "UPDATE users SET role = ?, updated_at = ? WHERE id = ?",
                (role.value, _now(), user_id),
            )
        return await self.get_user(user_id)

    async def delete_user(self, user_id: int) -> bool:
        async with self._write() as db:
            cursor = await db.execute("DELETE FROM users WHERE id = ?", (user_id,))
        return cursor.rowcount > 0

    def _row_to_user(self, row: aiosqlite.Row) -> User:
        """Convert database row to User model."""
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            role=Role(row["role"]),
            approved=bool(row["approved"]),
            phone=row["phone"],
            address=row["address"],
            bio=row["bio"],
            profile_picture=row["profile_picture"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # =========================================================================
    # Products
    # =========================================================================

    async def create_product(self, input_data: ProductInput) -> Product:
        now = _now()
        async with self._write() as db:
            cursor = await db.execute(
                """
                INSERT INTO products (name, description, price, stock, category, brand, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    input_data.name,
                    input_data.description,
                    input_data.price,
                    input_data.stock,
                    input_data.category,
                    input_data.brand,
                    now,
                    now,
                ),
            )

        product = await self.get_product(cursor.lastrowid)
        if product is None:
            raise RuntimeError(f"Product {cursor.lastrowid} vanished after insert")
        return product

    async def get_product(self, product_id: int) -> Product | None:
        async with self.db.execute("SELECT * FROM products WHERE id = ?", (product_id,)) as cursor:
            row = await cursor.fetchone()
            if not row:
                return None
            return self._row_to_product(row)

    async def get_products(self, product_ids: list[int]) -> dict[int, Product]:
        """Fetch several products keyed by ID. Missing IDs are absent."""
        if not product_ids:
            return {}
        placeholders = ", ".join("?" for _ in product_ids)
        async with self.db.execute(
            f"SELECT * FROM products WHERE id IN ({placeholders})", product_ids
        ) as cursor:
            rows = await cursor.fetchall()
            return {row["id"]: self._row_to_product(row) for row in rows}

    async def list_products(self, limit: int = 100, offset: int = 0) -> list[Product]:
        async with self.db.execute(
            "SELECT * FROM products ORDER BY id LIMIT ? OFFSET ?", (limit, offset)
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_product(row) for row in rows]

    async def update_product(self, product_id: int, input_data: ProductUpdateInput) -> Product | None:
        """Apply a partial update."""
        updates = input_data.model_dump(exclude_unset=True)
        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            async with self._write() as db:
                await db.execute(
                    f"UPDATE products SET {assignments}, updated_at = ? WHERE id = ?",
                    (*updates.values(), _now(), product_id),
                )
        return await self.get_product(product_id)

    async def delete_product(self, product_id: int) -> bool:
        async with self._write() as db:
            cursor = await db.execute("DELETE FROM products WHERE id = ?", (product_id,))
        return cursor.rowcount > 0

    def _row_to_product(self, row: aiosqlite.Row) -> Product:
        return Product(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            price=row["price"],
            stock=row["stock"],
            category=row["category"],
            brand=row["brand"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # =========================================================================
    # Orders
    # =========================================================================

    async def create_order(
        self,
        user_id: int,
        items: list[OrderItem],
        total: float,
        shipping_address: str,
        phone: str | None = None,
    ) -> Order:
        """Create an order and decrement stock for each line in one transaction.

        Raises:
            ValidationFailed: A line asks for more than is in stock. Nothing is written.
        """
        now = _now()
        async with self._write() as db:
            for item in items:
                cursor = await db.execute(
                    "UPDATE products SET stock = stock - ?, updated_at = ? WHERE id = ? AND stock >= ?",
                    (item.quantity, now, item.product_id, item.quantity),
                )
                if cursor.rowcount == 0:
                    raise ValidationFailed(f"Insufficient stock for {item.name}")
            cursor = await db.execute(
                """
                INSERT INTO orders (user_id, items, total, status, shipping_address, phone, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    json.dumps([item.model_dump() for item in items]),
                    total,
                    OrderStatus.PENDING.value,
                    shipping_address,
                    phone,
                    now,
                    now,
                ),
            )

        order = await self.get_order(cursor.lastrowid)
        if order is None:
            raise RuntimeError(f"Order {cursor.lastrowid} vanished after insert")
        return order

    async def get_order(self, order_id: int) -> Order | None:
        async with self.db.execute("SELECT * FROM orders WHERE id = ?", (order_id,)) as cursor:
            row = await cursor.fetchone()
            if not row:
                return None
            return self._row_to_order(row)

    async def list_orders(
        self, user_id: int | None = None, limit: int = 100, offset: int = 0
    ) -> list[Order]:
        """List orders, newest first, optionally for a single user."""
        query = "SELECT * FROM orders WHERE 1=1"
        params: list[Any] = []

        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)

        query += " ORDER BY id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        async with self.db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_order(row) for row in rows]

    async def update_order_status(self, order_id: int, status: OrderStatus) -> Order | None:
        async with self._write() as db:
            await db.execute(
                "UPDATE orders SET status = ?, updated_at = ? WHERE id = ?",
                (status.value, _now(), order_id),
            )
        return await self.get_order(order_id)

    def _row_to_order(self, row: aiosqlite.Row) -> Order:
        return Order(
            id=row["id"],
            user_id=row["user_id"],
            items=[OrderItem(**item) for item in json.loads(row["items"])],
            total=row["total"],
            status=OrderStatus(row["status"]),
            shipping_address=row["shipping_address"],
            phone=row["phone"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_counts(self) -> dict[str, int]:
        """Row counts per table, used by the health check."""
        counts = {}
        for table in ("users", "products", "orders"):
            async with self.db.execute(f"SELECT COUNT(*) AS count FROM {table}") as cursor:
                row = await cursor.fetchone()
                counts[table] = row["count"]
        return counts


# Singleton instance
repository = Repository()
