# delivery_ledger/database/repositories/products_repo.py
from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from ...utils.validators import is_non_negative_number, non_empty


class DomainError(Exception):
    """Domain-level error the controller/UI can surface (toast/snackbar)."""
    pass


@dataclass
class Product:
    product_id: str
    name: str
    price: float
    unit: str = "unid"
    category: str | None = None
    target_quantity: int = 0


@dataclass
class Route:
    route_id: str
    name: str
    driver_id: str


def _product(r: sqlite3.Row) -> Product:
    return Product(
        product_id=str(r["product_id"]),
        name=r["name"],
        price=float(r["price"] or 0.0),
        unit=r["unit"],
        category=r["category"],
        target_quantity=int(r["target_quantity"] or 0),
    )


class ProductsRepo:
    """Products (default prices, production targets) and the drivers' routes."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---------------------------- Products ----------------------------

    def list_products(self) -> list[Product]:
        rows = self.conn.execute(
            "SELECT product_id, name, price, unit, category, target_quantity "
            "FROM products ORDER BY name COLLATE NOCASE"
        ).fetchall()
        return [_product(r) for r in rows]

    def get(self, product_id: str) -> Product | None:
        r = self.conn.execute(
            "SELECT product_id, name, price, unit, category, target_quantity "
            "FROM products WHERE product_id=?",
            (product_id,),
        ).fetchone()
        return _product(r) if r else None

    def upsert(self, product: Product) -> None:
        if not non_empty(product.name):
            raise DomainError("Product name cannot be empty.")
        if not is_non_negative_number(product.price):
            raise DomainError("Product price must be zero or more.")
        if not is_non_negative_number(product.target_quantity):
            raise DomainError("Target quantity must be zero or more.")
        self.conn.execute(
            """
            INSERT INTO products(product_id, name, price, unit, category, target_quantity)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(product_id) DO UPDATE SET
                name=excluded.name,
                price=excluded.price,
                unit=excluded.unit,
                category=excluded.category,
                target_quantity=excluded.target_quantity
            """,
            (
                product.product_id,
                product.name.strip(),
                float(product.price),
                product.unit,
                product.category,
                int(product.target_quantity),
            ),
        )
        self.conn.commit()

    def delete(self, product_id: str) -> None:
        # Schedules and price overrides may still reference the id; they bill 0 from now on.
        self.conn.execute("DELETE FROM products WHERE product_id=?", (product_id,))
        self.conn.commit()

    # ----------------------------- Routes -----------------------------

    def list_routes(self, driver_id: str | None = None) -> list[Route]:
        if driver_id is None:
            rows = self.conn.execute(
                "SELECT route_id, name, driver_id FROM routes ORDER BY name COLLATE NOCASE"
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT route_id, name, driver_id FROM routes "
                "WHERE driver_id=? ORDER BY name COLLATE NOCASE",
                (driver_id,),
            ).fetchall()
        return [Route(**r) for r in rows]

    def add_route(self, route: Route) -> None:
        if not non_empty(route.name):
            raise DomainError("Route name cannot be empty.")
        self.conn.execute(
            "INSERT INTO routes(route_id, name, driver_id) VALUES (?, ?, ?)",
            (route.route_id, route.name.strip(), route.driver_id),
        )
        self.conn.commit()
