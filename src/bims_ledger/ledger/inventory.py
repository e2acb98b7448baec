"""The inventory projection ("world state").

An :class:`Inventory` is a derived, throwaway view: it is rebuilt from the
chain for every request and owned exclusively by the call that produced it.
Nothing in the package caches one across calls.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Product:
    """Per-SKU record inside the projection.

    Attributes:
        product_name: Display name given at creation (may be ``None``).
        price:        Unit price, non-negative.
        category:     Category label.
        locations:    ``{location_name: quantity}``.  A missing location
                      means quantity 0.
    """

    product_name: str | None
    price: float
    category: str
    locations: dict[str, int] = field(default_factory=dict)

    def quantity_at(self, location: str) -> int:
        return self.locations.get(location, 0)

    def credit(self, location: str, quantity: int) -> None:
        self.locations[location] = self.quantity_at(location) + quantity

    def debit(self, location: str, quantity: int) -> None:
        self.locations[location] = self.quantity_at(location) - quantity

    @property
    def total_stock(self) -> int:
        return sum(self.locations.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "productName": self.product_name,
            "price": self.price,
            "category": self.category,
            "locations": dict(self.locations),
        }


@dataclass
class Inventory:
    """Mapping of SKU to :class:`Product`, with aggregate helpers."""

    products: dict[str, Product] = field(default_factory=dict)

    def __contains__(self, sku: object) -> bool:
        return sku in self.products

    def __len__(self) -> int:
        return len(self.products)

    def __iter__(self) -> Iterator[str]:
        return iter(self.products)

    def get(self, sku: str) -> Product | None:
        return self.products.get(sku)

    def add(self, sku: str, product: Product) -> Product:
        self.products[sku] = product
        return product

    def quantity(self, sku: str, location: str) -> int:
        """Quantity of ``sku`` at ``location``; 0 when either is unknown."""
        product = self.products.get(sku)
        return product.quantity_at(location) if product else 0

    def total_units(self) -> int:
        return sum(product.total_stock for product in self.products.values())

    def total_value(self) -> float:
        return sum((product.price or 0) * product.total_stock for product in self.products.values())

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """JSON-ready ``{sku: product_dict}``."""
        return {sku: product.to_dict() for sku, product in self.products.items()}
