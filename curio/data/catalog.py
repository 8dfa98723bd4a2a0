"""Product catalog boundary used by the recommendation core."""

import threading
from collections.abc import Iterable, Mapping
from typing import Protocol, Union

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from curio.data.schemas import Product
from curio.errors import NotFoundError, ValidationError


class ProductCatalog(Protocol):
    """Read-only view of the catalog the recommenders depend on."""

    def list_available(self, excluding: Iterable[str] = ()) -> list[Product]:
        """Available products, minus the given ids."""
        ...


class InMemoryProductCatalog:
    """Thread-safe catalog keeping products in memory, with unique names."""

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._lock = threading.RLock()
        self._products: dict[str, Product] = {}
        for product in products:
            self.add(product)

    def __len__(self) -> int:
        with self._lock:
            return len(self._products)

    @staticmethod
    def _coerce(product: Union[Product, Mapping]) -> Product:
        if isinstance(product, Product):
            return product
        try:
            return Product.model_validate(product)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc, "product") from exc

    def _check_name(self, product: Product) -> None:
        name = product.name.casefold()
        for existing in self._products.values():
            if existing.product_id != product.product_id and existing.name.casefold() == name:
                raise ValidationError(
                    f"Product name '{product.name}' is already used",
                    details={"name": product.name, "product_id": existing.product_id},
                )

    def add(self, product: Union[Product, Mapping]) -> Product:
        """Insert a new product; ids and names must be unique."""
        product = self._coerce(product)
        with self._lock:
            if product.product_id in self._products:
                raise ValidationError(
                    f"Product '{product.product_id}' already exists",
                    details={"product_id": product.product_id},
                )
            self._check_name(product)
            self._products[product.product_id] = product
        logger.debug(f"Added product {product.product_id} ({product.name})")
        return product

    def update(self, product: Union[Product, Mapping]) -> Product:
        """Replace an existing product."""
        product = self._coerce(product)
        with self._lock:
            if product.product_id not in self._products:
                raise NotFoundError("product", product.product_id)
            self._check_name(product)
            self._products[product.product_id] = product
        return product

    def get(self, product_id: str) -> Product:
        with self._lock:
            product = self._products.get(product_id)
        if product is None:
            raise NotFoundError("product", product_id)
        return product

    def exists(self, product_id: str) -> bool:
        with self._lock:
            return product_id in self._products

    def all_products(self) -> list[Product]:
        with self._lock:
            return sorted(self._products.values(), key=lambda p: p.product_id)

    def list_available(self, excluding: Iterable[str] = ()) -> list[Product]:
        """Available products not in ``excluding``, ordered by product id."""
        excluded = set(excluding)
        return [
            product
            for product in self.all_products()
            if product.availability and product.product_id not in excluded
        ]
