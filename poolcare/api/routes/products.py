"""
Product catalog endpoints.

The catalog is shared by every user of the deployment.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Response, status
from pydantic import Field

from ...core.pools.models import Product
from ...core.reports import StockStatus, filter_products, stock_status
from ..dependencies import AuthenticatedUser, RecordRepositoryDep, SynchronizerDep
from ..schemas import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter()


class ProductRequest(CamelModel):
    name: str = Field(max_length=200)
    description: Optional[str] = None
    cost: float = Field(ge=0)
    stock: int = Field(0, ge=0)

    def to_product(self, product_id: Optional[str] = None) -> Product:
        return Product(id=product_id, **self.model_dump())


class ProductResponse(ProductRequest):
    id: str
    stock_status: StockStatus

    @classmethod
    def from_product(cls, product: Product) -> "ProductResponse":
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            cost=product.cost,
            stock=product.stock,
            stock_status=stock_status(product.stock),
        )


@router.get(
    "",
    response_model=list[ProductResponse],
    summary="List products",
    description="in-stock also includes low-stock items.",
)
async def list_products(
    api_key: AuthenticatedUser,
    repository: RecordRepositoryDep,
    stock: Optional[StockStatus] = Query(None, alias="status"),
) -> list[ProductResponse]:
    products = filter_products(repository.list_products(), stock)
    return [ProductResponse.from_product(p) for p in products]


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a product",
)
async def create_product(
    request: ProductRequest,
    api_key: AuthenticatedUser,
    synchronizer: SynchronizerDep,
) -> ProductResponse:
    return ProductResponse.from_product(synchronizer.save_product(request.to_product()))


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Update a product",
)
async def update_product(
    product_id: str,
    request: ProductRequest,
    api_key: AuthenticatedUser,
    synchronizer: SynchronizerDep,
) -> ProductResponse:
    product = synchronizer.save_product(request.to_product(product_id))
    return ProductResponse.from_product(product)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a product",
)
async def delete_product(
    product_id: str,
    api_key: AuthenticatedUser,
    synchronizer: SynchronizerDep,
) -> Response:
    synchronizer.delete_product(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
