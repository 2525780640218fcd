"""Shared helpers for marketplace routers."""

from services.marketplace_service.schemas import OrderListResponse, OrderResponse
from services.marketplace_service.services.queries import OrderPage


def order_list_response(message: str, page: OrderPage) -> OrderListResponse:
    return OrderListResponse(
        message=message,
        orders=[OrderResponse.model_validate(order) for order in page.orders],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
    )
