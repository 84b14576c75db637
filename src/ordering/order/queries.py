"""Read-side access to orders with ownership checks and pagination."""

import math
from dataclasses import dataclass
from datetime import UTC, datetime

from protean.utils.globals import current_domain

from ordering.order.order import Order, parse_status
from shared.errors import Forbidden, ValidationError

USER_PAGE_LIMIT = 50
ADMIN_PAGE_LIMIT = 100


@dataclass(frozen=True)
class OrderPage:
    orders: list
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def get_order(order_id, requesting_user_id, is_admin: bool = False) -> Order:
    """Load an order the caller may see.

    Raises ``NotFound`` for unknown ids and ``Forbidden`` when the caller
    neither owns the order nor is an admin.
    """
    order = current_domain.repository_for(Order).get(order_id)
    if not is_admin and not order.is_owned_by(requesting_user_id):
        raise Forbidden("Not authorized to access this order")
    return order


def _check_page(page: int, limit: int, max_limit: int) -> None:
    if page < 1:
        raise ValidationError({"page": ["Page must be a positive integer"]})
    if limit < 1 or limit > max_limit:
        raise ValidationError({"limit": [f"Limit must be between 1 and {max_limit}"]})


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=UTC)


def _page(filters: dict, page: int, limit: int) -> OrderPage:
    results = current_domain.repository_for(Order).search(filters, page, limit)
    return OrderPage(orders=list(results.items), page=page, limit=limit, total=results.total)


def list_orders(user_id, status: str | None = None, page: int = 1, limit: int = 10) -> OrderPage:
    """A user's own orders, newest first."""
    _check_page(page, limit, USER_PAGE_LIMIT)
    filters = {"user_id": str(user_id)}
    if status:
        filters["status"] = parse_status(status).value
    return _page(filters, page, limit)


def list_all_orders(
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    order_number: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> OrderPage:
    """Every order, for admins. ``order_number`` matches case-insensitively on any part."""
    _check_page(page, limit, ADMIN_PAGE_LIMIT)
    filters = {}
    if status:
        filters["status"] = parse_status(status).value
    if start_date:
        filters["created_at__gte"] = _aware(start_date)
    if end_date:
        filters["created_at__lte"] = _aware(end_date)
    if order_number:
        filters["order_number__icontains"] = order_number
    return _page(filters, page, limit)
