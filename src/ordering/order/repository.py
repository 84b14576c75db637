"""Repository for the Order aggregate."""

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.repository(part_of=Order)
class OrderRepository:
    """Order lookups beyond get-by-id.

    The base repository provides get/add. Nested value object fields are
    queried through their flattened attribute names
    (``payment_info_provider_order_id``).
    """

    def find_by_order_number(self, order_number: str) -> Order | None:
        items = self._dao.query.filter(order_number=order_number).all().items
        return items[0] if items else None

    def order_number_taken(self, order_number: str) -> bool:
        return self.find_by_order_number(order_number) is not None

    def find_by_provider_order_id(self, provider_order_id: str) -> Order | None:
        items = self._dao.query.filter(payment_info_provider_order_id=provider_order_id).all().items
        return items[0] if items else None

    def search(self, filters: dict, page: int, limit: int):
        """Return a page of orders matching ``filters``, newest first."""
        query = self._dao.query
        if filters:
            query = query.filter(**filters)
        return query.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()
