"""Ordering bounded context: order lifecycle and payment reconciliation.

Orders are plain (state-stored) aggregates. Every status change is guarded by
an explicit transition table and recorded on the order's timeline. Stock
lives in the catalogue and is reached only through the catalog store port.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
