"""Log of payment webhook deliveries that have already been applied.

Gateways redeliver webhooks until they see a 2xx. Recording each processed
event id lets a redelivery be acknowledged without touching the order again.
"""

from protean.fields import DateTime, Identifier, String

from ordering.domain import ordering


@ordering.aggregate
class ProcessedWebhookEvent:
    event_id = Identifier(identifier=True)
    event_type = String(max_length=100)
    provider_order_id = String(max_length=255)
    outcome = String(max_length=50)
    received_at = DateTime()
