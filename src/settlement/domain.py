"""Settlement bounded context: reconciling ROP fulfillment and refunds.

ROP (the external order-management system) decides after the fact how an
order was packed, shipped, short-shipped or refunded. This domain turns
those reports into local shipments, order adjustments and payment
actions. Orders use CQRS; payments are a separate aggregate so each
gateway action commits on its own.
"""

from protean.domain import Domain

from settlement.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

# Get logger for this module
logger = get_logger(__name__)

# Domain Composition Root
settlement = Domain(name="settlement")
