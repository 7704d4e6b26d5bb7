"""Refund adjustment: command and handler.

ROP is the only authority on refund values; the amount it reports is
booked as-is and payment settlement then reconciles the actual credits.
"""

import structlog
from protean import handle
from protean.fields import Float, String
from protean.utils.globals import current_domain

from settlement.domain import settlement
from settlement.order.order import Order

logger = structlog.get_logger(__name__)


@settlement.command(part_of="Order")
class AddRefund:
    """Book a refund ROP issued for returned or cancelled merchandise."""

    order_number = String(required=True, max_length=50)
    refund_amount = Float(required=True)
    refund_id = String(max_length=255)


@settlement.command_handler(part_of=Order)
class RefundHandler:
    @handle(AddRefund)
    def add_refund(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_by_number(command.order_number)

        adjustment = order.book_refund(command.refund_amount, refund_id=command.refund_id)
        if adjustment is None:
            logger.info("Refund already booked", order_number=order.number, refund_id=command.refund_id)
            return None

        repo.add(order)
        logger.info(
            "Booked refund adjustment",
            order_number=order.number,
            refund_id=command.refund_id,
            amount=adjustment.amount,
        )
        return str(adjustment.id)
