"""Settlement entry points.

The three calls ROP makes, usable with or without HTTP in front of them.
Each call holds the order's lock throughout, commits its order mutation as
one command and, for completion and refunds, settles payments afterwards.
A failure in the mutation propagates; a failure in payment settlement is
reported in the returned ``errors``.
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from protean.utils.globals import current_domain

from settlement.order.completion import MarkComplete
from settlement.order.packages import AddPackages
from settlement.order.refund import AddRefund
from settlement.payment.settlement import PaymentSettlement, SettlementFlags
from settlement.utils.locking import order_lock
from settlement.utils.logging import add_context, clear_context, get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SettlementOptions:
    """How advisory shipping methods are resolved during a call."""

    use_any_method: bool = False
    partial_ship_name: str | None = None
    no_auto_shipping_methods: bool = False

    def command_kwargs(self) -> dict:
        return {
            "use_any_method": self.use_any_method,
            "partial_ship_name": self.partial_ship_name,
            "no_auto_shipping_methods": self.no_auto_shipping_methods,
        }


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


@contextmanager
def _settling(order_number: str, operation: str) -> Iterator[None]:
    """Hold the order's lock and bind it into the log context for one call."""
    with order_lock(order_number):
        add_context(order_number=order_number, operation=operation)
        try:
            yield
        except Exception as exc:
            logger.error("Settlement call failed", error=str(exc), error_type=type(exc).__name__)
            raise
        finally:
            clear_context()


def add_packages(order_number: str, packages: list[dict], options: SettlementOptions | None = None) -> int:
    """Apply ROP packages to an order. Returns how many were newly applied."""
    options = options or SettlementOptions()
    with _settling(order_number, "add_packages"):
        applied = current_domain.process(
            AddPackages(
                order_number=order_number,
                packages=json.dumps(packages, default=_json_default),
                **options.command_kwargs(),
            ),
            asynchronous=False,
        )
        logger.info("Packages added", received=len(packages), applied=applied)
        return applied


def mark_complete(
    order_number: str,
    flags: SettlementFlags | None = None,
    options: SettlementOptions | None = None,
) -> dict:
    """Finalize an order ROP will ship nothing more for, then settle its payments."""
    options = options or SettlementOptions()
    with _settling(order_number, "mark_complete"):
        current_domain.process(
            MarkComplete(order_number=order_number, **options.command_kwargs()),
            asynchronous=False,
        )
        result = PaymentSettlement(order_number, flags or SettlementFlags()).run()
        logger.info("Order completed", errors=len(result["errors"]), payments=len(result["status"]))
        return result


def add_refund(
    order_number: str,
    refund_amount: float,
    refund_id: str | None = None,
    flags: SettlementFlags | None = None,
    options: SettlementOptions | None = None,
) -> dict:
    """Book a refund ROP issued, then settle the order's payments."""
    options = options or SettlementOptions()
    with _settling(order_number, "add_refund"):
        current_domain.process(
            AddRefund(order_number=order_number, refund_amount=refund_amount, refund_id=refund_id),
            asynchronous=False,
        )
        result = PaymentSettlement(order_number, flags or SettlementFlags()).run()
        logger.info("Refund added", errors=len(result["errors"]), payments=len(result["status"]))
        return result
