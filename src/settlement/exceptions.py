"""Settlement-specific errors.

Missing orders and line items surface as protean's ObjectNotFoundError and
rule violations as protean's ValidationError; the two classes here cover
what protean has no word for.
"""


class ConfigurationError(Exception):
    """The catalog is missing something settlement needs and may not create it.

    Raised for an unknown stock location, an advisory shipping method that
    does not exist while automatic creation is disabled, or a catalog with
    no shipping category to attach a new method to. Fatal for the call.
    """


class GatewayError(Exception):
    """A payment action failed at the gateway.

    Only raised during payment settlement, where it is caught per payment
    and reported in the result's ``errors`` list.
    """

    def __init__(self, message: str, payment_id: str | None = None, action: str | None = None) -> None:
        super().__init__(message)
        self.payment_id = payment_id
        self.action = action
