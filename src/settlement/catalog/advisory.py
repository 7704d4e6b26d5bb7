"""Advisory shipping method resolution.

Resolves a shipping method by admin name, creating an advisory one on
demand. A resolver is built per settlement call, so its memo never outlives
the call that filled it.
"""

import structlog
from protean.utils.globals import current_domain

from settlement.catalog.shipping_method import ShippingCategory, ShippingMethod
from settlement.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


class AdvisoryMethodResolver:
    """Lookup-or-create of advisory shipping methods, memoised by name.

    Args:
        use_any_method: Accept a method with any calculator, not only the
            advisory one.
        auto_create: Create a missing advisory method instead of failing.
    """

    def __init__(self, use_any_method: bool = False, auto_create: bool = True) -> None:
        self.use_any_method = use_any_method
        self.auto_create = auto_create
        self._methods: dict[str, ShippingMethod] = {}

    def resolve(self, name: str) -> ShippingMethod:
        if name in self._methods:
            return self._methods[name]

        repo = current_domain.repository_for(ShippingMethod)
        method = next(
            (m for m in repo.find_by_admin_name(name) if self.use_any_method or m.is_advisory()),
            None,
        )

        if method is None:
            method = self._create(name)

        self._methods[name] = method
        return method

    def _create(self, name: str) -> ShippingMethod:
        if not self.auto_create:
            raise ConfigurationError(
                f"Advisory shipping method {name} does not exist and automatic creation is disabled"
            )

        category = current_domain.repository_for(ShippingCategory).default()
        if category is None:
            raise ConfigurationError(f"Cannot create advisory shipping method {name}: no shipping category exists")

        method = ShippingMethod.create_advisory(name, shipping_category_id=str(category.id))
        current_domain.repository_for(ShippingMethod).add(method)
        logger.info(
            "Created advisory shipping method",
            shipping_method=name,
            shipping_method_id=str(method.id),
            shipping_category_id=str(category.id),
        )
        return method
