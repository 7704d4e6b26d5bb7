"""BDD tests for applying ROP packages."""

from pytest_bdd import scenarios

scenarios("features/package_shipping.feature")
