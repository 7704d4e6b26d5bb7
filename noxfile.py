import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]

# Packages with C extensions that must be rebuilt per Python version.
# Poetry's wheel cache can serve a .so compiled for the wrong interpreter.
_C_EXT_PACKAGES = ["psycopg2"]

_SUITES = {
    "domain": ["tests/settlement/domain/"],
    "application": ["tests/settlement/application/", "tests/settlement/bdd/"],
    "api": ["tests/settlement/integration/"],
}


def _install(session: nox.Session) -> None:
    """Install settlement with its test and postgresql extras."""
    session.run("poetry", "install", "--all-extras", external=True)
    session.run("pip", "install", "--force-reinstall", "--no-cache-dir", *_C_EXT_PACKAGES)


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the full settlement suite across Python versions."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
@nox.parametrize("suite", list(_SUITES))
def suite(session: nox.Session, suite: str) -> None:
    """Run one layer of the suite: domain rules, settlement flows or the HTTP API."""
    _install(session)
    session.run("pytest", *_SUITES[suite], *session.posargs)
