import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]

# Packages with C extensions that must be rebuilt per Python version.
# Poetry's wheel cache can serve a .so compiled for the wrong interpreter.
_C_EXT_PACKAGES = ["psycopg2-binary"]


def _install(session: nox.Session) -> None:
    """Install the project and its test group into the nox virtualenv."""
    session.run("poetry", "install", "--with", "test", external=True)
    session.run("pip", "install", "--force-reinstall", "--no-cache-dir", *_C_EXT_PACKAGES)


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the full test suite across Python versions."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS)
def tests_domain(session: nox.Session) -> None:
    """Run domain-layer tests only (no HTTP, no infrastructure)."""
    _install(session)
    session.run("pytest", "tests/orders/domain/", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def tests_postgres(session: nox.Session) -> None:
    """Run application and integration tests against PostgreSQL (needs DATABASE_URL)."""
    _install(session)
    session.run(
        "pytest",
        "--env",
        "production",
        "tests/orders/application/",
        "tests/orders/integration/",
        *session.posargs,
    )
