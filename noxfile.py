"""Nox sessions for tz-radio quality gates."""

from __future__ import annotations

import nox

nox.options.sessions = ["lint", "typecheck", "tests"]

SOURCES = ("src", "tests", "noxfile.py")


@nox.session
def lint(session: nox.Session) -> None:
    """Check lint and formatting without touching files."""
    session.install("ruff")
    session.run("ruff", "check", *SOURCES)
    session.run("ruff", "format", "--check", *SOURCES)


@nox.session(name="lint-fix")
def lint_fix(session: nox.Session) -> None:
    session.install("ruff")
    session.run("ruff", "check", "--fix", *SOURCES)
    session.run("ruff", "format", *SOURCES)


@nox.session
def typecheck(session: nox.Session) -> None:
    """Type-check the package against its installed runtime dependencies."""
    session.install("mypy")
    session.install("-e", ".")
    session.run("mypy", "src/tz_radio")


@nox.session
def tests(session: nox.Session) -> None:
    session.install("-e", ".[test]")
    session.run("pytest", *session.posargs)


@nox.session(name="engine-tests")
def engine_tests(session: nox.Session) -> None:
    """Run only the queue engine tests (no Textual app)."""
    session.install("-e", ".[test]")
    session.run(
        "pytest",
        "tests/test_track_prefetcher.py",
        "tests/test_queue_reconciler.py",
        "tests/test_track_pruner.py",
        "tests/test_transport_controller.py",
        "tests/test_session_orchestrator.py",
        *session.posargs,
    )
