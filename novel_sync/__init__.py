# =============================================================================
# novel-ledger-sync Main Package
# =============================================================================
"""
novel-ledger-sync - Ledger to MongoDB projection sync

Version is read from installed package metadata, with pyproject.toml as the
fallback when running from a source checkout.
"""

from __future__ import annotations

from importlib.metadata import version, PackageNotFoundError


def _get_version() -> str:
    """Get package version from installed metadata or pyproject.toml."""
    try:
        return version("novel-ledger-sync")
    except PackageNotFoundError:
        pass

    import tomllib
    from pathlib import Path

    pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
    if pyproject_path.exists():
        with open(pyproject_path, "rb") as f:
            return tomllib.load(f)["project"]["version"]

    return "0.1.0-unknown"


__version__: str = _get_version()
__description__: str = "Ledger event sync, idempotent recharge and consistency checks for the novel resource ledger"

__all__ = [
    "__version__",
    "__description__",
]
