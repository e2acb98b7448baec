"""BIMS Ledger — blockchain-backed inventory management core.

An append-only, hash-linked transaction ledger is the single source of truth
for inventory.  The current stock picture ("world state") is never stored; it
is rebuilt on demand by replaying the chain.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
The API root endpoint and the CLI import ``__version__`` from here.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ---------------------------------------------------------------------------
# Package version — read from pyproject.toml via importlib.metadata.
#
# If the package is imported without being installed we fall back to the
# literal below so the application can still start.
# ---------------------------------------------------------------------------
try:
    __version__: str = version("bims-ledger")
except PackageNotFoundError:
    __version__ = "0.3.0"
