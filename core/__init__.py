"""
Convenience package shim.

The code is organized under `app/`; tests put `app/` on `sys.path` so imports like
`import core.*` resolve to `app/core` directly.

When running tools from the repo root (e.g. `python -m core.cli --asset BTC --demo 500`),
`app/` is not on `sys.path`. This shim makes `core.*` resolvable by extending
the package search path to include `app/core`.
"""

from __future__ import annotations

import os

# Make this a namespace-like package that also searches `app/core`.
_HERE = os.path.abspath(os.path.dirname(__file__))
_APP_CORE = os.path.normpath(os.path.join(_HERE, "..", "app", "core"))

if os.path.isdir(_APP_CORE):
    __path__.append(_APP_CORE)  # type: ignore[name-defined]
