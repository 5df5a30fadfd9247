"""Application command loading, validation, syncing and routing.

Modules:
- types: command tree nodes
- validation: naming/shape rules
- loader: builds the tree from a commands folder
- owner: the owner-only command group
- registry: command map and per-guild handle store
- sync: reconciliation with Discord's command registry
- router: interaction dispatch
"""

__all__ = [
    "errors",
    "types",
    "validation",
    "loader",
    "owner",
    "registry",
    "sync",
    "router",
]

from . import errors
from . import types
from . import validation
from . import registry
from . import loader
from . import owner
from . import sync
from . import router
