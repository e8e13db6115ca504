"""
Synctodo: personal task list with a synchronized collection store.

The FastAPI application lives in `synctodo.main`; the engine modules
(store, ordering, filters, merge, intake) have no dependency on it.
"""

__version__ = "0.1.0"
