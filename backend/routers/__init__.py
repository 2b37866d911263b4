"""FastAPI routers for modular endpoint organization."""

from . import garden

__all__ = [
    "garden",
]
