"""
Dependency injection for the API service.
Provides the response assembler (and through it, the cache context) to route handlers.
"""
from __future__ import annotations

from api.assembler import ResponseAssembler

# Initialized at startup
_assembler: ResponseAssembler | None = None


def init_dependencies(assembler: ResponseAssembler) -> None:
    """Install the assembler. Called once at startup (or by tests)."""
    global _assembler
    _assembler = assembler


def reset_dependencies() -> None:
    global _assembler
    _assembler = None


def get_assembler() -> ResponseAssembler:
    """FastAPI dependency: returns the shared ResponseAssembler."""
    if _assembler is None:
        raise RuntimeError("ResponseAssembler not initialized — call init_dependencies first")
    return _assembler
