# src/graphform/core/state/__init__.py
"""State store do Graphform: último estado conhecido de cada recurso."""

from .models import STATE_VERSION, ResourceState, State
from .store import StateStore

__all__ = ["STATE_VERSION", "ResourceState", "State", "StateStore"]
