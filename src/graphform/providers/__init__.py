# src/graphform/providers/__init__.py
"""
Handlers embutidos do Graphform.

Todos atuam apenas sobre a máquina local e servem para exercitar o
engine de ponta a ponta:

    - null_resource -> objeto sem efeito colateral, recriado quando `triggers` muda
    - local_file    -> arquivo de texto sob `providers.local.root_dir`
    - random_string -> string aleatória estável até que `keepers` mude
"""

from graphform.core.resource.registry import ProviderRegistry

from .local import LocalFileHandler
from .null import NullResourceHandler
from .random import RandomStringHandler


def default_registry() -> ProviderRegistry:
    """Registro com todos os handlers embutidos."""
    registry = ProviderRegistry()
    registry.add(NullResourceHandler())
    registry.add(LocalFileHandler())
    registry.add(RandomStringHandler())
    return registry


__all__ = [
    "LocalFileHandler",
    "NullResourceHandler",
    "RandomStringHandler",
    "default_registry",
]
