# src/graphform/core/resource/__init__.py
"""
Contratos de recurso do Graphform.

Componentes:
    - types    -> Action, ChangeStatus, ChangeResult
    - handler  -> ResourceHandler (Protocol)
    - context  -> RunContext (providers, eventos, warnings, journal)
    - registry -> ProviderRegistry (um handler por tipo)

Handlers não conhecem o engine: recebem propriedades já avaliadas e
devolvem atributos observados.
"""

from .context import RunContext
from .handler import ResourceHandler
from .registry import DuplicateResourceTypeError, ProviderRegistry
from .types import Action, ChangeResult, ChangeStatus

__all__ = [
    "Action",
    "ChangeResult",
    "ChangeStatus",
    "DuplicateResourceTypeError",
    "ProviderRegistry",
    "ResourceHandler",
    "RunContext",
]
