# src/graphform/core/resource/registry.py
"""
Registro de handlers de recurso.

O `ProviderRegistry` associa cada tipo de recurso a exatamente um
handler e valida a integridade do registro antes de qualquer plano.

Invariantes:
    - Cada `type_name` registrado é único
    - A ordem de registro é preservada
    - Um tipo sem handler é um erro explícito no momento do plano
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from graphform.core.exceptions import UnknownResourceTypeError

from .handler import ResourceHandler


class DuplicateResourceTypeError(ValueError):
    """
    Exceção levantada ao registrar dois handlers para o mesmo tipo.

    A duplicidade é tratada como erro fatal de configuração, no momento
    do registro; nenhum handler é sobrescrito silenciosamente.
    """


@dataclass
class ProviderRegistry:
    """Registro canônico de handlers indexado por `type_name`."""

    _handlers: Dict[str, ResourceHandler] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    def add(self, handler: ResourceHandler) -> None:
        type_name = getattr(handler, "type_name", None)
        if not isinstance(type_name, str) or not type_name.strip():
            raise ValueError("handler.type_name must be a non-empty string")

        if type_name in self._handlers:
            raise DuplicateResourceTypeError(f"Duplicate resource type: {type_name}")

        self._handlers[type_name] = handler
        self._order.append(type_name)

    def get(self, type_name: str) -> ResourceHandler:
        if type_name not in self._handlers:
            raise UnknownResourceTypeError(
                message=f"Nenhum handler registrado para o tipo '{type_name}'",
                details={"type": type_name, "registered": list(self._order)},
                hint="Registre o handler no ProviderRegistry antes de planejar",
            )
        return self._handlers[type_name]

    def has(self, type_name: str) -> bool:
        return type_name in self._handlers

    def list(self) -> List[ResourceHandler]:
        return [self._handlers[t] for t in self._order]

    def types(self) -> List[str]:
        return list(self._order)
