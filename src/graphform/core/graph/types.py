# src/graphform/core/graph/types.py
"""
Tipos do grafo de recursos.

Um `GraphNode` é a unidade de ordenação do resolvedor de dependências:
expõe `id` (endereço) e `depends_on`, o mesmo contrato estrutural
consumido por `plan_execution`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from graphform.core.declaration.schema import OutputDecl, ResourceDecl, VariableDecl


class NodeKind(str, Enum):
    """
    Classificação dos nós do grafo.

    - VARIABLE: input de um documento (raiz ou módulo)
    - LOCAL: valor nomeado derivado de outros nós
    - RESOURCE: objeto materializado por um handler de provider
    - OUTPUT: valor exportado (módulo ou raiz)
    """
    VARIABLE = "variable"
    LOCAL = "local"
    RESOURCE = "resource"
    OUTPUT = "output"


@dataclass(frozen=True)
class GraphNode:
    address: str
    kind: NodeKind
    name: str
    module_path: Tuple[str, ...]
    expression: Any
    scope: Tuple[str, ...]
    depends_on: Tuple[str, ...] = ()
    resource: Optional[ResourceDecl] = None
    variable: Optional[VariableDecl] = None
    output: Optional[OutputDecl] = None
    has_expression: bool = True

    @property
    def id(self) -> str:
        return self.address

    @property
    def scope_prefix(self) -> str:
        """Prefixo de endereço do escopo onde `expression` é avaliada."""
        return module_prefix(self.scope)

    @property
    def is_root(self) -> bool:
        return not self.module_path


def module_prefix(path: Tuple[str, ...]) -> str:
    return "".join(f"module.{m}." for m in path)
