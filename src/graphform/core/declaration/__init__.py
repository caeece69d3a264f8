# src/graphform/core/declaration/__init__.py
"""
Declarações de stack do Graphform.

Componentes:
    - schema      -> estruturas tipadas (StackDocument, ResourceDecl, ...)
    - loader      -> carregamento YAML/JSON, validação estrutural, módulos
    - expressions -> templates `${...}`, referências e valores UNKNOWN

As declarações descrevem o estado desejado; não contêm lógica de
execução nem conhecem providers.
"""

from .expressions import UNKNOWN, Reference, contains_unknown, evaluate, find_references
from .loader import load_stack, parse_stack
from .schema import Lifecycle, ModuleCall, OutputDecl, ResourceDecl, StackDocument, VariableDecl

__all__ = [
    "UNKNOWN",
    "Lifecycle",
    "ModuleCall",
    "OutputDecl",
    "Reference",
    "ResourceDecl",
    "StackDocument",
    "VariableDecl",
    "contains_unknown",
    "evaluate",
    "find_references",
    "load_stack",
    "parse_stack",
]
