# src/graphform/core/engine/evaluator.py
"""
Escopo de avaliação de expressões durante plan e apply.

O `Scope` guarda o valor já calculado de cada nó do grafo. Como o grafo
é percorrido em ordem topológica, toda referência aponta para um nó já
avaliado.

Recursos ainda não materializados (create/replace) são representados por
`PlannedObject`: propriedades desejadas são conhecidas; qualquer outro
atributo é `UNKNOWN` até o apply.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from graphform.core.declaration.expressions import UNKNOWN, Reference, evaluate, traverse
from graphform.core.exceptions import EngineExecutionError, VariableMissingError
from graphform.core.graph.types import GraphNode, NodeKind


class PlannedObject(dict):
    """Atributos parcialmente conhecidos de um recurso pendente."""


class Scope:
    def __init__(self, variables: Dict[str, Any] | None = None):
        self.variables: Dict[str, Any] = dict(variables or {})
        self.values: Dict[str, Any] = {}

    def set(self, address: str, value: Any) -> None:
        self.values[address] = value

    def get(self, address: str) -> Any:
        return self.values[address]

    def resolver(self, prefix: str) -> Callable[[Reference], Any]:
        def _resolve(ref: Reference) -> Any:
            address, path = ref.target(prefix)
            if address not in self.values:
                raise EngineExecutionError(
                    message=f"'{address}' ainda não foi avaliado",
                    details={"reference": ref.text, "address": address},
                )
            base = self.values[address]
            if isinstance(base, PlannedObject):
                if not path or path[0] not in base:
                    return UNKNOWN
            return traverse(base, path, text=ref.text)

        return _resolve

    def evaluate_node(self, node: GraphNode) -> Any:
        if node.kind == NodeKind.VARIABLE:
            return self._variable(node)
        return evaluate(node.expression, self.resolver(node.scope_prefix))

    def _variable(self, node: GraphNode) -> Any:
        var = node.variable
        if node.has_expression:
            return evaluate(node.expression, self.resolver(node.scope_prefix))
        if node.is_root and var is not None and var.name in self.variables:
            return self.variables[var.name]
        if var is not None and var.has_default:
            return var.default
        raise VariableMissingError(
            message=f"Variável obrigatória sem valor: {node.name}",
            details={"variable": node.name},
            hint=f"Informe --var {node.name}=VALOR ou declare um default",
            address=node.address,
        )
