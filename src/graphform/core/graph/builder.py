# src/graphform/core/graph/builder.py
"""
Construção do grafo de recursos a partir de um `StackDocument`.

Cada variável, local, recurso e output (da raiz e de todos os módulos)
vira um `GraphNode` com endereço único. Arestas vêm de:

    - referências `${...}` nas expressões do nó
    - `depends_on` explícito (endereço de recurso ou `module.NAME`)
    - `depends_on` do bloco de módulo, herdado por todos os recursos internos

Inputs de módulo são avaliados no escopo do documento que chama o módulo.

Invariantes:
    - Todo endereço referenciado existe no grafo (validado na construção)
    - O grafo retornado é acíclico (validado pelo resolvedor)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Set, Tuple

from graphform.core.declaration.expressions import find_references
from graphform.core.declaration.schema import ModuleCall, StackDocument
from graphform.core.engine.planner import (
    UnknownDependencyError,
    execution_levels,
    plan_execution,
)
from graphform.core.exceptions import VariableMissingError

from .types import GraphNode, NodeKind, module_prefix


@dataclass
class _PendingNode:
    node: GraphNode
    exact: Set[str] = field(default_factory=set)
    module_prefixes: Set[str] = field(default_factory=set)
    sources: Dict[str, str] = field(default_factory=dict)


class ResourceGraph:
    """Grafo imutável de nós endereçáveis, já validado."""

    def __init__(self, nodes: Dict[str, GraphNode], stack: StackDocument):
        self._nodes: Dict[str, GraphNode] = dict(nodes)
        self.stack = stack
        self.fingerprint = stack.fingerprint()
        self._order: List[GraphNode] = plan_execution(self._nodes.values())

    def __contains__(self, address: object) -> bool:
        return address in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def node(self, address: str) -> GraphNode:
        return self._nodes[address]

    def nodes(self) -> List[GraphNode]:
        return [self._nodes[a] for a in sorted(self._nodes)]

    def ordered(self) -> List[GraphNode]:
        return list(self._order)

    def levels(self) -> List[List[GraphNode]]:
        return execution_levels(self._nodes.values())

    def resources(self) -> List[GraphNode]:
        return [n for n in self.nodes() if n.kind == NodeKind.RESOURCE]

    def root_outputs(self) -> List[GraphNode]:
        return [n for n in self.nodes() if n.kind == NodeKind.OUTPUT and n.is_root]

    @property
    def providers(self) -> Dict[str, Dict[str, object]]:
        return dict(self.stack.providers)

    def resource_dependencies(self, address: str) -> List[str]:
        """Recursos dos quais `address` depende, atravessando variáveis, locals e outputs."""
        found: Set[str] = set()
        seen: Set[str] = set()
        stack = list(self._nodes[address].depends_on)
        while stack:
            a = stack.pop()
            if a in seen:
                continue
            seen.add(a)
            n = self._nodes[a]
            if n.kind == NodeKind.RESOURCE:
                found.add(a)
            else:
                stack.extend(n.depends_on)
        return sorted(found)

    def dependents(self, address: str) -> Set[str]:
        """Fecho transitivo dos nós que dependem de `address`."""
        reverse: Dict[str, Set[str]] = {a: set() for a in self._nodes}
        for n in self._nodes.values():
            for d in n.depends_on:
                reverse[d].add(n.address)
        out: Set[str] = set()
        stack = [address]
        while stack:
            for child in reverse.get(stack.pop(), ()):
                if child not in out:
                    out.add(child)
                    stack.append(child)
        return out

    def to_dot(self) -> str:
        lines = ["digraph {", "  rankdir = \"RL\";"]
        for n in self.nodes():
            shape = "box" if n.kind == NodeKind.RESOURCE else "note" if n.kind == NodeKind.OUTPUT else "ellipse"
            lines.append(f"  \"{n.address}\" [shape={shape}];")
        for n in self.nodes():
            for d in n.depends_on:
                lines.append(f"  \"{n.address}\" -> \"{d}\";")
        lines.append("}")
        return "\n".join(lines)


def _reference_targets(value: object, prefix: str) -> Dict[str, str]:
    targets: Dict[str, str] = {}
    for ref in find_references(value):
        address, _ = ref.target(prefix)
        targets.setdefault(address, ref.text)
    return targets


def _explicit_targets(entries: Iterable[str], prefix: str) -> Tuple[Set[str], Set[str]]:
    exact: Set[str] = set()
    modules: Set[str] = set()
    for entry in entries:
        parts = entry.split(".")
        if parts[0] == "module" and len(parts) == 2:
            modules.add(f"{prefix}{entry}.")
        else:
            exact.add(f"{prefix}{entry}")
    return exact, modules


class _Builder:
    def __init__(self) -> None:
        self.pending: Dict[str, _PendingNode] = {}
        self.declared_modules: Set[str] = set()

    def add(self, node: GraphNode, *, refs: Dict[str, str], exact: Set[str] = frozenset(), modules: Set[str] = frozenset()) -> None:
        p = _PendingNode(node=node, exact=set(refs) | set(exact), module_prefixes=set(modules), sources=dict(refs))
        self.pending[node.address] = p

    def walk(
        self,
        doc: StackDocument,
        path: Tuple[str, ...],
        *,
        call: Optional[ModuleCall] = None,
        inherited_exact: Set[str] = frozenset(),
        inherited_modules: Set[str] = frozenset(),
    ) -> None:
        prefix = module_prefix(path)
        parent_path = path[:-1]
        parent_prefix = module_prefix(parent_path)

        for name, var in sorted(doc.variables.items()):
            address = f"{prefix}var.{name}"
            if call is not None and name in call.inputs:
                expr = call.inputs[name]
                self.add(
                    GraphNode(
                        address=address, kind=NodeKind.VARIABLE, name=name, module_path=path,
                        expression=expr, scope=parent_path, variable=var,
                    ),
                    refs=_reference_targets(expr, parent_prefix),
                )
                continue
            if call is not None and not var.has_default:
                raise VariableMissingError(
                    message=f"Módulo '{'.'.join(path)}' exige o input '{name}'",
                    details={"module": ".".join(path), "variable": name},
                    hint=f"Declare '{name}' em modules.{path[-1]}.inputs",
                    address=address,
                )
            self.add(
                GraphNode(
                    address=address, kind=NodeKind.VARIABLE, name=name, module_path=path,
                    expression=None, scope=path, variable=var, has_expression=False,
                ),
                refs={},
            )

        for name, expr in sorted(doc.locals.items()):
            self.add(
                GraphNode(
                    address=f"{prefix}local.{name}", kind=NodeKind.LOCAL, name=name,
                    module_path=path, expression=expr, scope=path,
                ),
                refs=_reference_targets(expr, prefix),
            )

        for address, res in sorted(doc.resources.items()):
            exact, modules = _explicit_targets(res.depends_on, prefix)
            self.add(
                GraphNode(
                    address=f"{prefix}{address}", kind=NodeKind.RESOURCE, name=res.name,
                    module_path=path, expression=res.properties, scope=path, resource=res,
                ),
                refs=_reference_targets(res.properties, prefix),
                exact=exact | set(inherited_exact),
                modules=modules | set(inherited_modules),
            )

        for name, out in sorted(doc.outputs.items()):
            self.add(
                GraphNode(
                    address=f"{prefix}output.{name}", kind=NodeKind.OUTPUT, name=name,
                    module_path=path, expression=out.value, scope=path, output=out,
                ),
                refs=_reference_targets(out.value, prefix),
            )

        for name, child in sorted(doc.modules.items()):
            self.declared_modules.add(f"{prefix}module.{name}.")
            exact, modules = _explicit_targets(child.depends_on, prefix)
            self.walk(
                child.document,
                path + (name,),
                call=child,
                inherited_exact=set(inherited_exact) | exact,
                inherited_modules=set(inherited_modules) | modules,
            )

    def finalize(self) -> Dict[str, GraphNode]:
        addresses = sorted(self.pending)
        nodes: Dict[str, GraphNode] = {}
        for address in addresses:
            p = self.pending[address]
            deps: Set[str] = set()
            for target in sorted(p.exact):
                if target not in self.pending:
                    source = p.sources.get(target)
                    detail = f"${{{source}}}" if source else "depends_on"
                    raise UnknownDependencyError(
                        f"Reference to undeclared '{target}' in '{address}' ({detail})",
                        address=address,
                        missing=target,
                    )
                deps.add(target)
            for mprefix in sorted(p.module_prefixes):
                if mprefix not in self.declared_modules:
                    raise UnknownDependencyError(
                        f"Reference to undeclared module '{mprefix[:-1]}' in '{address}'",
                        address=address,
                        missing=mprefix[:-1],
                    )
                members = [a for a in addresses if a.startswith(mprefix) and a != address]
                deps.update(members)
            deps.discard(address)
            nodes[address] = replace(p.node, depends_on=tuple(sorted(deps)))
        return nodes


def build_graph(stack: StackDocument) -> ResourceGraph:
    """
    Constrói e valida o grafo de um stack.

    Raises:
        UnknownDependencyError: Referência ou depends_on para endereço inexistente.
        CycleDetectedError: Se as referências formarem um ciclo.
        VariableMissingError: Input obrigatório de módulo não informado.
        ExpressionError: Referência com sintaxe incompleta.
    """
    builder = _Builder()
    builder.walk(stack, ())
    return ResourceGraph(builder.finalize(), stack)
