# src/graphform/core/engine/plan.py
"""
Cálculo do plano: estado desejado vs. estado observado.

Fluxo:
    1. Refresh opcional: `handler.read` para cada recurso do state
    2. Avaliação do grafo em ordem topológica (variáveis, locals, recursos, outputs)
    3. Diff por recurso -> create | update | replace | no-op
    4. Recursos no state sem declaração -> delete (ordem reversa de dependências)

Regras de diff:
    - Chaves em `lifecycle.ignore_changes` mantêm o valor anterior
    - Valores `UNKNOWN` contam como alteração
    - Alteração em chave listada em `handler.force_new` -> replace
    - replace/delete de recurso com `prevent_destroy` -> PreventDestroyError

O plano é serializável e carrega o serial/lineage do state e o hash
das declarações usados no cálculo.
"""

from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from graphform.core.declaration.expressions import (
    contains_unknown,
    decode_unknowns,
    encode_unknowns,
)
from graphform.core.exceptions import (
    DeclarationError,
    PreventDestroyError,
    ResourceValidationError,
)
from graphform.core.graph.builder import ResourceGraph
from graphform.core.graph.types import GraphNode, NodeKind
from graphform.core.resource.context import RunContext
from graphform.core.resource.registry import ProviderRegistry
from graphform.core.resource.types import Action
from graphform.core.state.models import ResourceState, State

from .evaluator import PlannedObject, Scope
from .planner import reverse_order

PLAN_FORMAT_VERSION = 1

_MISSING = object()


@dataclass(frozen=True)
class ResourceChange:
    """Mudança planejada para um único recurso."""

    address: str
    type: str
    provider: str
    action: Action
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    changed: Tuple[str, ...] = ()
    requires_replace: Tuple[str, ...] = ()
    dependencies: Tuple[str, ...] = ()
    prior_attributes: Optional[Dict[str, Any]] = None
    create_before_destroy: bool = False
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "type": self.type,
            "provider": self.provider,
            "action": self.action.value,
            "before": encode_unknowns(self.before),
            "after": encode_unknowns(self.after),
            "changed": list(self.changed),
            "requires_replace": list(self.requires_replace),
            "dependencies": list(self.dependencies),
            "prior_attributes": self.prior_attributes,
            "create_before_destroy": self.create_before_destroy,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceChange":
        return cls(
            address=data["address"],
            type=data["type"],
            provider=data.get("provider") or data["type"].split("_", 1)[0],
            action=Action(data["action"]),
            before=decode_unknowns(data.get("before")),
            after=decode_unknowns(data.get("after")),
            changed=tuple(data.get("changed", ()) or ()),
            requires_replace=tuple(data.get("requires_replace", ()) or ()),
            dependencies=tuple(data.get("dependencies", ()) or ()),
            prior_attributes=data.get("prior_attributes"),
            create_before_destroy=bool(data.get("create_before_destroy", False)),
            reason=data.get("reason"),
        )


@dataclass
class Plan:
    """Plano completo de uma run."""

    changes: List[ResourceChange]
    outputs: Dict[str, Dict[str, Any]]
    variables: Dict[str, Any]
    state_serial: int
    state_lineage: str
    declaration_hash: str
    destroy: bool = False
    warnings: List[str] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def change(self, address: str) -> Optional[ResourceChange]:
        for c in self.changes:
            if c.address == address:
                return c
        return None

    def actionable(self) -> List[ResourceChange]:
        return [c for c in self.changes if c.action != Action.NOOP]

    def has_changes(self) -> bool:
        return bool(self.actionable())

    def summary(self) -> Dict[str, int]:
        out = {"add": 0, "change": 0, "destroy": 0}
        for c in self.changes:
            if c.action == Action.CREATE:
                out["add"] += 1
            elif c.action == Action.UPDATE:
                out["change"] += 1
            elif c.action == Action.REPLACE:
                out["add"] += 1
                out["destroy"] += 1
            elif c.action == Action.DELETE:
                out["destroy"] += 1
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format_version": PLAN_FORMAT_VERSION,
            "created_at": self.created_at,
            "destroy": self.destroy,
            "state_serial": self.state_serial,
            "state_lineage": self.state_lineage,
            "declaration_hash": self.declaration_hash,
            "variables": deepcopy(self.variables),
            "changes": [c.to_dict() for c in self.changes],
            "outputs": encode_unknowns(self.outputs),
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Plan":
        version = int(data.get("format_version", PLAN_FORMAT_VERSION))
        if version != PLAN_FORMAT_VERSION:
            raise ValueError(f"Unsupported plan format version: {version}")
        return cls(
            changes=[ResourceChange.from_dict(c) for c in data.get("changes", []) or []],
            outputs=decode_unknowns(data.get("outputs", {}) or {}),
            variables=dict(data.get("variables", {}) or {}),
            state_serial=int(data.get("state_serial", 0)),
            state_lineage=str(data.get("state_lineage", "")),
            declaration_hash=str(data.get("declaration_hash", "")),
            destroy=bool(data.get("destroy", False)),
            warnings=list(data.get("warnings", []) or []),
            created_at=str(data.get("created_at", "")),
        )


@dataclass(frozen=True)
class _StateNode:
    """Adaptador de recurso do state para o resolvedor de dependências."""

    id: str
    depends_on: Tuple[str, ...]


def deletion_order(resources: Dict[str, ResourceState], addresses: List[str]) -> List[str]:
    """Ordena endereços para destruição usando as dependências gravadas no state."""
    selected = set(addresses)
    nodes = [
        _StateNode(id=a, depends_on=tuple(d for d in resources[a].dependencies if d in selected))
        for a in sorted(selected)
    ]
    return [n.id for n in reverse_order(nodes)]


def diff_properties(
    desired: Dict[str, Any],
    before: Dict[str, Any],
) -> List[str]:
    keys = set(desired) | set(before)
    changed = []
    for k in sorted(keys):
        d = desired.get(k, _MISSING)
        b = before.get(k, _MISSING)
        if contains_unknown(d) or d != b:
            changed.append(k)
    return changed


class PlanBuilder:
    """Calcula um `Plan` para um grafo, um state e um registro de handlers."""

    def __init__(
        self,
        *,
        graph: ResourceGraph,
        registry: ProviderRegistry,
        ctx: RunContext,
        refresh: bool = True,
    ):
        self.graph = graph
        self.registry = registry
        self.ctx = ctx
        self.refresh = refresh

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    def _refresh(self, state: State) -> Tuple[Dict[str, Dict[str, Any]], set]:
        observed: Dict[str, Dict[str, Any]] = {}
        vanished = set()
        for address, rs in sorted(state.resources.items()):
            if not self.refresh:
                observed[address] = dict(rs.attributes)
                continue
            handler = self.registry.get(rs.type)
            attrs = handler.read(deepcopy(rs.attributes), self.ctx)
            if attrs is None:
                vanished.add(address)
                self.ctx.add_warning(address=address, message="object no longer exists; it will be recreated if still declared")
                continue
            if attrs != rs.attributes:
                self.ctx.log(address=address, level="INFO", message="drift detected during refresh")
            observed[address] = dict(attrs)
        return observed, vanished

    # ------------------------------------------------------------------
    # Diff
    # ------------------------------------------------------------------
    def _plan_resource(
        self,
        node: GraphNode,
        desired: Dict[str, Any],
        prior: Optional[ResourceState],
        observed: Optional[Dict[str, Any]],
    ) -> Tuple[ResourceChange, Any]:
        res = node.resource
        assert res is not None
        handler = self.registry.get(res.type)

        errors = list(handler.validate(desired) or [])
        if errors:
            raise ResourceValidationError(
                message=f"Propriedades inválidas em {node.address}: {'; '.join(errors)}",
                details={"errors": errors, "type": res.type},
                address=node.address,
            )

        dependencies = tuple(self.graph.resource_dependencies(node.address))
        base = dict(
            address=node.address,
            type=res.type,
            provider=res.provider,
            dependencies=dependencies,
            create_before_destroy=res.lifecycle.create_before_destroy,
        )

        if prior is None or observed is None:
            change = ResourceChange(action=Action.CREATE, before=None, after=desired, changed=tuple(sorted(desired)), **base)
            return change, PlannedObject(desired)

        before = {k: observed.get(k, v) for k, v in prior.properties.items()}
        for key in res.lifecycle.ignore_changes:
            if key in before:
                desired[key] = deepcopy(before[key])

        changed = diff_properties(desired, before)
        if not changed:
            change = ResourceChange(action=Action.NOOP, before=before, after=desired, prior_attributes=observed, **base)
            return change, dict(observed)

        force_new = set(getattr(handler, "force_new", ()) or ())
        requires_replace = tuple(k for k in changed if k in force_new)
        if requires_replace:
            if res.lifecycle.prevent_destroy:
                raise PreventDestroyError(
                    message=f"{node.address} tem prevent_destroy e o plano exige substituí-lo",
                    details={"requires_replace": list(requires_replace)},
                    hint="Reverta a alteração ou remova lifecycle.prevent_destroy",
                    address=node.address,
                )
            change = ResourceChange(
                action=Action.REPLACE,
                before=before,
                after=desired,
                changed=tuple(changed),
                requires_replace=requires_replace,
                prior_attributes=observed,
                **base,
            )
            return change, PlannedObject(desired)

        change = ResourceChange(
            action=Action.UPDATE,
            before=before,
            after=desired,
            changed=tuple(changed),
            prior_attributes=observed,
            **base,
        )
        value = PlannedObject(desired)
        if "id" in observed:
            value["id"] = observed["id"]
        return change, value

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------
    def build(self, state: State, *, variables: Optional[Dict[str, Any]] = None, destroy: bool = False) -> Plan:
        variables = dict(variables or {})
        undeclared = sorted(set(variables) - set(self.graph.stack.variables))
        if undeclared:
            raise DeclarationError(
                message=f"Valores informados para variáveis não declaradas: {undeclared}",
                details={"variables": undeclared},
            )

        if destroy:
            return self._build_destroy(state, variables)

        observed, vanished = self._refresh(state)
        scope = Scope(variables)
        changes: List[ResourceChange] = []
        outputs: Dict[str, Dict[str, Any]] = {}

        for node in self.graph.ordered():
            if node.kind != NodeKind.RESOURCE:
                value = scope.evaluate_node(node)
                scope.set(node.address, value)
                if node.kind == NodeKind.OUTPUT and node.is_root and node.output is not None:
                    outputs[node.name] = {"value": value, "sensitive": node.output.sensitive}
                continue

            desired = scope.evaluate_node(node)
            prior = state.resources.get(node.address)
            obs = None if node.address in vanished else observed.get(node.address)
            change, value = self._plan_resource(node, desired, prior, obs)
            changes.append(change)
            scope.set(node.address, value)

        declared = {n.address for n in self.graph.resources()}
        orphans = [a for a in state.resources if a not in declared]
        for address in deletion_order(state.resources, orphans):
            rs = state.resources[address]
            changes.append(
                ResourceChange(
                    address=address,
                    type=rs.type,
                    provider=rs.provider,
                    action=Action.DELETE,
                    before=dict(rs.properties),
                    after=None,
                    dependencies=tuple(rs.dependencies),
                    prior_attributes=observed.get(address, dict(rs.attributes)),
                    reason="no longer declared",
                )
            )

        return Plan(
            changes=changes,
            outputs=outputs,
            variables=variables,
            state_serial=state.serial,
            state_lineage=state.lineage,
            declaration_hash=self.graph.fingerprint,
            destroy=False,
            warnings=self.ctx.all_warnings(),
        )

    def _build_destroy(self, state: State, variables: Dict[str, Any]) -> Plan:
        changes: List[ResourceChange] = []
        for address in deletion_order(state.resources, list(state.resources)):
            rs = state.resources[address]
            if address in self.graph:
                res = self.graph.node(address).resource
                if res is not None and res.lifecycle.prevent_destroy:
                    raise PreventDestroyError(
                        message=f"{address} tem prevent_destroy e não pode ser destruído",
                        details={},
                        hint="Remova lifecycle.prevent_destroy antes do destroy",
                        address=address,
                    )
            changes.append(
                ResourceChange(
                    address=address,
                    type=rs.type,
                    provider=rs.provider,
                    action=Action.DELETE,
                    before=dict(rs.properties),
                    after=None,
                    dependencies=tuple(rs.dependencies),
                    prior_attributes=dict(rs.attributes),
                    reason="destroy requested",
                )
            )
        return Plan(
            changes=changes,
            outputs={},
            variables=variables,
            state_serial=state.serial,
            state_lineage=state.lineage,
            declaration_hash=self.graph.fingerprint,
            destroy=True,
        )


def save_plan(plan: Plan, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(plan.to_dict(), ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")


def load_plan(path: Path) -> Plan:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return Plan.from_dict(data)
