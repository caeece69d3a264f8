# src/graphform/core/engine/executor.py
"""
Executor de planos (apply) do Graphform.

O executor percorre o grafo em níveis topológicos, reavalia as
propriedades de cada recurso com os valores reais já aplicados e chama
o handler correspondente. Depois executa as destruições em ordem
reversa de dependências.

Políticas:
    - Falha em um recurso -> status FAILED com payload de erro serializável
    - Dependentes de um recurso com falha -> SKIPPED
    - `fail_fast` interrompe a run na primeira falha
    - `parallelism` > 1 executa cada nível em um pool de threads
    - O state é persistido após cada operação bem-sucedida

Guardrails:
    - Plano calculado sobre outro serial/lineage do state -> StalePlanError
    - Declarações alteradas desde o plano -> StalePlanError
    - Lock do state mantido durante toda a run
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from graphform.core.config.loader import EngineSettings
from graphform.core.declaration.expressions import contains_unknown
from graphform.core.errors import GraphformErrorPayload, apply_resource_error
from graphform.core.exceptions import EngineExecutionError, GraphformException, StalePlanError
from graphform.core.graph.builder import ResourceGraph
from graphform.core.graph.types import GraphNode, NodeKind
from graphform.core.resource.context import RunContext
from graphform.core.resource.registry import ProviderRegistry
from graphform.core.resource.types import Action, ChangeResult, ChangeStatus
from graphform.core.state.models import ResourceState, State
from graphform.core.state.store import StateStore
from graphform.core.traceability import journal as jr

from .evaluator import Scope
from .plan import Plan, ResourceChange


@dataclass(frozen=True)
class ApplyResult:
    """Resultado agregado de um apply."""

    changes: Dict[str, ChangeResult] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)
    stopped_early: bool = False
    state_serial: int = 0

    def with_status(self, status: ChangeStatus) -> List[ChangeResult]:
        return [r for a, r in sorted(self.changes.items()) if r.status == status]

    @property
    def ok(self) -> bool:
        return not self.with_status(ChangeStatus.FAILED)

    def summary(self) -> Dict[str, int]:
        out = {"added": 0, "changed": 0, "destroyed": 0, "failed": 0, "skipped": 0}
        for r in self.changes.values():
            if r.status == ChangeStatus.FAILED:
                out["failed"] += 1
            elif r.status == ChangeStatus.SKIPPED:
                out["skipped"] += 1
            elif r.action == Action.CREATE:
                out["added"] += 1
            elif r.action == Action.UPDATE:
                out["changed"] += 1
            elif r.action == Action.REPLACE:
                out["added"] += 1
                out["destroyed"] += 1
            elif r.action == Action.DELETE:
                out["destroyed"] += 1
        return out


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Executor:
    """Aplica um `Plan` sobre o state, respeitando o grafo de dependências."""

    def __init__(
        self,
        *,
        graph: ResourceGraph,
        registry: ProviderRegistry,
        store: StateStore,
        ctx: RunContext,
        settings: EngineSettings,
    ):
        self.graph = graph
        self.registry = registry
        self.store = store
        self.ctx = ctx
        self.settings = settings
        self._lock = threading.Lock()
        self._state: State = State()
        self._dirty = False

    # ------------------------------------------------------------------
    # Guardrails
    # ------------------------------------------------------------------
    def _check_fresh(self, plan: Plan, state: State) -> None:
        if plan.state_serial != state.serial or plan.state_lineage != state.lineage:
            raise StalePlanError(
                message="O state mudou desde que o plano foi calculado",
                details={
                    "plan_serial": plan.state_serial,
                    "state_serial": state.serial,
                    "plan_lineage": plan.state_lineage,
                    "state_lineage": state.lineage,
                },
                hint="Execute um novo plan",
            )
        if plan.declaration_hash != self.graph.fingerprint:
            raise StalePlanError(
                message="As declarações mudaram desde que o plano foi calculado",
                details={"plan_hash": plan.declaration_hash, "current_hash": self.graph.fingerprint},
                hint="Execute um novo plan",
            )

    def _exception_to_error(self, exc: Exception, change: ResourceChange) -> GraphformErrorPayload:
        if isinstance(exc, GraphformException):
            payload = exc.to_payload()
            if payload.address is None:
                payload = GraphformErrorPayload(
                    type=payload.type,
                    message=payload.message,
                    details=payload.details,
                    hint=payload.hint,
                    address=change.address,
                )
            return payload
        return apply_resource_error(
            address=change.address,
            action=change.action.value,
            exc_type=exc.__class__.__name__,
            exc_message=str(exc) or None,
        )

    # ------------------------------------------------------------------
    # State helpers (chamados sob self._lock)
    # ------------------------------------------------------------------
    def _persist(self) -> None:
        self.store.save(self._state)

    def _record_resource(self, change: ResourceChange, properties: Dict[str, Any], attributes: Dict[str, Any]) -> None:
        dependencies = (
            self.graph.resource_dependencies(change.address) if change.address in self.graph else list(change.dependencies)
        )
        self._state.resources[change.address] = ResourceState(
            address=change.address,
            type=change.type,
            provider=change.provider,
            id=str(attributes["id"]),
            properties=deepcopy(properties),
            attributes=deepcopy(attributes),
            dependencies=list(dependencies),
        )
        self._persist()

    def _forget_resource(self, address: str) -> None:
        if self._state.resources.pop(address, None) is not None:
            self._persist()

    # ------------------------------------------------------------------
    # Journal / log
    # ------------------------------------------------------------------
    def _journal(self, fn, **kwargs: Any) -> None:
        if self.ctx.journal is None:
            return
        with self._lock:
            fn(self.ctx.journal, **kwargs)

    def _skipped(self, change: ResourceChange, reason: str) -> ChangeResult:
        self.ctx.log(address=change.address, level="WARNING", message=reason, action=change.action.value)
        self._journal(jr.change_skipped, address=change.address, action=change.action.value, ts=_now(), reason=reason)
        return ChangeResult(address=change.address, action=change.action, status=ChangeStatus.SKIPPED, summary=reason)

    # ------------------------------------------------------------------
    # Handler calls
    # ------------------------------------------------------------------
    @staticmethod
    def _check_attributes(change: ResourceChange, attributes: Any) -> Dict[str, Any]:
        if not isinstance(attributes, dict) or not isinstance(attributes.get("id"), str) or not attributes["id"]:
            raise EngineExecutionError(
                message=f"Handler de '{change.type}' retornou atributos sem 'id'",
                details={"type": change.type, "received": type(attributes).__name__},
                hint="Handlers devem retornar dict com 'id' string não vazia",
                address=change.address,
            )
        return attributes

    def _prior_attributes(self, change: ResourceChange) -> Dict[str, Any]:
        if change.prior_attributes is not None:
            return deepcopy(change.prior_attributes)
        with self._lock:
            rs = self._state.resources.get(change.address)
        return deepcopy(rs.attributes) if rs is not None else {}

    def _apply_change(self, change: ResourceChange, properties: Optional[Dict[str, Any]]) -> Tuple[ChangeResult, Optional[Dict[str, Any]]]:
        handler = self.registry.get(change.type)
        action = change.action.value
        started = _now()
        self.ctx.log(address=change.address, level="INFO", message=f"{action} started", action=action)
        self._journal(jr.change_started, address=change.address, action=action, ts=started)

        attributes: Optional[Dict[str, Any]] = None
        try:
            if properties is not None and contains_unknown(properties):
                raise EngineExecutionError(
                    message=f"Valores ainda desconhecidos ao aplicar {change.address}",
                    details={"action": action},
                )

            if change.action == Action.CREATE:
                attributes = self._check_attributes(change, handler.create(deepcopy(properties), self.ctx))
                with self._lock:
                    self._record_resource(change, properties, attributes)

            elif change.action == Action.UPDATE:
                prior = self._prior_attributes(change)
                attributes = self._check_attributes(change, handler.update(prior, deepcopy(properties), self.ctx))
                with self._lock:
                    self._record_resource(change, properties, attributes)

            elif change.action == Action.REPLACE:
                prior = self._prior_attributes(change)
                if change.create_before_destroy:
                    attributes = self._check_attributes(change, handler.create(deepcopy(properties), self.ctx))
                    with self._lock:
                        self._record_resource(change, properties, attributes)
                    handler.delete(prior, self.ctx)
                else:
                    handler.delete(prior, self.ctx)
                    with self._lock:
                        self._forget_resource(change.address)
                    attributes = self._check_attributes(change, handler.create(deepcopy(properties), self.ctx))
                    with self._lock:
                        self._record_resource(change, properties, attributes)

            elif change.action == Action.DELETE:
                handler.delete(self._prior_attributes(change), self.ctx)
                with self._lock:
                    self._forget_resource(change.address)

        except Exception as e:
            error = self._exception_to_error(e, change).to_dict()
            finished = _now()
            self.ctx.log(address=change.address, level="ERROR", message=error["message"], action=action)
            self._journal(jr.change_failed, address=change.address, ts=finished, error=error)
            return (
                ChangeResult(
                    address=change.address,
                    action=change.action,
                    status=ChangeStatus.FAILED,
                    summary=error["message"],
                    error=error,
                    duration_ms=jr.ms_between(started, finished),
                ),
                None,
            )

        finished = _now()
        summary = f"{action} complete"
        self.ctx.log(address=change.address, level="INFO", message=summary, action=action)
        self._journal(
            jr.change_finished,
            address=change.address,
            ts=finished,
            result={"status": ChangeStatus.SUCCESS.value, "summary": summary},
        )
        return (
            ChangeResult(
                address=change.address,
                action=change.action,
                status=ChangeStatus.SUCCESS,
                summary=summary,
                duration_ms=jr.ms_between(started, finished),
                payload={"id": attributes["id"]} if attributes else {},
            ),
            attributes,
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def _desired_properties(self, node: GraphNode, change: ResourceChange, scope: Scope) -> Dict[str, Any]:
        properties = scope.evaluate_node(node)
        res = node.resource
        if res is not None and change.before is not None:
            for key in res.lifecycle.ignore_changes:
                if key in change.before:
                    properties[key] = deepcopy(change.before[key])
        return properties

    def _record_noop(self, node: GraphNode, change: ResourceChange) -> Dict[str, Any]:
        with self._lock:
            rs = self._state.resources.get(node.address)
            if rs is None:
                return dict(change.prior_attributes or {})
            attributes = dict(change.prior_attributes or rs.attributes)
            dependencies = self.graph.resource_dependencies(node.address)
            if attributes != rs.attributes or dependencies != rs.dependencies:
                rs.attributes = attributes
                rs.dependencies = dependencies
                self._dirty = True
            return dict(attributes)

    def _run_level(
        self,
        jobs: List[Tuple[ResourceChange, Dict[str, Any]]],
    ) -> List[Tuple[ResourceChange, ChangeResult, Optional[Dict[str, Any]]]]:
        if self.settings.parallelism > 1 and len(jobs) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.parallelism) as pool:
                futures = [(change, pool.submit(self._apply_change, change, props)) for change, props in jobs]
                return [(change,) + fut.result() for change, fut in futures]

        out = []
        for change, props in jobs:
            result, attrs = self._apply_change(change, props)
            out.append((change, result, attrs))
            if result.status == ChangeStatus.FAILED and self.settings.fail_fast:
                break
        return out

    def _apply_graph(self, plan: Plan, scope: Scope, results: Dict[str, ChangeResult]) -> bool:
        """Fase create/update/replace. Retorna True quando a run deve parar."""
        changes = {c.address: c for c in plan.changes}
        blocked: Set[str] = set()

        for level in self.graph.levels():
            jobs: List[Tuple[ResourceChange, Dict[str, Any]]] = []
            for node in level:
                change = changes.get(node.address)
                if any(d in blocked for d in node.depends_on):
                    blocked.add(node.address)
                    if change is not None and change.action != Action.NOOP:
                        results[node.address] = self._skipped(change, "skipped due to failed dependency")
                    continue

                if node.kind != NodeKind.RESOURCE:
                    scope.set(node.address, scope.evaluate_node(node))
                    continue

                if change is None:
                    raise StalePlanError(
                        message=f"{node.address} não consta no plano",
                        details={"address": node.address},
                        hint="Execute um novo plan",
                    )

                if change.action == Action.NOOP:
                    scope.set(node.address, self._record_noop(node, change))
                    continue

                try:
                    props = self._desired_properties(node, change, scope)
                except GraphformException as e:
                    error = self._exception_to_error(e, change).to_dict()
                    results[node.address] = ChangeResult(
                        address=node.address,
                        action=change.action,
                        status=ChangeStatus.FAILED,
                        summary=error["message"],
                        error=error,
                    )
                    blocked.add(node.address)
                    if self.settings.fail_fast:
                        return True
                    continue
                jobs.append((change, props))

            for change, result, attrs in self._run_level(jobs):
                results[change.address] = result
                if result.status == ChangeStatus.FAILED:
                    blocked.add(change.address)
                else:
                    scope.set(change.address, attrs)

            if self.settings.fail_fast and any(r.status == ChangeStatus.FAILED for r in results.values()):
                return True
        return False

    def _apply_deletes(self, plan: Plan, results: Dict[str, ChangeResult]) -> bool:
        for change in plan.changes:
            if change.action != Action.DELETE:
                continue
            with self._lock:
                dependents = sorted(
                    a for a, rs in self._state.resources.items()
                    if a != change.address and change.address in rs.dependencies
                )
            if dependents:
                results[change.address] = self._skipped(
                    change, f"skipped: still referenced by {', '.join(dependents)}"
                )
                continue
            result, _ = self._apply_change(change, None)
            results[change.address] = result
            if result.status == ChangeStatus.FAILED and self.settings.fail_fast:
                return True
        return False

    def _store_outputs(self, plan: Plan, scope: Scope) -> Dict[str, Any]:
        if plan.destroy:
            if self._state.outputs:
                self._state.outputs = {}
                self._dirty = True
            return {}
        outputs: Dict[str, Dict[str, Any]] = {}
        for node in self.graph.root_outputs():
            if node.address in scope.values:
                outputs[node.name] = {
                    "value": scope.get(node.address),
                    "sensitive": bool(node.output.sensitive) if node.output else False,
                }
            elif node.name in self._state.outputs:
                outputs[node.name] = self._state.outputs[node.name]
        if outputs != self._state.outputs:
            self._state.outputs = outputs
            self._dirty = True
        return {k: v["value"] for k, v in outputs.items()}

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def apply(self, plan: Plan) -> ApplyResult:
        lock = self.store.lock(self.ctx.run_id) if self.settings.state_lock else nullcontext()
        with lock:
            self._state = self.store.load()
            self._check_fresh(plan, self._state)
            self._dirty = False

            results: Dict[str, ChangeResult] = {}
            scope = Scope(plan.variables)

            stopped = False
            if not plan.destroy:
                stopped = self._apply_graph(plan, scope, results)
            if not stopped:
                stopped = self._apply_deletes(plan, results)

            outputs = self._store_outputs(plan, scope)
            with self._lock:
                if self._dirty:
                    self._persist()

            result = ApplyResult(
                changes=results,
                outputs=outputs,
                stopped_early=stopped,
                state_serial=self._state.serial,
            )
            self._journal(jr.finish_journal, ts=_now(), summary=result.summary())
            return result
