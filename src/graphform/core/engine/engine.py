# src/graphform/core/engine/engine.py
"""
Fachada do engine: declarações + registro de handlers + state + settings.

Uso típico:

    engine = Engine.from_path("stack.yaml", registry=default_registry())
    plan = engine.plan(variables={"env": "dev"})
    result = engine.apply(plan)

Cada chamada a `plan`/`apply` usa um `RunContext` novo, com os blocos
`providers` do stack raiz como configuração de providers.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from graphform import __version__
from graphform.core.config.loader import EngineSettings, resolve_settings
from graphform.core.declaration.loader import load_stack
from graphform.core.declaration.schema import StackDocument
from graphform.core.graph.builder import ResourceGraph, build_graph
from graphform.core.resource.context import RunContext
from graphform.core.resource.registry import ProviderRegistry
from graphform.core.state.models import State
from graphform.core.state.store import StateStore
from graphform.core.traceability.journal import create_journal, save_journal

from .executor import ApplyResult, Executor
from .plan import Plan, PlanBuilder


class Engine:
    """Engine canônico do Graphform (plan + apply)."""

    def __init__(
        self,
        *,
        stack: StackDocument,
        registry: ProviderRegistry,
        settings: Optional[EngineSettings] = None,
        store: Optional[StateStore] = None,
    ):
        self.stack = stack
        self.registry = registry
        self.settings = settings or resolve_settings()
        self.graph: ResourceGraph = build_graph(stack)
        self.store = store or StateStore(self.settings.state_path, backup=self.settings.state_backup)
        self.last_context: Optional[RunContext] = None

    @classmethod
    def from_path(
        cls,
        path: Union[str, Path],
        *,
        registry: ProviderRegistry,
        settings: Optional[EngineSettings] = None,
        sources: Optional[Mapping[str, Any]] = None,
    ) -> "Engine":
        return cls(stack=load_stack(path, sources=sources), registry=registry, settings=settings)

    def new_context(self, *, operation: str) -> RunContext:
        ctx = RunContext(
            run_id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc),
            providers={k: dict(v or {}) for k, v in self.graph.providers.items()},
            meta={"operation": operation, "engine_version": __version__},
        )
        self.last_context = ctx
        return ctx

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def state(self) -> State:
        return self.store.load()

    def plan(
        self,
        *,
        variables: Optional[Dict[str, Any]] = None,
        destroy: bool = False,
        refresh: Optional[bool] = None,
    ) -> Plan:
        ctx = self.new_context(operation="destroy-plan" if destroy else "plan")
        builder = PlanBuilder(
            graph=self.graph,
            registry=self.registry,
            ctx=ctx,
            refresh=self.settings.refresh if refresh is None else refresh,
        )
        return builder.build(self.store.load(), variables=variables, destroy=destroy)

    def apply(self, plan: Plan) -> ApplyResult:
        ctx = self.new_context(operation="destroy" if plan.destroy else "apply")
        started = ctx.created_at
        if self.settings.journal_dir:
            ctx.journal = create_journal(
                run_id=ctx.run_id,
                started_at=started,
                engine_version=__version__,
                config_hash=self.settings.config_hash,
                declaration_hash=self.graph.fingerprint,
                state_lineage=plan.state_lineage,
            )

        executor = Executor(
            graph=self.graph,
            registry=self.registry,
            store=self.store,
            ctx=ctx,
            settings=self.settings,
        )
        try:
            return executor.apply(plan)
        finally:
            if ctx.journal is not None:
                save_journal(ctx.journal, Path(self.settings.journal_dir) / f"{ctx.run_id}.json")

    def destroy(self, *, variables: Optional[Dict[str, Any]] = None) -> ApplyResult:
        return self.apply(self.plan(variables=variables, destroy=True))

    def outputs(self) -> Dict[str, Any]:
        return self.store.load().output_values()
