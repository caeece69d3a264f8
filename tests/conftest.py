# tests/conftest.py
"""
Fixtures compartilhados para testes do Graphform.

Este módulo define fixtures reutilizáveis que fornecem:
- configurações mínimas e determinísticas
- contexto de execução controlado (RunContext)
- um handler em memória (sem efeitos fora do processo)
- uma fábrica de Engine com state isolado em `tmp_path`

Decisões arquiteturais:
    - Fixtures são mantidas simples e explícitas
    - Stacks de teste são dicts em memória (parse_stack), não arquivos
    - Imports do core são realizados de forma lazy para
      melhorar a clareza de erros durante falhas

Invariantes:
    - Nenhuma fixture chama handlers
    - Todo state é gravado sob `tmp_path`
"""

from datetime import datetime, timezone

import pytest

from tests.fixtures.handlers.memory import MemoryHandler


@pytest.fixture
def project_like_config_defaults_yaml() -> str:
    """YAML típico de `graphform.defaults.yaml` (base do deep-merge)."""
    return """\
engine:
  fail_fast: true
  parallelism: 1
state:
  path: graphform.state.json
  backup: true
"""


@pytest.fixture
def project_like_config_local_yaml() -> str:
    """YAML típico de override local."""
    return """\
engine:
  parallelism: 4
state:
  backup: false
"""


@pytest.fixture
def dummy_ctx():
    """
    RunContext determinístico para testes de handlers, registry e journal.

    `run_id` e `created_at` são fixos; a configuração do provider `local`
    fica vazia (handlers usam o diretório corrente).
    """
    from graphform.core.resource.context import RunContext

    return RunContext(
        run_id="run-test-001",
        created_at=datetime(2026, 1, 16, 0, 0, 0, tzinfo=timezone.utc),
        meta={"source": "pytest"},
    )


@pytest.fixture
def memory_handler() -> MemoryHandler:
    return MemoryHandler()


@pytest.fixture
def registry(memory_handler):
    from graphform.core.resource.registry import ProviderRegistry

    reg = ProviderRegistry()
    reg.add(memory_handler)
    return reg


@pytest.fixture
def make_engine(tmp_path, registry):
    """
    Fábrica de Engine: `make_engine(doc, config=None, sources=None)`.

    Chamadas sucessivas compartilham o mesmo registry (e portanto os
    mesmos objetos "remotos") e o mesmo arquivo de state.
    """
    from graphform.core.config.loader import resolve_settings
    from graphform.core.config.merge import deep_merge
    from graphform.core.declaration.loader import parse_stack
    from graphform.core.engine.engine import Engine

    state_path = tmp_path / "graphform.state.json"

    def _make(doc, *, config=None, sources=None):
        settings = resolve_settings(deep_merge({"state": {"path": str(state_path)}}, dict(config or {})))
        return Engine(stack=parse_stack(doc, sources=sources), registry=registry, settings=settings)

    return _make


@pytest.fixture
def chain_stack() -> dict:
    """
    Stack mínimo com uma cadeia a -> b e um output.

    `mem_object.b` referencia o atributo computado `arn` de `a`, conhecido
    apenas após o apply.
    """
    return {
        "variables": {"prefix": {"default": "app"}},
        "locals": {"a_name": "${var.prefix}-a"},
        "resources": {
            "mem_object": {
                "a": {"name": "${local.a_name}", "size": 1},
                "b": {"name": "b", "parent": "${mem_object.a.arn}"},
            }
        },
        "outputs": {
            "b_arn": {"value": "${mem_object.b.arn}"},
            "a_name": {"value": "${mem_object.a.name}", "sensitive": True},
        },
    }


@pytest.fixture
def DummyNode():
    """
    Classe mínima duck-typed aceita pelo resolvedor de dependências
    (`id` + `depends_on`), usada nos testes do planner.
    """

    class _DummyNode:
        def __init__(self, node_id: str, depends_on=None):
            self.id = node_id
            self.depends_on = list(depends_on or [])

        def __repr__(self) -> str:
            return f"DummyNode({self.id!r})"

    return _DummyNode
