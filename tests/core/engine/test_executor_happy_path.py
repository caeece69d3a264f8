# tests/core/engine/test_executor_happy_path.py
"""
Testes do caminho feliz do executor (apply).

Os testes asseguram que:
- recursos são criados em ordem de dependência
- valores computados (`arn`) chegam aos dependentes no apply
- o state registra propriedades, atributos e dependências
- outputs raiz são avaliados e persistidos
- um apply sem mudanças não reescreve o state
"""

import pytest

try:
    from graphform.core.engine.render import render_apply_result
    from graphform.core.resource.types import Action, ChangeStatus
except Exception as e:
    ChangeStatus = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Falha ao importar executor: {_IMPORT_ERR}")


def test_apply_creates_in_dependency_order(make_engine, chain_stack, memory_handler):
    _require_imports()
    engine = make_engine(chain_stack)
    result = engine.apply(engine.plan())

    assert result.ok
    assert not result.stopped_early
    assert memory_handler.calls == [("create", "app-a"), ("create", "b")]
    assert result.changes["mem_object.a"].status == ChangeStatus.SUCCESS
    assert result.changes["mem_object.b"].action == Action.CREATE
    assert result.summary() == {"added": 2, "changed": 0, "destroyed": 0, "failed": 0, "skipped": 0}


def test_apply_records_state_and_outputs(make_engine, chain_stack):
    _require_imports()
    engine = make_engine(chain_stack)
    result = engine.apply(engine.plan())

    state = engine.state()
    a = state.resources["mem_object.a"]
    b = state.resources["mem_object.b"]

    assert a.properties == {"name": "app-a", "size": 1}
    assert a.attributes["arn"] == f"mem://mem_object/{a.id}"
    assert a.provider == "mem"
    assert b.properties["parent"] == a.attributes["arn"]
    assert b.dependencies == ["mem_object.a"]
    assert a.dependencies == []

    assert state.outputs["b_arn"] == {"value": b.attributes["arn"], "sensitive": False}
    assert state.outputs["a_name"] == {"value": "app-a", "sensitive": True}
    assert result.outputs == {"b_arn": b.attributes["arn"], "a_name": "app-a"}
    assert engine.outputs() == result.outputs

    # uma escrita por recurso + uma para os outputs
    assert state.serial == 3
    assert result.state_serial == 3
    assert state.lineage


def test_noop_apply_does_not_touch_state(make_engine, chain_stack, memory_handler):
    _require_imports()
    engine = make_engine(chain_stack)
    engine.apply(engine.plan())
    before = engine.state()

    result = engine.apply(engine.plan())

    assert result.changes == {}
    assert result.ok
    assert engine.state().serial == before.serial
    assert len(memory_handler.calls) == 2


def test_update_applies_in_place(make_engine, chain_stack, memory_handler):
    _require_imports()
    engine = make_engine(chain_stack)
    engine.apply(engine.plan())
    a_id = engine.state().resources["mem_object.a"].id

    chain_stack["resources"]["mem_object"]["a"]["size"] = 3
    engine = make_engine(chain_stack)
    result = engine.apply(engine.plan())

    assert result.ok
    assert result.changes["mem_object.a"].action == Action.UPDATE
    state = engine.state()
    assert state.resources["mem_object.a"].id == a_id
    assert state.resources["mem_object.a"].properties["size"] == 3
    # arn não muda no update: b é reaplicado com o mesmo valor
    assert state.resources["mem_object.b"].properties["parent"] == f"mem://mem_object/{a_id}"
    assert not engine.plan().has_changes()


def test_replace_propagates_new_computed_values(make_engine, chain_stack, memory_handler):
    _require_imports()
    engine = make_engine(chain_stack)
    engine.apply(engine.plan())
    old_id = engine.state().resources["mem_object.a"].id

    engine = make_engine(chain_stack)
    result = engine.apply(engine.plan(variables={"prefix": "svc"}))

    assert result.ok
    assert result.changes["mem_object.a"].action == Action.REPLACE
    state = engine.state()
    new_a = state.resources["mem_object.a"]
    assert new_a.id != old_id
    assert old_id not in memory_handler.objects
    assert state.resources["mem_object.b"].properties["parent"] == new_a.attributes["arn"]
    assert memory_handler.calls[2:4] == [("delete", "app-a"), ("create", "svc-a")]


def test_create_before_destroy_order(make_engine, memory_handler):
    _require_imports()
    doc = {
        "resources": {
            "mem_object": {
                "a": {"name": "a", "lifecycle": {"create_before_destroy": True}},
            }
        }
    }
    engine = make_engine(doc)
    engine.apply(engine.plan())

    doc["resources"]["mem_object"]["a"]["name"] = "a2"
    engine = make_engine(doc)
    result = engine.apply(engine.plan())

    assert result.ok
    assert memory_handler.calls[1:] == [("create", "a2"), ("delete", "a")]
    assert memory_handler.names() == ["a2"]
    assert engine.state().resources["mem_object.a"].properties == {"name": "a2"}


def test_render_apply_result(make_engine, chain_stack):
    _require_imports()
    engine = make_engine(chain_stack)
    result = engine.apply(engine.plan())
    text = render_apply_result(result, sensitive={"a_name": True})

    assert "mem_object.a: create complete" in text
    assert "Apply complete! Resources: 2 added, 0 changed, 0 destroyed." in text
    assert "  a_name = (sensitive)" in text
    assert "  b_arn = \"mem://mem_object/" in text
