# tests/core/engine/test_plan_diff.py
"""
Testes do cálculo de plano (diff entre desejado e observado).

Os testes asseguram que:
- recursos sem state viram create, com atributos computados desconhecidos
- um segundo plan após o apply é inteiramente no-op
- alteração comum vira update; alteração em chave force_new vira replace
- `ignore_changes` e `prevent_destroy` são respeitados
- drift e objetos removidos por fora são detectados no refresh
- recursos removidos das declarações viram delete
- o plano sobrevive a uma ida e volta por JSON (incluindo UNKNOWN)
"""

import pytest

try:
    from graphform.core.declaration.expressions import UNKNOWN
    from graphform.core.engine.plan import Plan, load_plan, save_plan
    from graphform.core.engine.render import render_plan
    from graphform.core.exceptions import (
        DeclarationError,
        PreventDestroyError,
        ResourceValidationError,
        UnknownResourceTypeError,
        VariableMissingError,
    )
    from graphform.core.resource.types import Action
except Exception as e:
    UNKNOWN = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Falha ao importar plano/render: {_IMPORT_ERR}")


def _two(a_props=None, b_props=None, a_meta=None):
    a = dict(a_props or {"name": "a", "size": 1})
    a.update(a_meta or {})
    return {
        "resources": {
            "mem_object": {
                "a": a,
                "b": dict(b_props or {"name": "b", "size": 2}),
            }
        }
    }


def _applied(make_engine, doc, **kwargs):
    engine = make_engine(doc, **kwargs)
    result = engine.apply(engine.plan())
    assert result.ok
    return engine


def test_first_plan_creates_everything(make_engine, chain_stack):
    _require_imports()
    plan = make_engine(chain_stack).plan()

    assert [c.address for c in plan.changes] == ["mem_object.a", "mem_object.b"]
    assert all(c.action == Action.CREATE for c in plan.changes)
    assert plan.summary() == {"add": 2, "change": 0, "destroy": 0}

    a = plan.change("mem_object.a")
    assert a.after == {"name": "app-a", "size": 1}
    assert a.before is None

    b = plan.change("mem_object.b")
    assert b.after["parent"] is UNKNOWN
    assert b.dependencies == ("mem_object.a",)

    assert plan.outputs["b_arn"]["value"] is UNKNOWN
    assert plan.outputs["a_name"] == {"value": "app-a", "sensitive": True}
    assert plan.state_serial == 0
    assert plan.state_lineage == ""


def test_variables_override_defaults(make_engine, chain_stack):
    _require_imports()
    plan = make_engine(chain_stack).plan(variables={"prefix": "svc"})
    assert plan.change("mem_object.a").after["name"] == "svc-a"
    assert plan.variables == {"prefix": "svc"}


def test_second_plan_is_noop(make_engine, chain_stack):
    _require_imports()
    engine = _applied(make_engine, chain_stack)
    plan = engine.plan()

    assert not plan.has_changes()
    assert [c.action for c in plan.changes] == [Action.NOOP, Action.NOOP]
    assert plan.outputs["b_arn"]["value"].startswith("mem://mem_object/")
    assert plan.state_serial == engine.state().serial
    assert render_plan(plan).startswith("No changes.")


def test_plain_change_is_update(make_engine):
    _require_imports()
    _applied(make_engine, _two())
    plan = make_engine(_two(a_props={"name": "a", "size": 5})).plan()

    a = plan.change("mem_object.a")
    assert a.action == Action.UPDATE
    assert a.changed == ("size",)
    assert a.before == {"name": "a", "size": 1}
    assert a.after == {"name": "a", "size": 5}
    assert plan.change("mem_object.b").action == Action.NOOP
    assert plan.summary() == {"add": 0, "change": 1, "destroy": 0}


def test_force_new_change_is_replace(make_engine):
    _require_imports()
    _applied(make_engine, _two())
    plan = make_engine(_two(a_props={"name": "a2", "size": 1})).plan()

    a = plan.change("mem_object.a")
    assert a.action == Action.REPLACE
    assert a.requires_replace == ("name",)
    assert plan.summary() == {"add": 1, "change": 0, "destroy": 1}
    assert "# forces replacement" in render_plan(plan)


def test_update_marks_computed_references_unknown(make_engine, chain_stack):
    _require_imports()
    _applied(make_engine, chain_stack)
    chain_stack["resources"]["mem_object"]["a"]["size"] = 2
    plan = make_engine(chain_stack).plan()

    assert plan.change("mem_object.a").action == Action.UPDATE
    b = plan.change("mem_object.b")
    assert b.action == Action.UPDATE
    assert b.after["parent"] is UNKNOWN


def test_ignore_changes_keeps_prior_value(make_engine):
    _require_imports()
    meta = {"lifecycle": {"ignore_changes": ["size"]}}
    _applied(make_engine, _two(a_meta=meta))
    plan = make_engine(_two(a_props={"name": "a", "size": 9}, a_meta=meta)).plan()

    a = plan.change("mem_object.a")
    assert a.action == Action.NOOP
    assert a.after["size"] == 1


def test_prevent_destroy_blocks_replace(make_engine):
    _require_imports()
    meta = {"lifecycle": {"prevent_destroy": True}}
    _applied(make_engine, _two(a_meta=meta))

    with pytest.raises(PreventDestroyError) as exc:
        make_engine(_two(a_props={"name": "other"}, a_meta=meta)).plan()
    assert exc.value.address == "mem_object.a"


def test_prevent_destroy_blocks_destroy_plan(make_engine):
    _require_imports()
    meta = {"lifecycle": {"prevent_destroy": True}}
    engine = _applied(make_engine, _two(a_meta=meta))

    with pytest.raises(PreventDestroyError):
        engine.plan(destroy=True)


def test_removed_declaration_becomes_delete(make_engine, memory_handler):
    _require_imports()
    _applied(make_engine, _two())
    doc = {"resources": {"mem_object": {"a": {"name": "a", "size": 1}}}}
    plan = make_engine(doc).plan()

    b = plan.change("mem_object.b")
    assert b.action == Action.DELETE
    assert b.reason == "no longer declared"
    assert b.before == {"name": "b", "size": 2}
    assert b.prior_attributes["id"].startswith("mem_object-")
    assert plan.summary() == {"add": 0, "change": 0, "destroy": 1}


def test_drift_is_detected_on_refresh(make_engine, memory_handler):
    _require_imports()
    engine = _applied(make_engine, _two())
    a_id = engine.state().resources["mem_object.a"].id
    memory_handler.objects[a_id]["size"] = 99

    plan = engine.plan()
    a = plan.change("mem_object.a")
    assert a.action == Action.UPDATE
    assert a.before["size"] == 99

    assert engine.plan(refresh=False).change("mem_object.a").action == Action.NOOP


def test_vanished_object_is_recreated_with_warning(make_engine, memory_handler):
    _require_imports()
    engine = _applied(make_engine, _two())
    a_id = engine.state().resources["mem_object.a"].id
    del memory_handler.objects[a_id]

    plan = engine.plan()
    assert plan.change("mem_object.a").action == Action.CREATE
    assert plan.change("mem_object.b").action == Action.NOOP
    assert any("mem_object.a" in w for w in plan.warnings)


def test_destroy_plan_orders_dependents_first(make_engine, chain_stack):
    _require_imports()
    engine = _applied(make_engine, chain_stack)
    plan = engine.plan(destroy=True)

    assert plan.destroy is True
    assert [c.address for c in plan.changes] == ["mem_object.b", "mem_object.a"]
    assert all(c.action == Action.DELETE for c in plan.changes)
    assert plan.outputs == {}


def test_validation_errors_abort_plan(make_engine):
    _require_imports()
    with pytest.raises(ResourceValidationError) as exc:
        make_engine(_two(a_props={"name": "a", "bad_flag": True})).plan()
    assert exc.value.address == "mem_object.a"
    assert "bad_flag is not allowed" in exc.value.details["errors"]


def test_unknown_resource_type_aborts_plan(make_engine):
    _require_imports()
    with pytest.raises(UnknownResourceTypeError):
        make_engine({"resources": {"cloud_bucket": {"x": {"name": "x"}}}}).plan()


def test_undeclared_variable_is_rejected(make_engine, chain_stack):
    _require_imports()
    with pytest.raises(DeclarationError):
        make_engine(chain_stack).plan(variables={"nope": 1})


def test_missing_required_variable(make_engine):
    _require_imports()
    doc = {
        "variables": {"name": {}},
        "resources": {"mem_object": {"a": {"name": "${var.name}"}}},
    }
    with pytest.raises(VariableMissingError):
        make_engine(doc).plan()
    assert make_engine(doc).plan(variables={"name": "x"}).change("mem_object.a").after == {"name": "x"}


def test_plan_round_trip_keeps_unknowns(make_engine, chain_stack, tmp_path):
    _require_imports()
    plan = make_engine(chain_stack).plan()
    path = tmp_path / "plans" / "plan.json"
    save_plan(plan, path)

    assert '"$unknown": true' in path.read_text(encoding="utf-8")

    loaded = load_plan(path)
    assert isinstance(loaded, Plan)
    assert loaded.change("mem_object.b").after["parent"] is UNKNOWN
    assert loaded.outputs["b_arn"]["value"] is UNKNOWN
    assert loaded.declaration_hash == plan.declaration_hash
    assert loaded.to_dict() == plan.to_dict()


def test_render_plan_lists_actions(make_engine, chain_stack):
    _require_imports()
    text = render_plan(make_engine(chain_stack).plan())

    assert "Graphform will perform the following actions:" in text
    assert "  # mem_object.a will be created" in text
    assert "  + mem_object.b" in text
    assert "      + parent = (known after apply)" in text
    assert "Plan: 2 to add, 0 to change, 0 to destroy." in text
    assert "  a_name = (sensitive)" in text
