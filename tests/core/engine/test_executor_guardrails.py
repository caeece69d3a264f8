# tests/core/engine/test_executor_guardrails.py
"""
Testes dos guardrails do apply: plano obsoleto e lock do state.

Invariantes:
    - Um plano só é aplicado sobre o mesmo serial/lineage em que foi calculado
    - Um plano só é aplicado sobre as mesmas declarações
    - Com `state.lock: true`, um lock existente impede o apply
    - O lock é liberado ao fim do apply, mesmo com falhas
"""

import pytest

try:
    from graphform.core.exceptions import StalePlanError, StateLockError
    from graphform.core.state.store import StateStore
except Exception as e:
    StateStore = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Falha ao importar guardrails: {_IMPORT_ERR}")


def test_plan_is_stale_after_another_apply(make_engine, chain_stack):
    _require_imports()
    engine = make_engine(chain_stack)
    first = engine.plan()
    second = engine.plan()
    engine.apply(first)

    with pytest.raises(StalePlanError) as exc:
        engine.apply(second)
    assert exc.value.details["plan_serial"] == 0
    assert exc.value.details["state_serial"] == engine.state().serial


def test_plan_is_stale_after_declarations_change(make_engine, chain_stack, memory_handler):
    _require_imports()
    plan = make_engine(chain_stack).plan()
    chain_stack["resources"]["mem_object"]["c"] = {"name": "c"}

    with pytest.raises(StalePlanError) as exc:
        make_engine(chain_stack).apply(plan)
    assert "plan_hash" in exc.value.details
    assert memory_handler.calls == []


def test_plan_from_other_lineage_is_stale(make_engine, chain_stack, tmp_path):
    _require_imports()
    engine = make_engine(chain_stack)
    engine.apply(engine.plan())
    plan = engine.plan()

    # state recriado por outro processo: mesmo serial, outra lineage
    state = engine.state()
    state.lineage = "other-lineage"
    state.serial -= 1
    StateStore(engine.store.path, backup=False).save(state)

    with pytest.raises(StalePlanError):
        engine.apply(plan)


def test_apply_fails_while_state_is_locked(make_engine, chain_stack, memory_handler):
    _require_imports()
    engine = make_engine(chain_stack)
    plan = engine.plan()

    with engine.store.lock("someone-else"):
        with pytest.raises(StateLockError) as exc:
            engine.apply(plan)
        assert exc.value.details["holder"]["run_id"] == "someone-else"

    assert memory_handler.calls == []
    assert engine.apply(plan).ok
    assert not engine.store.lock_path.exists()


def test_lock_can_be_disabled(make_engine, chain_stack):
    _require_imports()
    engine = make_engine(chain_stack, config={"state": {"lock": False}})
    plan = engine.plan()

    with engine.store.lock("someone-else"):
        assert engine.apply(plan).ok


def test_lock_is_released_after_failures(make_engine):
    _require_imports()
    engine = make_engine({"resources": {"mem_object": {"a": {"name": "a", "fail": True}}}})
    result = engine.apply(engine.plan())

    assert not result.ok
    assert engine.store.lock_info() is None
