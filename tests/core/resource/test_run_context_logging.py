# tests/core/resource/test_run_context_logging.py
"""
Testes de logging, warnings e configuração de providers no RunContext.

Invariantes:
    - Todo evento carrega run_id, address, level, message e timestamp
    - Campos extras são preservados no evento
    - Warnings são agrupados por endereço e também viram eventos WARNING
    - `provider_config` devolve uma cópia (handlers não alteram o contexto)
"""
import pytest

try:
    from graphform.core.resource.context import RunContext
except Exception as e:  # noqa: BLE001
    RunContext = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def test_log_records_structured_event(dummy_ctx):
    if RunContext is None:
        pytest.fail(f"Falha ao importar RunContext: {_IMPORT_ERR}")

    dummy_ctx.log(address="mem_object.a", level="INFO", message="create started", action="create")

    assert len(dummy_ctx.events) == 1
    ev = dummy_ctx.events[0]
    assert ev["run_id"] == "run-test-001"
    assert ev["address"] == "mem_object.a"
    assert ev["level"] == "INFO"
    assert ev["message"] == "create started"
    assert ev["action"] == "create"
    assert "timestamp" in ev


def test_warnings_grouped_by_address(dummy_ctx):
    if RunContext is None:
        pytest.fail(f"Falha ao importar RunContext: {_IMPORT_ERR}")

    dummy_ctx.add_warning(address="mem_object.b", message="second")
    dummy_ctx.add_warning(address="mem_object.a", message="first")
    dummy_ctx.add_warning(address="mem_object.b", message="third")

    assert dummy_ctx.warnings == {"mem_object.b": ["second", "third"], "mem_object.a": ["first"]}
    assert dummy_ctx.all_warnings() == [
        "mem_object.a: first",
        "mem_object.b: second",
        "mem_object.b: third",
    ]
    assert [e["level"] for e in dummy_ctx.events] == ["WARNING"] * 3


def test_provider_config_is_a_copy(dummy_ctx):
    if RunContext is None:
        pytest.fail(f"Falha ao importar RunContext: {_IMPORT_ERR}")

    dummy_ctx.providers["local"] = {"root_dir": "/tmp/x"}
    cfg = dummy_ctx.provider_config("local")
    cfg["root_dir"] = "changed"

    assert dummy_ctx.provider_config("local") == {"root_dir": "/tmp/x"}
    assert dummy_ctx.provider_config("random") == {}
