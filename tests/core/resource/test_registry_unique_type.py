# tests/core/resource/test_registry_unique_type.py
"""
Testes de unicidade de tipos no ProviderRegistry.

Os testes asseguram que:
- handlers com `type_name` distintos são aceitos, na ordem de registro
- um segundo handler para o mesmo tipo é rejeitado explicitamente
- a tentativa de duplicidade não corrompe o registro
- consultar um tipo sem handler levanta UnknownResourceTypeError
"""
import pytest

try:
    from graphform.core.exceptions import UnknownResourceTypeError
    from graphform.core.resource.registry import DuplicateResourceTypeError, ProviderRegistry
except Exception as e:  # noqa: BLE001
    ProviderRegistry = None
    DuplicateResourceTypeError = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None

from tests.fixtures.handlers.memory import MemoryHandler


def _require_imports():
    if ProviderRegistry is None:
        pytest.fail(f"Falha ao importar ProviderRegistry: {_IMPORT_ERR}")


def test_registry_accepts_unique_types():
    _require_imports()
    reg = ProviderRegistry()
    reg.add(MemoryHandler("mem_object"))
    reg.add(MemoryHandler("mem_bucket"))

    assert reg.types() == ["mem_object", "mem_bucket"]
    assert [h.type_name for h in reg.list()] == ["mem_object", "mem_bucket"]
    assert reg.has("mem_bucket")
    assert reg.get("mem_object").type_name == "mem_object"


def test_registry_rejects_duplicate_type():
    _require_imports()
    reg = ProviderRegistry()
    first = MemoryHandler("mem_object")
    reg.add(first)

    with pytest.raises(DuplicateResourceTypeError):
        reg.add(MemoryHandler("mem_object"))

    assert reg.types() == ["mem_object"]
    assert reg.get("mem_object") is first


def test_registry_rejects_empty_type_name():
    _require_imports()
    with pytest.raises(ValueError):
        ProviderRegistry().add(MemoryHandler("  "))


def test_unknown_type_is_explicit():
    _require_imports()
    reg = ProviderRegistry()
    reg.add(MemoryHandler("mem_object"))

    with pytest.raises(UnknownResourceTypeError) as exc:
        reg.get("cloud_bucket")
    assert exc.value.details == {"type": "cloud_bucket", "registered": ["mem_object"]}
    assert not reg.has("cloud_bucket")
