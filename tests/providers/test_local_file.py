# tests/providers/test_local_file.py
"""
Testes do handler `local_file`.

Os testes asseguram que:
- create grava o arquivo sob `providers.local.root_dir` com a permissão pedida
- o `id` é o SHA-1 do conteúdo
- read detecta edição, troca de permissão e remoção do arquivo
- delete é idempotente e não remove um arquivo já substituído
- replace com create_before_destroy mantém o arquivo novo
"""

import hashlib
import os
import stat

import pytest

try:
    from graphform.providers.local import LocalFileHandler
except Exception as e:  # noqa: BLE001
    LocalFileHandler = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


@pytest.fixture
def local_ctx(dummy_ctx, tmp_path):
    dummy_ctx.providers["local"] = {"root_dir": str(tmp_path / "out")}
    return dummy_ctx


def _require_imports():
    if LocalFileHandler is None:
        pytest.fail(f"Falha ao importar LocalFileHandler: {_IMPORT_ERR}")


def test_create_writes_file(local_ctx, tmp_path):
    _require_imports()
    h = LocalFileHandler()
    attrs = h.create({"filename": "conf/app.txt", "content": "hello", "file_permission": "0600"}, local_ctx)

    path = tmp_path / "out" / "conf" / "app.txt"
    assert path.read_text(encoding="utf-8") == "hello"
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert attrs["id"] == hashlib.sha1(b"hello").hexdigest()
    assert attrs["path"] == str(path)
    assert attrs["content"] == "hello"
    assert local_ctx.events[-1]["message"] == "file written"


def test_read_detects_drift(local_ctx):
    _require_imports()
    h = LocalFileHandler()
    attrs = h.create({"filename": "a.txt", "content": "v1", "file_permission": "0644"}, local_ctx)
    assert h.read(attrs, local_ctx) == attrs

    path = attrs["path"]
    with open(path, "w", encoding="utf-8") as f:
        f.write("edited")
    os.chmod(path, 0o600)

    observed = h.read(attrs, local_ctx)
    assert observed["content"] == "edited"
    assert observed["id"] == hashlib.sha1(b"edited").hexdigest()
    assert observed["file_permission"] == "0600"

    os.remove(path)
    assert h.read(attrs, local_ctx) is None


def test_delete_is_idempotent(local_ctx):
    _require_imports()
    h = LocalFileHandler()
    attrs = h.create({"filename": "gone.txt", "content": "x"}, local_ctx)

    h.delete(attrs, local_ctx)
    h.delete(attrs, local_ctx)
    assert not os.path.exists(attrs["path"])


def test_absolute_filename_ignores_root_dir(local_ctx, tmp_path):
    _require_imports()
    target = tmp_path / "abs.txt"
    attrs = LocalFileHandler().create({"filename": str(target)}, local_ctx)
    assert attrs["path"] == str(target)
    assert target.read_text(encoding="utf-8") == ""


@pytest.mark.parametrize(
    "props, fragment",
    [
        ({}, "filename é obrigatório"),
        ({"filename": ""}, "filename deve ser uma string não vazia"),
        ({"filename": "a", "content": 3}, "content deve ser string"),
        ({"filename": "a", "file_permission": "rwx"}, "file_permission inválido"),
        ({"filename": "a", "owner": "root"}, "propriedade desconhecida: owner"),
    ],
)
def test_validate_rejects_bad_properties(props, fragment):
    _require_imports()
    errors = LocalFileHandler().validate(props)
    assert any(fragment in e for e in errors)


def test_validate_accepts_unknown_values():
    _require_imports()
    from graphform.core.declaration.expressions import UNKNOWN

    assert LocalFileHandler().validate({"filename": "a", "content": UNKNOWN}) == []


@pytest.mark.parametrize(
    "new_props",
    [
        {"filename": "same.txt", "content": "v2"},
        {"filename": "same.txt", "content": "v1", "file_permission": "0600"},
    ],
)
def test_delete_keeps_file_written_by_newer_object(local_ctx, new_props):
    _require_imports()
    h = LocalFileHandler()
    old = h.create({"filename": "same.txt", "content": "v1"}, local_ctx)
    new = h.create(new_props, local_ctx)

    h.delete(old, local_ctx)

    assert os.path.exists(new["path"])
    assert local_ctx.events[-1]["message"] == "file replaced, delete skipped"


def test_create_before_destroy_replace_keeps_new_file(tmp_path):
    _require_imports()
    from graphform.core.config.loader import resolve_settings
    from graphform.core.declaration.loader import parse_stack
    from graphform.core.engine.engine import Engine
    from graphform.providers import default_registry

    out = tmp_path / "out"
    settings = resolve_settings({"state": {"path": str(tmp_path / "graphform.state.json")}})

    def _apply(content):
        doc = {
            "providers": {"local": {"root_dir": str(out)}},
            "resources": {
                "local_file": {
                    "f": {
                        "filename": "x.txt",
                        "content": content,
                        "lifecycle": {"create_before_destroy": True},
                    }
                }
            },
        }
        engine = Engine(stack=parse_stack(doc), registry=default_registry(), settings=settings)
        return engine, engine.apply(engine.plan())

    _apply("v1")
    engine, result = _apply("v2")

    assert result.ok
    assert result.changes["local_file.f"].action.value == "replace"
    assert (out / "x.txt").read_text(encoding="utf-8") == "v2"
    assert list(engine.state().resources) == ["local_file.f"]
