# src/graphform/providers/local.py
"""
Handler `local_file`.

Propriedades:
    - filename (obrigatório): caminho relativo a `providers.local.root_dir`
      (default: diretório corrente) ou absoluto
    - content: texto gravado em UTF-8 (default: "")
    - file_permission: modo octal em string, ex.: "0644"

O `id` é o SHA-1 do conteúdo e toda propriedade é force_new (não há
update in-place). `delete` só remove o arquivo se conteúdo e permissão
em disco ainda correspondem aos atributos informados. `read` detecta
drift: arquivo removido (None) ou conteúdo/permissão alterados fora do
Graphform.
"""

from __future__ import annotations

import hashlib
import os
import stat
from pathlib import Path
from typing import Any, Dict, List, Optional

from graphform.core.declaration.expressions import UNKNOWN
from graphform.core.resource.context import RunContext

DEFAULT_PERMISSION = "0644"


def _sha1(content: str) -> str:
    return hashlib.sha1(content.encode("utf-8")).hexdigest()


class LocalFileHandler:
    type_name = "local_file"
    force_new = ("filename", "content", "file_permission")

    def _path(self, filename: str, ctx: RunContext) -> Path:
        root = ctx.provider_config("local").get("root_dir") or "."
        p = Path(filename).expanduser()
        if not p.is_absolute():
            p = Path(root).expanduser() / p
        return p

    def validate(self, properties: Dict[str, Any]) -> List[str]:
        errors: List[str] = []
        allowed = {"filename", "content", "file_permission"}
        errors.extend(f"propriedade desconhecida: {k}" for k in sorted(set(properties) - allowed))

        filename = properties.get("filename")
        if filename is None:
            errors.append("filename é obrigatório")
        elif filename is not UNKNOWN and (not isinstance(filename, str) or not filename.strip()):
            errors.append("filename deve ser uma string não vazia")

        content = properties.get("content", "")
        if content is not UNKNOWN and not isinstance(content, str):
            errors.append("content deve ser string")

        perm = properties.get("file_permission", DEFAULT_PERMISSION)
        if perm is not UNKNOWN:
            try:
                int(str(perm), 8)
            except ValueError:
                errors.append(f"file_permission inválido: {perm!r}")
        return errors

    def _write(self, properties: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        content = properties.get("content", "")
        perm = str(properties.get("file_permission", DEFAULT_PERMISSION))
        path = self._path(properties["filename"], ctx)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        os.chmod(path, int(perm, 8))
        ctx.log(address=str(path), level="DEBUG", message="file written", bytes=len(content.encode("utf-8")))

        attributes = dict(properties)
        attributes.update({"id": _sha1(content), "path": str(path)})
        return attributes

    def create(self, properties: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        return self._write(properties, ctx)

    def read(self, attributes: Dict[str, Any], ctx: RunContext) -> Optional[Dict[str, Any]]:
        path = Path(attributes.get("path") or self._path(attributes["filename"], ctx))
        if not path.is_file():
            return None
        content = path.read_text(encoding="utf-8")
        observed = dict(attributes)
        observed["content"] = content
        observed["id"] = _sha1(content)
        if "file_permission" in attributes:
            mode = stat.S_IMODE(path.stat().st_mode)
            if mode != int(str(attributes["file_permission"]), 8):
                observed["file_permission"] = format(mode, "04o")
        return observed

    def update(self, prior: Dict[str, Any], properties: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        return self._write(properties, ctx)

    def delete(self, attributes: Dict[str, Any], ctx: RunContext) -> None:
        path = Path(attributes.get("path") or self._path(attributes["filename"], ctx))
        if not path.is_file():
            return
        # num replace create_before_destroy o mesmo caminho já guarda o objeto novo
        mode = int(str(attributes.get("file_permission", DEFAULT_PERMISSION)), 8)
        same_content = _sha1(path.read_text(encoding="utf-8")) == attributes.get("id")
        if not same_content or stat.S_IMODE(path.stat().st_mode) != mode:
            ctx.log(address=str(path), level="DEBUG", message="file replaced, delete skipped")
            return
        path.unlink()
