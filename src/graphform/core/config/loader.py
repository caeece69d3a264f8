# src/graphform/core/config/loader.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
import json

import yaml  # PyYAML

from .merge import deep_merge
from .hashing import compute_config_hash
from .errors import (
    DefaultsNotFoundError,
    InvalidConfigDocumentError,
    InvalidConfigRootTypeError,
    InvalidSettingError,
    UnsupportedConfigFormatError,
)


DEFAULT_CONFIG: Dict[str, Any] = {
    "engine": {
        "fail_fast": True,
        "parallelism": 1,
        "refresh": True,
    },
    "state": {
        "path": "graphform.state.json",
        "backup": True,
        "lock": True,
    },
    "journal": {
        "dir": None,
    },
}


class _DocumentLoader(yaml.SafeLoader):
    """SafeLoader sem timestamps implícitos: `2024-01-01` continua string."""


_DocumentLoader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def load_yaml(stream: Any) -> Any:
    """`yaml.safe_load` sem conversão implícita de datas."""
    return yaml.load(stream, Loader=_DocumentLoader)


_PARSERS = {
    ".yaml": load_yaml,
    ".yml": load_yaml,
    ".json": json.load,
}


def load_document(path: Path) -> Dict[str, Any]:
    """
    Lê um documento YAML ou JSON com raiz dict (arquivo vazio -> {}).

    Serve tanto para a configuração do engine quanto para stacks,
    módulos e arquivos de variáveis.
    """
    parser = _PARSERS.get(path.suffix.lower())
    if not path.exists():
        raise DefaultsNotFoundError(f"Arquivo não encontrado: {path}")
    if parser is None:
        raise UnsupportedConfigFormatError(f"Formato não suportado: {path.suffix or path.name}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            data = parser(fh)
        except (yaml.YAMLError, ValueError) as e:
            raise InvalidConfigDocumentError(f"{path.name}: documento inválido: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(f"{path.name}: raiz deve ser dict, recebido {type(data).__name__}")
    return data


def load_config(*, defaults_path: str, local_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Configuração efetiva: `defaults_path` (obrigatório) sobreposto por
    `local_path` via `deep_merge`, quando o arquivo local existir.
    """
    config = load_document(Path(defaults_path))
    if local_path is None or not Path(local_path).exists():
        return config
    return deep_merge(config, load_document(Path(local_path)))


@dataclass(frozen=True)
class EngineSettings:
    """Settings tipados derivados da configuração efetiva."""

    fail_fast: bool
    parallelism: int
    refresh: bool
    state_path: str
    state_backup: bool
    state_lock: bool
    journal_dir: Optional[str]
    config_hash: str


def resolve_settings(config: Optional[Dict[str, Any]] = None) -> EngineSettings:
    """
    Completa a configuração informada com `DEFAULT_CONFIG` e valida os valores.

    Raises:
        ConfigTypeConflictError: Se a configuração conflitar com os tipos padrão.
        InvalidSettingError: Se algum valor estiver fora do domínio aceito.
    """
    effective = deep_merge(DEFAULT_CONFIG, dict(config or {}))

    engine_cfg = effective.get("engine", {}) or {}
    state_cfg = effective.get("state", {}) or {}
    journal_cfg = effective.get("journal", {}) or {}

    parallelism = engine_cfg.get("parallelism", 1)
    if isinstance(parallelism, bool) or not isinstance(parallelism, int) or parallelism < 1:
        raise InvalidSettingError(f"engine.parallelism deve ser inteiro >= 1, recebido: {parallelism!r}")

    state_path = state_cfg.get("path")
    if not isinstance(state_path, str) or not state_path.strip():
        raise InvalidSettingError("state.path deve ser uma string não vazia")

    journal_dir = journal_cfg.get("dir")
    if journal_dir is not None and not isinstance(journal_dir, str):
        raise InvalidSettingError("journal.dir deve ser string ou null")

    return EngineSettings(
        fail_fast=bool(engine_cfg.get("fail_fast", True)),
        parallelism=parallelism,
        refresh=bool(engine_cfg.get("refresh", True)),
        state_path=state_path,
        state_backup=bool(state_cfg.get("backup", True)),
        state_lock=bool(state_cfg.get("lock", True)),
        journal_dir=journal_dir,
        config_hash=compute_config_hash(effective),
    )
