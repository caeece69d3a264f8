# src/graphform/core/config/merge.py
from copy import deepcopy
from typing import Any, Dict, Tuple

from .errors import ConfigTypeConflictError


def _dotted(path: Tuple[str, ...]) -> str:
    return ".".join(path) or "<root>"


def _merge(base: Dict[str, Any], override: Dict[str, Any], path: Tuple[str, ...]) -> Dict[str, Any]:
    merged: Dict[str, Any] = deepcopy(base)
    for key, new in override.items():
        here = path + (str(key),)
        old = merged.get(key)

        if isinstance(old, dict) and isinstance(new, dict):
            merged[key] = _merge(old, new, here)
        elif key not in merged or old is None or new is None or isinstance(new, list):
            merged[key] = deepcopy(new)
        elif type(old) is type(new):
            merged[key] = deepcopy(new)
        else:
            raise ConfigTypeConflictError(
                f"Conflito de tipo em '{_dotted(here)}': {type(old).__name__} vs {type(new).__name__}"
            )
    return merged


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge determinístico de dois dicionários de configuração.

    Política (v1):
        - dict + dict -> merge recursivo por chave
        - list        -> sobrescrita total
        - `None` em qualquer lado -> sobrescrita (None significa "não definido")
        - tipos diferentes -> ConfigTypeConflictError com o caminho da chave
          (ex.: `engine.parallelism`)

    Nenhum input é mutado; o resultado é sempre um novo dicionário.
    """
    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            f"Deep-merge requer dicts no nível raiz, recebido: "
            f"{type(base).__name__} vs {type(override).__name__}"
        )
    return _merge(base, override, ())
