# src/graphform/core/config/__init__.py

"""
Camada de configuração do Graphform.

Este pacote carrega, mescla, valida e identifica as configurações de
execução do engine (fail-fast, paralelismo, refresh, localização do
state e do journal).

A configuração é declarativa e separada das declarações de stack:
ela controla *como* o engine executa, nunca *o que* é provisionado.

Responsabilidades do pacote:
    - Carregamento de arquivos YAML/JSON (defaults + overrides locais)
    - Resolução via deep-merge determinístico
    - Conversão em `EngineSettings` com defaults explícitos
    - Hash canônico para rastreabilidade

Invariantes:
    - A configuração final é um dicionário puro (dict)
    - A mesma entrada sempre produz a mesma configuração final
    - Conflitos estruturais são tratados como erro
"""

from .loader import DEFAULT_CONFIG, EngineSettings, load_config, load_document, load_yaml, resolve_settings
from .merge import deep_merge
from .hashing import canonical_json, compute_config_hash

__all__ = [
    "DEFAULT_CONFIG",
    "EngineSettings",
    "canonical_json",
    "compute_config_hash",
    "deep_merge",
    "load_config",
    "load_document",
    "load_yaml",
    "resolve_settings",
]
