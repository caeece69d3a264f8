# src/graphform/core/config/hashing.py
import json
import hashlib
from typing import Any, Dict


def canonical_json(data: Any) -> str:
    """Serialização JSON canônica: chaves ordenadas, separadores compactos, UTF-8."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico de uma configuração (ou declaração) resolvida.

    Política de hashing (v1):
        - Serialização JSON canônica (`canonical_json`)
        - Algoritmo SHA-256

    O hash é independente da ordem original das chaves; estruturas
    equivalentes produzem o mesmo valor. É usado no journal de execução
    e no plano salvo para detectar declarações alteradas entre plan e apply.

    Args:
        config (Dict[str, Any]): Estrutura a ser identificada.

    Returns:
        str: Hash SHA-256 hexadecimal (64 caracteres).

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """

    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )

    return hashlib.sha256(canonical_json(config).encode("utf-8")).hexdigest()
