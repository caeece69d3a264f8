# src/graphform/core/resource/types.py
"""
Tipos canônicos de plano e execução do Graphform.

Componentes principais:
    - Action       -> ação planejada sobre um recurso
    - ChangeStatus -> estado final da aplicação de uma mudança
    - ChangeResult -> resultado imutável da aplicação de uma mudança

Invariantes:
    - Enums possuem valores textuais canônicos (persistidos em plano e journal)
    - ChangeResult é imutável
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Action(str, Enum):
    """
    Ação planejada para um recurso.

    - CREATE: recurso declarado sem objeto correspondente no state
    - UPDATE: propriedades divergentes alteráveis in-place
    - REPLACE: alguma propriedade divergente exige recriação (`force_new`)
    - DELETE: recurso no state que não é mais declarado (ou plano de destroy)
    - NOOP: estado desejado igual ao observado
    """
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    NOOP = "no-op"


class ChangeStatus(str, Enum):
    """
    Estados finais possíveis da aplicação de uma mudança.

    Estados intermediários (ex.: running) existem apenas no journal.
    """
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ChangeResult:
    """
    Resultado imutável da aplicação de uma mudança.

    Campos:
        - address: endereço do recurso
        - action: ação aplicada
        - status: estado final
        - summary: resumo textual
        - error: payload serializável de erro (quando FAILED)
        - duration_ms: duração da chamada ao handler
    """
    address: str
    action: Action
    status: ChangeStatus
    summary: str
    error: Optional[Dict[str, Any]] = None
    duration_ms: int = 0
    payload: Dict[str, Any] = field(default_factory=dict)
