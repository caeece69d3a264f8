"""
Payloads de erro do Graphform.

Todo erro que chega ao operador (CLI, journal, resultado do apply) é um
`GraphformErrorPayload`: um código estável em `type`, uma mensagem curta,
`details` estruturados e, quando fizer sentido, um `hint` e o `address`
do nó afetado. Um erro de planejamento nunca vira ação sobre recursos.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GraphformErrorPayload:
    """Forma serializável de um erro; `type` vem do catálogo abaixo."""

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None
    address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphformErrorPayload":
        return cls(
            type=str(data.get("type", ENGINE_EXECUTION_ERROR)),
            message=str(data.get("message", "")),
            details=dict(data.get("details", {}) or {}),
            hint=data.get("hint"),
            address=data.get("address"),
        )


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Declarações / Grafo
DECLARATION_INVALID = "DECLARATION_INVALID"
GRAPH_UNKNOWN_REFERENCE = "GRAPH_UNKNOWN_REFERENCE"
GRAPH_CYCLE = "GRAPH_CYCLE"
VARIABLE_MISSING = "VARIABLE_MISSING"

# Providers
PROVIDER_UNKNOWN_TYPE = "PROVIDER_UNKNOWN_TYPE"
RESOURCE_VALIDATION_FAILED = "RESOURCE_VALIDATION_FAILED"

# Plan / State
PLAN_PREVENT_DESTROY = "PLAN_PREVENT_DESTROY"
PLAN_STALE = "PLAN_STALE"
STATE_LOCKED = "STATE_LOCKED"

# Engine / Execução
APPLY_RESOURCE_ERROR = "APPLY_RESOURCE_ERROR"
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def apply_resource_error(
    *,
    address: str,
    action: str,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    hint: str = "Corrija a causa reportada pelo handler e execute um novo plan. O state preserva o trabalho já aplicado.",
) -> GraphformErrorPayload:
    return GraphformErrorPayload(
        type=APPLY_RESOURCE_ERROR,
        message=f"Falha ao aplicar '{action}' em {address}",
        details={
            "action": action,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
        address=address,
    )


def engine_execution_error(
    *,
    address: Optional[str] = None,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    hint: str = "Verifique o journal da execução. Nenhum fallback é aplicado automaticamente.",
) -> GraphformErrorPayload:
    return GraphformErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message="Falha inesperada durante a execução do engine",
        details={
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
        address=address,
    )


def graph_cycle(*, cycle: List[str]) -> GraphformErrorPayload:
    return GraphformErrorPayload(
        type=GRAPH_CYCLE,
        message="Ciclo detectado no grafo de dependências",
        details={"cycle": list(cycle)},
        hint="Remova uma das referências ou um depends_on que fecha o ciclo.",
    )


def graph_unknown_reference(*, message: str, address: Optional[str] = None, missing: Optional[str] = None) -> GraphformErrorPayload:
    return GraphformErrorPayload(
        type=GRAPH_UNKNOWN_REFERENCE,
        message=message,
        details={"missing": missing},
        hint="Declare o endereço referenciado ou corrija a referência.",
        address=address or None,
    )


def payload_from_exception(exc: BaseException) -> GraphformErrorPayload:
    """
    Converte qualquer exceção em payload serializável.

    Exceções do Graphform já carregam o próprio payload; erros estruturais
    do grafo são identificados pelo atributo `code`.
    """
    to_payload = getattr(exc, "to_payload", None)
    if callable(to_payload):
        return to_payload()

    code = getattr(exc, "code", None)
    if code == GRAPH_CYCLE:
        return graph_cycle(cycle=list(getattr(exc, "cycle", []) or []))
    if code == GRAPH_UNKNOWN_REFERENCE:
        return graph_unknown_reference(
            message=str(exc),
            address=getattr(exc, "address", None),
            missing=getattr(exc, "missing", None),
        )
    return engine_execution_error(exc_type=exc.__class__.__name__, exc_message=str(exc) or None)
