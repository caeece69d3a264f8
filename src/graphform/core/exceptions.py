
"""
Graphform: Canonical Exceptions (v1)

Este módulo define exceções tipadas internas do Graphform.

Objetivo:
- Permitir que loader, planner e executor levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para GraphformErrorPayload
- Evitar ValueError/RuntimeError genéricos em guardrails críticos

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- Cada classe declara o código estável (`code`) usado no payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional

from .errors import (
    DECLARATION_INVALID,
    ENGINE_EXECUTION_ERROR,
    GraphformErrorPayload,
    PLAN_PREVENT_DESTROY,
    PLAN_STALE,
    PROVIDER_UNKNOWN_TYPE,
    RESOURCE_VALIDATION_FAILED,
    STATE_LOCKED,
    VARIABLE_MISSING,
)


@dataclass(eq=False)
class GraphformException(Exception):
    """Base class para exceções internas do Graphform.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    code: ClassVar[str] = ENGINE_EXECUTION_ERROR

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None
    address: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover
        return self.message

    def to_payload(self) -> GraphformErrorPayload:
        return GraphformErrorPayload(
            type=self.code,
            message=self.message,
            details=dict(self.details or {}),
            hint=self.hint,
            address=self.address,
        )


# ---------------------------------------------------------------------------
# Declarações
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class DeclarationError(GraphformException):
    """Documento de stack estruturalmente inválido."""

    code: ClassVar[str] = DECLARATION_INVALID


@dataclass(eq=False)
class ExpressionError(GraphformException):
    """Template `${...}` malformado ou referência a atributo inexistente."""

    code: ClassVar[str] = DECLARATION_INVALID


@dataclass(eq=False)
class VariableMissingError(GraphformException):
    """Variável obrigatória sem valor informado e sem default."""

    code: ClassVar[str] = VARIABLE_MISSING


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class UnknownResourceTypeError(GraphformException):
    """Nenhum handler registrado para o tipo de recurso declarado."""

    code: ClassVar[str] = PROVIDER_UNKNOWN_TYPE


@dataclass(eq=False)
class ResourceValidationError(GraphformException):
    """Handler rejeitou as propriedades desejadas de um recurso."""

    code: ClassVar[str] = RESOURCE_VALIDATION_FAILED


# ---------------------------------------------------------------------------
# Plan / State
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class PreventDestroyError(GraphformException):
    """O plano destruiria um recurso marcado com lifecycle.prevent_destroy."""

    code: ClassVar[str] = PLAN_PREVENT_DESTROY


@dataclass(eq=False)
class StalePlanError(GraphformException):
    """O state ou as declarações mudaram desde que o plano foi calculado."""

    code: ClassVar[str] = PLAN_STALE


@dataclass(eq=False)
class StateLockError(GraphformException):
    """O lock do state está em posse de outra execução."""

    code: ClassVar[str] = STATE_LOCKED


@dataclass(eq=False)
class EngineExecutionError(GraphformException):
    """Erro inesperado durante execução do engine (encapsulado)."""
