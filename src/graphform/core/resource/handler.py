# src/graphform/core/resource/handler.py
"""
Contrato canônico de handler de recurso.

Um handler materializa um único tipo de recurso (`local_file`,
`null_resource`, ...). O engine decide *quando* chamar cada operação;
o handler decide apenas *como* falar com o sistema externo.

Princípios fundamentais:
    - Handlers não conhecem o grafo, o plano nem o state store
    - Conformidade é garantida por duck typing (@runtime_checkable)
    - Configuração de provider é lida via `ctx.provider_config(nome)`

Invariantes:
    - `create`/`update` retornam atributos completos contendo `id` (string não vazia)
    - `read` retorna `None` quando o objeto não existe mais
    - `validate` tolera valores `UNKNOWN` (calculados apenas no apply)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from .context import RunContext


@runtime_checkable
class ResourceHandler(Protocol):
    """
    Interface mínima de um handler de recurso.

    Atributos obrigatórios:
        - type_name: tipo de recurso atendido (ex.: "local_file")
        - force_new: propriedades cuja alteração exige recriação

    Limites explícitos:
        - Não define retry
        - Não persiste state
        - Não decide ordem de execução
    """
    type_name: str
    force_new: Sequence[str]

    def validate(self, properties: Dict[str, Any]) -> List[str]:
        """Retorna mensagens de erro (lista vazia quando válido)."""
        ...

    def create(self, properties: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        ...

    def read(self, attributes: Dict[str, Any], ctx: RunContext) -> Optional[Dict[str, Any]]:
        ...

    def update(self, prior: Dict[str, Any], properties: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        ...

    def delete(self, attributes: Dict[str, Any], ctx: RunContext) -> None:
        ...
