# src/graphform/providers/null.py
"""Handler `null_resource`: não cria nada fora do state."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from graphform.core.declaration.expressions import UNKNOWN
from graphform.core.resource.context import RunContext


class NullResourceHandler:
    type_name = "null_resource"
    force_new = ("triggers",)

    def validate(self, properties: Dict[str, Any]) -> List[str]:
        errors = [f"propriedade desconhecida: {k}" for k in sorted(properties) if k != "triggers"]
        triggers = properties.get("triggers", {})
        if triggers is not UNKNOWN and not isinstance(triggers, dict):
            errors.append("triggers deve ser um mapa")
        return errors

    def create(self, properties: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        return {"id": uuid.uuid4().hex, "triggers": dict(properties.get("triggers") or {})}

    def read(self, attributes: Dict[str, Any], ctx: RunContext) -> Optional[Dict[str, Any]]:
        return dict(attributes)

    def update(self, prior: Dict[str, Any], properties: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        return {"id": prior["id"], "triggers": dict(properties.get("triggers") or {})}

    def delete(self, attributes: Dict[str, Any], ctx: RunContext) -> None:
        return None
