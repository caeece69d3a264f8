# src/graphform/providers/random.py
"""
Handler `random_string`.

O valor gerado (`result`) é calculado no create e permanece estável no
state; qualquer alteração de propriedade recria o recurso. `keepers`
existe apenas para forçar a recriação quando outros valores mudam.
"""

from __future__ import annotations

import secrets
import string
from typing import Any, Dict, List, Optional

from graphform.core.declaration.expressions import UNKNOWN
from graphform.core.resource.context import RunContext

SPECIAL_CHARS = "!@#$%&*()-_=+[]{}<>:?"

_FLAGS = ("special", "upper", "lower", "numeric")


class RandomStringHandler:
    type_name = "random_string"
    force_new = ("length", "keepers") + _FLAGS

    def validate(self, properties: Dict[str, Any]) -> List[str]:
        errors: List[str] = []
        allowed = {"length", "keepers", *_FLAGS}
        errors.extend(f"propriedade desconhecida: {k}" for k in sorted(set(properties) - allowed))

        length = properties.get("length")
        if length is None:
            errors.append("length é obrigatório")
        elif length is not UNKNOWN and (isinstance(length, bool) or not isinstance(length, int) or length < 1):
            errors.append("length deve ser inteiro >= 1")

        for flag in _FLAGS:
            value = properties.get(flag, True)
            if value is not UNKNOWN and not isinstance(value, bool):
                errors.append(f"{flag} deve ser booleano")

        keepers = properties.get("keepers", {})
        if keepers is not UNKNOWN and not isinstance(keepers, dict):
            errors.append("keepers deve ser um mapa")

        if not errors and not any(properties.get(f, True) for f in _FLAGS):
            errors.append("ao menos um conjunto de caracteres deve estar habilitado")
        return errors

    @staticmethod
    def _alphabet(properties: Dict[str, Any]) -> str:
        alphabet = ""
        if properties.get("upper", True):
            alphabet += string.ascii_uppercase
        if properties.get("lower", True):
            alphabet += string.ascii_lowercase
        if properties.get("numeric", True):
            alphabet += string.digits
        if properties.get("special", True):
            alphabet += SPECIAL_CHARS
        return alphabet

    def create(self, properties: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        alphabet = self._alphabet(properties)
        result = "".join(secrets.choice(alphabet) for _ in range(int(properties["length"])))
        attributes = dict(properties)
        attributes.update({"id": result, "result": result})
        return attributes

    def read(self, attributes: Dict[str, Any], ctx: RunContext) -> Optional[Dict[str, Any]]:
        return dict(attributes)

    def update(self, prior: Dict[str, Any], properties: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        attributes = dict(prior)
        attributes.update(properties)
        return attributes

    def delete(self, attributes: Dict[str, Any], ctx: RunContext) -> None:
        return None
