# src/graphform/core/state/models.py
"""
Modelo do state persistido (State v1).

O state guarda o último estado conhecido de cada recurso materializado:

    - properties: inputs aplicados pela última vez
    - attributes: objeto completo devolvido pelo handler (contém `id`)
    - dependencies: recursos dos quais dependia no momento do apply

`serial` cresce a cada escrita; `lineage` identifica o state e é fixado
na primeira escrita (vazio enquanto o state nunca foi salvo).
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, List

STATE_VERSION = 1


@dataclass
class ResourceState:
    address: str
    type: str
    provider: str
    id: str
    properties: Dict[str, Any] = field(default_factory=dict)
    attributes: Dict[str, Any] = field(default_factory=dict)
    dependencies: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "type": self.type,
            "provider": self.provider,
            "id": self.id,
            "properties": deepcopy(self.properties),
            "attributes": deepcopy(self.attributes),
            "dependencies": list(self.dependencies),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceState":
        return cls(
            address=str(data["address"]),
            type=str(data["type"]),
            provider=str(data.get("provider") or str(data["type"]).split("_", 1)[0]),
            id=str(data.get("id", "")),
            properties=dict(data.get("properties", {}) or {}),
            attributes=dict(data.get("attributes", {}) or {}),
            dependencies=list(data.get("dependencies", []) or []),
        )


@dataclass
class State:
    serial: int = 0
    lineage: str = ""
    resources: Dict[str, ResourceState] = field(default_factory=dict)
    outputs: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    version: int = STATE_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "serial": self.serial,
            "lineage": self.lineage,
            "resources": {a: r.to_dict() for a, r in sorted(self.resources.items())},
            "outputs": deepcopy(self.outputs),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "State":
        return cls(
            version=int(data.get("version", STATE_VERSION)),
            serial=int(data.get("serial", 0)),
            lineage=str(data.get("lineage", "")),
            resources={
                a: ResourceState.from_dict(r) for a, r in (data.get("resources", {}) or {}).items()
            },
            outputs={k: dict(v) for k, v in (data.get("outputs", {}) or {}).items()},
        )

    def output_values(self) -> Dict[str, Any]:
        return {k: v.get("value") for k, v in self.outputs.items()}
