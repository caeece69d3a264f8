# src/graphform/core/declaration/schema.py
"""
Estruturas tipadas de um documento de stack já validado.

Um `StackDocument` corresponde a um arquivo YAML/JSON (raiz ou módulo).
As estruturas são produzidas exclusivamente por `declaration.loader` e
consumidas pelo construtor do grafo.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from graphform.core.config.hashing import compute_config_hash


@dataclass(frozen=True)
class Lifecycle:
    prevent_destroy: bool = False
    create_before_destroy: bool = False
    ignore_changes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class VariableDecl:
    name: str
    default: Any = None
    has_default: bool = False
    description: Optional[str] = None
    sensitive: bool = False


@dataclass(frozen=True)
class ResourceDecl:
    type: str
    name: str
    properties: Dict[str, Any]
    depends_on: Tuple[str, ...] = ()
    lifecycle: Lifecycle = field(default_factory=Lifecycle)

    @property
    def address(self) -> str:
        return f"{self.type}.{self.name}"

    @property
    def provider(self) -> str:
        """Nome do provider derivado do prefixo do tipo (`local_file` -> `local`)."""
        return self.type.split("_", 1)[0]


@dataclass(frozen=True)
class OutputDecl:
    name: str
    value: Any
    description: Optional[str] = None
    sensitive: bool = False


@dataclass(frozen=True)
class ModuleCall:
    name: str
    source: str
    inputs: Dict[str, Any]
    document: "StackDocument"
    depends_on: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StackDocument:
    path: Optional[Path]
    raw: Dict[str, Any]
    variables: Dict[str, VariableDecl] = field(default_factory=dict)
    locals: Dict[str, Any] = field(default_factory=dict)
    providers: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    resources: Dict[str, ResourceDecl] = field(default_factory=dict)
    outputs: Dict[str, OutputDecl] = field(default_factory=dict)
    modules: Dict[str, ModuleCall] = field(default_factory=dict)

    def fingerprint(self) -> str:
        """Hash canônico do documento e, recursivamente, de seus módulos."""
        return compute_config_hash(
            {
                "document": self.raw,
                "modules": {name: call.document.fingerprint() for name, call in sorted(self.modules.items())},
            }
        )
