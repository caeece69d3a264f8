# src/graphform/core/resource/context.py
"""
Contexto de execução compartilhado de uma run (plan ou apply).

O `RunContext` é o único meio pelo qual handlers e engine compartilham
estado durante uma run:

    - identidade e metadados da execução
    - configuração de providers (bloco `providers` do stack raiz)
    - log estruturado de eventos
    - warnings agrupados por endereço
    - journal da run, quando habilitado

Invariantes:
    - Logs sempre incluem `run_id` e `address`
    - Warnings são agrupados por endereço
    - Registro de eventos é seguro entre threads (apply paralelo)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from graphform.core.traceability.journal import RunJournal


@dataclass
class RunContext:
    """
    Contexto canônico passado a handlers e usado pelo engine.

    Limites explícitos:
        - Não executa handlers
        - Não persiste dados automaticamente
    """
    run_id: str
    created_at: datetime
    config: Dict[str, Any] = field(default_factory=dict)
    providers: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)
    journal: Optional[RunJournal] = None

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    # -----------------------------
    # Providers
    # -----------------------------
    def provider_config(self, name: str) -> Dict[str, Any]:
        return dict(self.providers.get(name, {}) or {})

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, address: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "address": address,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

    def add_warning(self, *, address: str, message: str) -> None:
        with self._lock:
            self.warnings.setdefault(address, []).append(message)
        self.log(address=address, level="WARNING", message=message)

    def all_warnings(self) -> List[str]:
        return [f"{a}: {m}" for a in sorted(self.warnings) for m in self.warnings[a]]
