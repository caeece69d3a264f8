# src/graphform/core/state/store.py
"""
Persistência do state em JSON local.

Responsabilidades:
    - Carregar o state (state vazio quando o arquivo não existe)
    - Salvar de forma atômica (arquivo temporário + rename), incrementando `serial`
    - Manter a versão anterior em `<path>.backup`
    - Exclusão entre processos via arquivo de lock `<path>.lock`

Limites explícitos:
    - Não interpreta recursos nem chama handlers
    - Não decide quando salvar (responsabilidade do executor)
"""

from __future__ import annotations

import json
import os
import shutil
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from graphform.core.exceptions import StateLockError

from .models import STATE_VERSION, State


class StateStore:
    """State store baseado em arquivo."""

    def __init__(self, path: Union[str, Path], *, backup: bool = True):
        self.path = Path(path)
        self.backup = backup

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + ".backup")

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    # ------------------------------------------------------------------
    # Load / Save
    # ------------------------------------------------------------------
    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> State:
        if not self.path.exists():
            return State()
        data = json.loads(self.path.read_text(encoding="utf-8"))
        version = int(data.get("version", STATE_VERSION))
        if version > STATE_VERSION:
            raise ValueError(f"Unsupported state version {version} in {self.path}")
        return State.from_dict(data)

    def save(self, state: State) -> State:
        """
        Persiste `state`, incrementando `serial` e fixando `lineage` na
        primeira escrita. O objeto recebido é atualizado in-place e retornado.
        """
        if not state.lineage:
            state.lineage = str(uuid.uuid4())
        state.serial += 1

        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.backup and self.path.exists():
            shutil.copyfile(self.path, self.backup_path)

        tmp = self.path.with_name(self.path.name + f".tmp-{os.getpid()}")
        tmp.write_text(json.dumps(state.to_dict(), ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)
        return state

    # ------------------------------------------------------------------
    # Lock
    # ------------------------------------------------------------------
    def lock_info(self) -> Optional[Dict[str, Any]]:
        if not self.lock_path.exists():
            return None
        try:
            return json.loads(self.lock_path.read_text(encoding="utf-8"))
        except ValueError:
            return {"run_id": None}

    @contextmanager
    def lock(self, run_id: str, *, operation: str = "apply") -> Iterator[Dict[str, Any]]:
        """
        Adquire o lock do state durante o bloco.

        Raises:
            StateLockError: Se outro processo detém o lock.
        """
        info = {
            "run_id": run_id,
            "operation": operation,
            "pid": os.getpid(),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            holder = self.lock_info() or {}
            raise StateLockError(
                message=f"State bloqueado por outra execução: {holder.get('run_id')}",
                details={"lock_path": str(self.lock_path), "holder": holder},
                hint="Aguarde a outra execução ou use 'graphform force-unlock' se ela foi interrompida",
            ) from None

        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(info, f)
        try:
            yield info
        finally:
            self.lock_path.unlink(missing_ok=True)

    def force_unlock(self) -> bool:
        """Remove o lock; retorna False quando não havia lock."""
        if not self.lock_path.exists():
            return False
        self.lock_path.unlink()
        return True
