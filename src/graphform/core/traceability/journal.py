# src/graphform/core/traceability/journal.py
"""
Journal de execução do Graphform (Journal v1).

Cada apply com `journal.dir` configurado produz um arquivo
`<run_id>.json` com quatro seções:

    run      -> run_id, engine_version, started_at e finished_at
    inputs   -> config_hash, declaration_hash e state_lineage
    changes  -> uma entrada por endereço, com ação, status, duração e erro
    events   -> lista append-only de eventos

Todas as datas são gravadas em ISO 8601 UTC; datetimes sem fuso são
interpretados como UTC. O journal é somente leitura para o engine: o
planner nunca o consulta.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

RUNNING = "running"
FAILED = "failed"
SKIPPED = "skipped"


def _utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)


def _stamp(dt: datetime) -> str:
    return _utc(dt).isoformat()


def ms_between(start: datetime, end: datetime) -> int:
    """Duração em milissegundos, truncada em zero."""
    delta = _utc(end) - _utc(start)
    return max(0, int(delta.total_seconds() * 1000))


@dataclass
class RunJournal:
    run: Dict[str, Any]
    inputs: Dict[str, Any]
    changes: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def entry(self, address: str) -> Dict[str, Any]:
        """Entrada de `address` em `changes`, criada sob demanda."""
        return self.changes.setdefault(address, {"address": address})

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(
            {"run": self.run, "inputs": self.inputs, "changes": self.changes, "events": self.events}
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunJournal":
        data = copy.deepcopy(data)
        return cls(
            run=data.get("run") or {},
            inputs=data.get("inputs") or {},
            changes=data.get("changes") or {},
            events=data.get("events") or [],
        )


def create_journal(
    *,
    run_id: str,
    started_at: datetime,
    engine_version: str,
    config_hash: str,
    declaration_hash: str,
    state_lineage: str = "",
) -> RunJournal:
    run = {"run_id": run_id, "started_at": _stamp(started_at), "engine_version": engine_version}
    inputs = {"config_hash": config_hash, "declaration_hash": declaration_hash, "state_lineage": state_lineage}
    return RunJournal(run=run, inputs=inputs)


def add_event(
    journal: RunJournal,
    *,
    event_type: str,
    ts: datetime,
    address: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """Acrescenta um evento ao final do log. `address` e `payload` só entram quando informados."""
    event: Dict[str, Any] = {"event_type": event_type, "timestamp": _stamp(ts)}
    for key, value in (("address", address), ("payload", payload)):
        if value is not None:
            event[key] = value
    journal.events.append(event)


def change_started(journal: RunJournal, *, address: str, action: str, ts: datetime) -> None:
    journal.entry(address).update(action=action, status=RUNNING, started_at=_stamp(ts))
    add_event(journal, event_type="change_started", ts=ts, address=address, payload={"action": action})


def change_finished(journal: RunJournal, *, address: str, ts: datetime, result: Dict[str, Any]) -> None:
    entry = journal.entry(address)
    began = datetime.fromisoformat(entry["started_at"]) if "started_at" in entry else ts
    status = result.get("status", "success")
    duration = ms_between(began, ts)

    entry.update(status=status, finished_at=_stamp(ts), duration_ms=duration, summary=result.get("summary"))
    add_event(
        journal,
        event_type="change_finished",
        ts=ts,
        address=address,
        payload={"status": status, "duration_ms": duration},
    )


def change_failed(journal: RunJournal, *, address: str, ts: datetime, error: Dict[str, Any]) -> None:
    journal.entry(address).update(status=FAILED, finished_at=_stamp(ts), error=error)
    add_event(journal, event_type="change_failed", ts=ts, address=address, payload={"error": error})


def change_skipped(journal: RunJournal, *, address: str, action: str, ts: datetime, reason: str) -> None:
    # skips não têm started_at: o handler nunca foi chamado
    journal.entry(address).update(action=action, status=SKIPPED, summary=reason)
    add_event(journal, event_type="change_skipped", ts=ts, address=address, payload={"reason": reason})


def finish_journal(journal: RunJournal, *, ts: datetime, summary: Dict[str, Any]) -> None:
    journal.run["finished_at"] = _stamp(ts)
    add_event(journal, event_type="run_finished", ts=ts, payload=dict(summary))


def save_journal(journal: RunJournal, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(journal.to_dict(), ensure_ascii=False, indent=2, sort_keys=True)
    path.write_text(text, encoding="utf-8")


def load_journal(path: Path) -> RunJournal:
    with open(path, encoding="utf-8") as fh:
        return RunJournal.from_dict(json.load(fh))
