# src/graphform/core/traceability/__init__.py
"""
Rastreabilidade do Graphform: journal de execução (Journal v1).

API pública:
    - RunJournal      -> estrutura canônica do journal
    - create_journal  -> criação explícita
    - add_event       -> registro explícito no Event Log
    - change_started / change_finished / change_failed / change_skipped
    - finish_journal  -> fechamento da run
    - save_journal / load_journal -> persistência JSON
"""

from .journal import (
    RunJournal,
    add_event,
    change_failed,
    change_finished,
    change_skipped,
    change_started,
    create_journal,
    finish_journal,
    load_journal,
    save_journal,
)

__all__ = [
    "RunJournal",
    "add_event",
    "change_failed",
    "change_finished",
    "change_skipped",
    "change_started",
    "create_journal",
    "finish_journal",
    "load_journal",
    "save_journal",
]
