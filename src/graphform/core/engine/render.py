# src/graphform/core/engine/render.py
"""
Renderização textual de planos e resultados de apply.

Objetivo:
- Produzir texto legível para operadores (CLI, logs, revisão de planos).
- NÃO altera o Plan nem o ApplyResult.
- NÃO aplica cores; a camada de CLI decide a apresentação final.

Convenções:
    +   create
    ~   update in-place
    -/+ replace (destroy e create)
    -   destroy
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from graphform.core.declaration.expressions import UNKNOWN
from graphform.core.resource.types import Action, ChangeStatus

from .executor import ApplyResult
from .plan import Plan, ResourceChange

KNOWN_AFTER_APPLY = "(known after apply)"
SENSITIVE = "(sensitive)"

SYMBOLS: Dict[Action, str] = {
    Action.CREATE: "+",
    Action.UPDATE: "~",
    Action.REPLACE: "-/+",
    Action.DELETE: "-",
    Action.NOOP: " ",
}

VERBS: Dict[Action, str] = {
    Action.CREATE: "will be created",
    Action.UPDATE: "will be updated in-place",
    Action.REPLACE: "must be replaced",
    Action.DELETE: "will be destroyed",
    Action.NOOP: "is unchanged",
}


def _placeholder(value: Any) -> Any:
    if value is UNKNOWN:
        return KNOWN_AFTER_APPLY
    if isinstance(value, dict):
        return {k: _placeholder(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_placeholder(v) for v in value]
    return value


def render_value(value: Any) -> str:
    """Valor em notação compacta; `UNKNOWN` vira `(known after apply)`."""
    if value is UNKNOWN:
        return KNOWN_AFTER_APPLY
    try:
        return json.dumps(_placeholder(value), ensure_ascii=False, sort_keys=True)
    except TypeError:
        return repr(value)


def _change_lines(change: ResourceChange) -> List[str]:
    symbol = SYMBOLS[change.action]
    lines = [f"  # {change.address} {VERBS[change.action]}"]
    if change.reason:
        lines[0] += f" ({change.reason})"
    lines.append(f"  {symbol} {change.address}")

    before = change.before or {}
    after = change.after or {}

    if change.action == Action.CREATE:
        for key in sorted(after):
            lines.append(f"      + {key} = {render_value(after[key])}")
    elif change.action == Action.DELETE:
        for key in sorted(before):
            lines.append(f"      - {key} = {render_value(before[key])}")
    else:
        for key in change.changed:
            if key not in after:
                lines.append(f"      - {key} = {render_value(before[key])}")
            elif key not in before:
                lines.append(f"      + {key} = {render_value(after[key])}")
            else:
                line = f"      ~ {key} = {render_value(before[key])} -> {render_value(after[key])}"
                if key in change.requires_replace:
                    line += "  # forces replacement"
                lines.append(line)
    return lines


def render_plan(plan: Plan) -> str:
    """Plano completo em texto, terminando com a linha de resumo."""
    actionable = plan.actionable()
    out: List[str] = []

    if not actionable:
        out.append("No changes. Infrastructure matches the declared stack.")
    else:
        out.append("Graphform will perform the following actions:")
        for change in actionable:
            out.append("")
            out.extend(_change_lines(change))
        s = plan.summary()
        out.append("")
        out.append(f"Plan: {s['add']} to add, {s['change']} to change, {s['destroy']} to destroy.")

    if plan.outputs and not plan.destroy:
        out.append("")
        out.append("Outputs:")
        for name in sorted(plan.outputs):
            entry = plan.outputs[name]
            shown = SENSITIVE if entry.get("sensitive") else render_value(entry.get("value"))
            out.append(f"  {name} = {shown}")

    if plan.warnings:
        out.append("")
        out.append("Warnings:")
        out.extend(f"  - {w}" for w in plan.warnings)

    return "\n".join(out)


def render_apply_result(result: ApplyResult, *, sensitive: Dict[str, bool] | None = None) -> str:
    sensitive = sensitive or {}
    out: List[str] = []
    for address, r in sorted(result.changes.items()):
        if r.status == ChangeStatus.SUCCESS:
            out.append(f"{address}: {r.summary} [{r.duration_ms}ms]")
        elif r.status == ChangeStatus.SKIPPED:
            out.append(f"{address}: {r.summary}")
        else:
            out.append(f"{address}: {r.action.value} failed: {r.summary}")

    s = result.summary()
    if out:
        out.append("")
    headline = "Apply complete!" if result.ok else "Apply finished with errors."
    out.append(
        f"{headline} Resources: {s['added']} added, {s['changed']} changed, {s['destroyed']} destroyed."
    )
    if s["failed"] or s["skipped"]:
        out.append(f"Failed: {s['failed']}, skipped: {s['skipped']}.")
    if result.stopped_early:
        out.append("Run stopped early after a failure (engine.fail_fast).")

    if result.outputs:
        out.append("")
        out.append("Outputs:")
        for name in sorted(result.outputs):
            shown = SENSITIVE if sensitive.get(name) else render_value(result.outputs[name])
            out.append(f"  {name} = {shown}")
    return "\n".join(out)
