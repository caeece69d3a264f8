# src/graphform/core/declaration/expressions.py
"""
Linguagem de expressões das declarações de stack.

Strings podem conter templates `${ref}`, onde `ref` é uma travessia:

    var.NAME
    local.NAME
    module.NAME.OUTPUT
    TYPE.NAME.ATTR

seguida de acessores `.key`, `[0]` ou `["key"]`. `$${` produz o literal `${`.

Regras de avaliação:
    - Uma string composta por exatamente um template preserva o tipo do valor
      referenciado (lista, dict, número)
    - Caso contrário os valores são interpolados como texto
    - Qualquer valor `UNKNOWN` tocado por um template torna a string inteira `UNKNOWN`

Este módulo não conhece o grafo: a resolução de referências é delegada a
um callable fornecido pelo avaliador.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple, Union

from graphform.core.exceptions import ExpressionError


class _Unknown:
    """Valor calculado apenas durante o apply."""

    _instance: Optional["_Unknown"] = None

    def __new__(cls) -> "_Unknown":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "(known after apply)"

    def __reduce__(self):
        return (_Unknown, ())


UNKNOWN = _Unknown()

# Marcador usado ao serializar planos em JSON
UNKNOWN_MARKER = {"$unknown": True}

_IDENT = r"[A-Za-z_][A-Za-z0-9_-]*"
_IDENT_RE = re.compile(_IDENT)
_ACCESSOR_RE = re.compile(
    r"\.(?P<attr>" + _IDENT + r")"
    r"|\[(?P<index>\d+)\]"
    r"|\[\"(?P<key>[^\"]*)\"\]"
)

PathPart = Union[str, int]


@dataclass(frozen=True)
class Reference:
    """Referência extraída de um template, ainda relativa ao módulo onde aparece."""

    root: str
    parts: Tuple[PathPart, ...]
    text: str

    def target(self, prefix: str = "") -> Tuple[str, Tuple[PathPart, ...]]:
        """
        Resolve o endereço do nó referenciado e o caminho restante de atributos.

        `prefix` é o prefixo de módulo do escopo (ex.: "module.web.").

        Raises:
            ExpressionError: Se a travessia não tiver partes suficientes.
        """
        if self.root in ("var", "local"):
            name = self._required_name(0)
            return f"{prefix}{self.root}.{name}", self.parts[1:]

        if self.root == "module":
            module_name = self._required_name(0)
            output_name = self._required_name(1)
            return f"{prefix}module.{module_name}.output.{output_name}", self.parts[2:]

        name = self._required_name(0)
        return f"{prefix}{self.root}.{name}", self.parts[1:]

    def _required_name(self, position: int) -> str:
        if len(self.parts) <= position or not isinstance(self.parts[position], str):
            raise ExpressionError(
                message=f"Referência incompleta: ${{{self.text}}}",
                details={"reference": self.text},
                hint="Use var.NAME, local.NAME, module.NAME.OUTPUT ou TYPE.NAME.ATTR",
            )
        return str(self.parts[position])


TemplatePart = Union[str, Reference]


def parse_reference(text: str) -> Reference:
    """Interpreta o conteúdo de um template (sem `${` e `}`)."""
    expr = text.strip()
    m = _IDENT_RE.match(expr)
    if m is None:
        raise ExpressionError(
            message=f"Expressão inválida: ${{{text}}}",
            details={"expression": text},
        )

    root = m.group(0)
    pos = m.end()
    parts: List[PathPart] = []
    while pos < len(expr):
        am = _ACCESSOR_RE.match(expr, pos)
        if am is None:
            raise ExpressionError(
                message=f"Expressão inválida: ${{{text}}}",
                details={"expression": text, "position": pos},
            )
        if am.group("attr") is not None:
            parts.append(am.group("attr"))
        elif am.group("index") is not None:
            parts.append(int(am.group("index")))
        else:
            parts.append(am.group("key"))
        pos = am.end()

    return Reference(root=root, parts=tuple(parts), text=expr)


def parse_template(value: str) -> List[TemplatePart]:
    """Divide uma string em literais e referências, respeitando o escape `$${`."""
    parts: List[TemplatePart] = []
    buf: List[str] = []
    i = 0
    n = len(value)
    while i < n:
        if value.startswith("$${", i):
            buf.append("${")
            i += 3
            continue
        if value.startswith("${", i):
            end = value.find("}", i + 2)
            if end == -1:
                raise ExpressionError(
                    message=f"Template sem fechamento: {value!r}",
                    details={"value": value},
                )
            if buf:
                parts.append("".join(buf))
                buf = []
            parts.append(parse_reference(value[i + 2:end]))
            i = end + 1
            continue
        buf.append(value[i])
        i += 1

    if buf:
        parts.append("".join(buf))
    return parts


def find_references(value: Any) -> List[Reference]:
    """Lista as referências contidas em um valor (strings, listas e dicts aninhados)."""
    found: List[Reference] = []

    def _walk(v: Any) -> None:
        if isinstance(v, str):
            found.extend(p for p in parse_template(v) if isinstance(p, Reference))
        elif isinstance(v, dict):
            for k in v:
                _walk(v[k])
        elif isinstance(v, (list, tuple)):
            for item in v:
                _walk(item)

    _walk(value)
    return found


def contains_unknown(value: Any) -> bool:
    if value is UNKNOWN:
        return True
    if isinstance(value, dict):
        return any(contains_unknown(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(contains_unknown(v) for v in value)
    return False


def traverse(value: Any, path: Tuple[PathPart, ...], *, text: str = "") -> Any:
    """Aplica acessores a um valor. `UNKNOWN` absorve qualquer acesso."""
    current = value
    for part in path:
        if current is UNKNOWN:
            return UNKNOWN
        if isinstance(part, int):
            if not isinstance(current, (list, tuple)) or part >= len(current):
                raise ExpressionError(
                    message=f"Índice {part} inválido em ${{{text}}}",
                    details={"reference": text, "index": part},
                )
            current = current[part]
            continue
        if not isinstance(current, dict) or part not in current:
            raise ExpressionError(
                message=f"Atributo '{part}' inexistente em ${{{text}}}",
                details={"reference": text, "attribute": part},
            )
        current = current[part]
    return current


def to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, sort_keys=True, ensure_ascii=False)
    return str(value)


def evaluate(value: Any, resolve: Callable[[Reference], Any]) -> Any:
    """
    Avalia um valor declarativo substituindo templates.

    Args:
        value: Valor bruto (string, lista, dict ou escalar).
        resolve: Callable que recebe uma `Reference` e devolve seu valor
            (já com os acessores aplicados) ou `UNKNOWN`.

    Returns:
        Any: Valor avaliado; nunca muta o input.
    """
    if isinstance(value, str):
        parts = parse_template(value)
        if len(parts) == 1 and isinstance(parts[0], Reference):
            return resolve(parts[0])
        out: List[str] = []
        for p in parts:
            if isinstance(p, Reference):
                resolved = resolve(p)
                if contains_unknown(resolved):
                    return UNKNOWN
                out.append(to_text(resolved))
            else:
                out.append(p)
        return "".join(out)

    if isinstance(value, dict):
        return {k: evaluate(v, resolve) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [evaluate(v, resolve) for v in value]

    return value


def encode_unknowns(value: Any) -> Any:
    if value is UNKNOWN:
        return dict(UNKNOWN_MARKER)
    if isinstance(value, dict):
        return {k: encode_unknowns(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_unknowns(v) for v in value]
    return value


def decode_unknowns(value: Any) -> Any:
    if isinstance(value, dict):
        if value == UNKNOWN_MARKER:
            return UNKNOWN
        return {k: decode_unknowns(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_unknowns(v) for v in value]
    return value

