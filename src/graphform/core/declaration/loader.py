# src/graphform/core/declaration/loader.py
"""
Carregamento e validação estrutural de documentos de stack.

Um documento de stack é um arquivo YAML ou JSON com as seções:

    variables, locals, providers, modules, resources, outputs

Este módulo valida a *estrutura* (tipos das seções, identificadores,
meta-argumentos) e carrega módulos recursivamente. A validação de
referências entre nós é responsabilidade do construtor do grafo.

Invariantes:
    - Nenhum provider é consultado durante o carregamento
    - Fontes de módulo são resolvidas relativamente ao documento que as inclui
    - Um módulo que inclui a si mesmo (direta ou transitivamente) é rejeitado
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from graphform.core.config.errors import ConfigError
from graphform.core.config.loader import load_document
from graphform.core.exceptions import DeclarationError

from .expressions import parse_template
from .schema import (
    Lifecycle,
    ModuleCall,
    OutputDecl,
    ResourceDecl,
    StackDocument,
    VariableDecl,
)


TOP_LEVEL_KEYS = ("variables", "locals", "providers", "modules", "resources", "outputs")
RESOURCE_META_KEYS = ("depends_on", "lifecycle")
LIFECYCLE_KEYS = ("prevent_destroy", "create_before_destroy", "ignore_changes")
RESERVED_TYPES = ("var", "local", "module", "output")

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


def _fail(message: str, *, path: Optional[Path], **details: Any) -> DeclarationError:
    if path is not None:
        details.setdefault("file", str(path))
    return DeclarationError(message=message, details=details)


def _check_name(name: Any, *, what: str, path: Optional[Path]) -> str:
    if not isinstance(name, str) or not _NAME_RE.match(name):
        raise _fail(f"Nome inválido para {what}: {name!r}", path=path, name=str(name))
    return name


def _mapping(data: Dict[str, Any], key: str, *, path: Optional[Path]) -> Dict[str, Any]:
    section = data.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise _fail(f"Seção '{key}' deve ser um mapeamento", path=path, section=key)
    return section


def _string_list(value: Any, *, what: str, path: Optional[Path]) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) and v.strip() for v in value):
        raise _fail(f"{what} deve ser uma lista de strings", path=path)
    return tuple(value)


def _check_templates(value: Any, *, path: Optional[Path]) -> None:
    # Força o parse de todos os templates para falhar cedo em sintaxe inválida
    if isinstance(value, str):
        parse_template(value)
    elif isinstance(value, dict):
        for v in value.values():
            _check_templates(v, path=path)
    elif isinstance(value, list):
        for v in value:
            _check_templates(v, path=path)


def _parse_variables(data: Dict[str, Any], path: Optional[Path]) -> Dict[str, VariableDecl]:
    out: Dict[str, VariableDecl] = {}
    for name, decl in _mapping(data, "variables", path=path).items():
        _check_name(name, what="variable", path=path)
        decl = decl if decl is not None else {}
        if not isinstance(decl, dict):
            raise _fail(f"Variável '{name}' deve ser um mapeamento", path=path, variable=name)
        unknown = set(decl) - {"default", "description", "type", "sensitive"}
        if unknown:
            raise _fail(
                f"Chaves desconhecidas na variável '{name}': {sorted(unknown)}",
                path=path,
                variable=name,
            )
        out[name] = VariableDecl(
            name=name,
            default=decl.get("default"),
            has_default="default" in decl,
            description=decl.get("description"),
            sensitive=bool(decl.get("sensitive", False)),
        )
    return out


def _parse_lifecycle(address: str, value: Any, path: Optional[Path]) -> Lifecycle:
    if value is None:
        return Lifecycle()
    if not isinstance(value, dict):
        raise _fail(f"lifecycle de '{address}' deve ser um mapeamento", path=path, address=address)
    unknown = set(value) - set(LIFECYCLE_KEYS)
    if unknown:
        raise _fail(
            f"Chaves desconhecidas em lifecycle de '{address}': {sorted(unknown)}",
            path=path,
            address=address,
        )
    return Lifecycle(
        prevent_destroy=bool(value.get("prevent_destroy", False)),
        create_before_destroy=bool(value.get("create_before_destroy", False)),
        ignore_changes=_string_list(
            value.get("ignore_changes"), what=f"lifecycle.ignore_changes de '{address}'", path=path
        ),
    )


def _parse_resources(data: Dict[str, Any], path: Optional[Path]) -> Dict[str, ResourceDecl]:
    out: Dict[str, ResourceDecl] = {}
    for rtype, blocks in _mapping(data, "resources", path=path).items():
        _check_name(rtype, what="resource type", path=path)
        if rtype in RESERVED_TYPES or "_" not in rtype:
            raise _fail(
                f"Tipo de recurso inválido: '{rtype}' (esperado PROVIDER_KIND)",
                path=path,
                type=rtype,
            )
        if not isinstance(blocks, dict):
            raise _fail(f"resources.{rtype} deve ser um mapeamento", path=path, type=rtype)

        for name, body in blocks.items():
            _check_name(name, what="resource", path=path)
            address = f"{rtype}.{name}"
            body = body if body is not None else {}
            if not isinstance(body, dict):
                raise _fail(f"Recurso '{address}' deve ser um mapeamento", path=path, address=address)

            properties = {k: v for k, v in body.items() if k not in RESOURCE_META_KEYS}
            _check_templates(properties, path=path)
            out[address] = ResourceDecl(
                type=rtype,
                name=name,
                properties=properties,
                depends_on=_string_list(body.get("depends_on"), what=f"depends_on de '{address}'", path=path),
                lifecycle=_parse_lifecycle(address, body.get("lifecycle"), path),
            )
    return out


def _parse_outputs(data: Dict[str, Any], path: Optional[Path]) -> Dict[str, OutputDecl]:
    out: Dict[str, OutputDecl] = {}
    for name, decl in _mapping(data, "outputs", path=path).items():
        _check_name(name, what="output", path=path)
        if not isinstance(decl, dict) or "value" not in decl:
            raise _fail(f"Output '{name}' deve declarar 'value'", path=path, output=name)
        _check_templates(decl["value"], path=path)
        out[name] = OutputDecl(
            name=name,
            value=decl["value"],
            description=decl.get("description"),
            sensitive=bool(decl.get("sensitive", False)),
        )
    return out


def _parse_locals(data: Dict[str, Any], path: Optional[Path]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name, value in _mapping(data, "locals", path=path).items():
        _check_name(name, what="local", path=path)
        _check_templates(value, path=path)
        out[name] = value
    return out


def _parse_providers(data: Dict[str, Any], path: Optional[Path]) -> Dict[str, Dict[str, Any]]:
    out: Dict[str, Dict[str, Any]] = {}
    for name, cfg in _mapping(data, "providers", path=path).items():
        _check_name(name, what="provider", path=path)
        cfg = cfg if cfg is not None else {}
        if not isinstance(cfg, dict):
            raise _fail(f"Provider '{name}' deve ser um mapeamento", path=path, provider=name)
        out[name] = dict(cfg)
    return out


def _read_source(
    source: str,
    *,
    base_dir: Optional[Path],
    sources: Mapping[str, Dict[str, Any]],
    path: Optional[Path],
) -> Tuple[Dict[str, Any], Optional[Path], str]:
    if source in sources:
        return dict(sources[source]), None, f"mem:{source}"

    src_path = Path(source)
    if not src_path.is_absolute() and base_dir is not None:
        src_path = base_dir / src_path
    src_path = src_path.resolve()
    try:
        return load_document(src_path), src_path, str(src_path)
    except ConfigError as e:
        raise _fail(f"Não foi possível carregar o módulo '{source}': {e}", path=path, source=source) from e


def _parse_modules(
    data: Dict[str, Any],
    path: Optional[Path],
    sources: Mapping[str, Dict[str, Any]],
    stack: Tuple[str, ...],
) -> Dict[str, ModuleCall]:
    out: Dict[str, ModuleCall] = {}
    base_dir = path.parent if path is not None else None
    for name, decl in _mapping(data, "modules", path=path).items():
        _check_name(name, what="module", path=path)
        if not isinstance(decl, dict) or not isinstance(decl.get("source"), str):
            raise _fail(f"Módulo '{name}' deve declarar 'source'", path=path, module=name)
        unknown = set(decl) - {"source", "inputs", "depends_on"}
        if unknown:
            raise _fail(f"Chaves desconhecidas no módulo '{name}': {sorted(unknown)}", path=path, module=name)

        inputs = decl.get("inputs") or {}
        if not isinstance(inputs, dict):
            raise _fail(f"inputs do módulo '{name}' deve ser um mapeamento", path=path, module=name)
        _check_templates(inputs, path=path)

        child_data, child_path, key = _read_source(decl["source"], base_dir=base_dir, sources=sources, path=path)
        if key in stack:
            raise _fail(
                f"Módulo '{name}' inclui a si mesmo: {' -> '.join(stack + (key,))}",
                path=path,
                module=name,
            )
        child = _parse(child_data, path=child_path, sources=sources, stack=stack + (key,), is_root=False)

        undeclared = sorted(set(inputs) - set(child.variables))
        if undeclared:
            raise _fail(
                f"Módulo '{name}' recebeu inputs não declarados: {undeclared}",
                path=path,
                module=name,
            )

        out[name] = ModuleCall(
            name=name,
            source=decl["source"],
            inputs=dict(inputs),
            document=child,
            depends_on=_string_list(decl.get("depends_on"), what=f"depends_on do módulo '{name}'", path=path),
        )
    return out


def _parse(
    data: Dict[str, Any],
    *,
    path: Optional[Path],
    sources: Mapping[str, Dict[str, Any]],
    stack: Tuple[str, ...],
    is_root: bool,
) -> StackDocument:
    if not isinstance(data, dict):
        raise _fail(f"Documento de stack deve ser dict, recebido: {type(data).__name__}", path=path)

    unknown = sorted(set(data) - set(TOP_LEVEL_KEYS))
    if unknown:
        raise _fail(f"Seções desconhecidas: {unknown}", path=path, sections=unknown)

    providers = _parse_providers(data, path)
    if providers and not is_root:
        raise _fail("Blocos 'providers' só são permitidos no documento raiz", path=path)

    return StackDocument(
        path=path,
        raw=data,
        variables=_parse_variables(data, path),
        locals=_parse_locals(data, path),
        providers=providers,
        resources=_parse_resources(data, path),
        outputs=_parse_outputs(data, path),
        modules=_parse_modules(data, path, sources, stack),
    )


def parse_stack(
    data: Dict[str, Any],
    *,
    path: Optional[Path] = None,
    sources: Optional[Mapping[str, Dict[str, Any]]] = None,
) -> StackDocument:
    """
    Valida um documento de stack já carregado em memória.

    Args:
        data: Conteúdo do documento raiz.
        path: Caminho do documento (base para fontes de módulo relativas).
        sources: Documentos de módulo em memória, indexados pelo valor de `source`.
            Têm precedência sobre o filesystem.

    Raises:
        DeclarationError: Em qualquer violação estrutural.
    """
    root_key = str(path.resolve()) if path is not None else "mem:<root>"
    return _parse(data, path=path, sources=dict(sources or {}), stack=(root_key,), is_root=True)


def load_stack(path: str | Path, *, sources: Optional[Mapping[str, Dict[str, Any]]] = None) -> StackDocument:
    """
    Carrega um documento de stack do disco e todos os seus módulos.

    Raises:
        DeclarationError: Se o arquivo não puder ser lido ou for estruturalmente inválido.
    """
    stack_path = Path(path)
    try:
        data = load_document(stack_path)
    except ConfigError as e:
        raise _fail(f"Não foi possível carregar o stack: {e}", path=stack_path) from e
    return parse_stack(data, path=stack_path, sources=sources)


def describe(doc: StackDocument) -> List[str]:
    """Endereços de recursos declarados, incluindo módulos (ordem lexicográfica)."""
    out: List[str] = list(sorted(doc.resources))
    for name, call in sorted(doc.modules.items()):
        out.extend(f"module.{name}.{a}" for a in describe(call.document))
    return out
