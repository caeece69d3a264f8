# src/graphform/core/engine/planner.py
"""
Resolvedor de dependências do grafo de recursos.

Este módulo valida a estrutura do grafo e produz ordens topológicas
determinísticas dos nós declarados. Opera sobre qualquer objeto que
exponha `id` (endereço) e `depends_on` (endereços dos quais depende).

Saídas:
    - plan_execution   -> ordem linear de materialização
    - execution_levels -> níveis paralelizáveis (dependências em níveis anteriores)
    - reverse_order    -> ordem de destruição (dependentes antes de dependências)

Decisões arquiteturais:
    - Variação determinística do algoritmo de Kahn
    - Empates são resolvidos por ordem lexicográfica do endereço
    - Erros estruturais são falhas fatais, detectadas antes de qualquer chamada a provider

Invariantes:
    - Nenhum nó aparece antes de suas dependências
    - Todos os nós aparecem exatamente uma vez
    - A mesma entrada produz sempre a mesma ordem

Limites explícitos:
    - Não avalia expressões
    - Não interage com providers ou state
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Set, TypeVar

from graphform.core.errors import GRAPH_CYCLE, GRAPH_UNKNOWN_REFERENCE

N = TypeVar("N")


class UnknownDependencyError(ValueError):
    """
    Exceção levantada quando um nó referencia um endereço inexistente.

    Cobre tanto referências `${...}` quanto entradas de `depends_on`.
    Nenhum nó ausente é inferido ou criado.
    """

    code = GRAPH_UNKNOWN_REFERENCE

    def __init__(self, message: str, *, address: str = "", missing: str = ""):
        super().__init__(message)
        self.address = address
        self.missing = missing


class CycleDetectedError(ValueError):
    """
    Exceção levantada quando o grafo de dependências contém um ciclo.

    O atributo `cycle` lista os endereços do ciclo encontrado, fechando no
    endereço inicial (ex.: ["a", "b", "a"]). Ciclos nunca são quebrados
    automaticamente.
    """

    code = GRAPH_CYCLE

    def __init__(self, message: str, *, cycle: Sequence[str] = ()):
        super().__init__(message)
        self.cycle = list(cycle)


def _index(nodes: Iterable[N]) -> Dict[str, N]:
    by_id: Dict[str, N] = {}
    for n in nodes:
        nid = getattr(n, "id", None)
        if not isinstance(nid, str) or not nid.strip():
            raise ValueError("node.id must be a non-empty string")
        if nid in by_id:
            raise ValueError(f"Duplicate node id: {nid}")
        by_id[nid] = n
    return by_id


def _dependencies(by_id: Dict[str, N]) -> Dict[str, List[str]]:
    deps: Dict[str, List[str]] = {}
    for nid, n in by_id.items():
        d = sorted(set(getattr(n, "depends_on", []) or []))
        for dep in d:
            if dep not in by_id:
                raise UnknownDependencyError(
                    f"Node '{nid}' depends on unknown node '{dep}'",
                    address=nid,
                    missing=dep,
                )
        deps[nid] = d
    return deps


def _find_cycle(remaining: Set[str], deps: Dict[str, List[str]]) -> List[str]:
    """Localiza um ciclo entre nós que o Kahn não conseguiu ordenar."""
    for start in sorted(remaining):
        path: List[str] = []
        on_path: Set[str] = set()
        visited: Set[str] = set()

        def _dfs(nid: str) -> List[str]:
            path.append(nid)
            on_path.add(nid)
            visited.add(nid)
            for dep in deps[nid]:
                if dep not in remaining:
                    continue
                if dep in on_path:
                    return path[path.index(dep):] + [dep]
                if dep not in visited:
                    found = _dfs(dep)
                    if found:
                        return found
            path.pop()
            on_path.discard(nid)
            return []

        found = _dfs(start)
        if found:
            return found
    return sorted(remaining)


def _kahn(by_id: Dict[str, N], deps: Dict[str, List[str]]) -> List[str]:
    incoming_count: Dict[str, int] = {nid: len(d) for nid, d in deps.items()}
    outgoing: Dict[str, Set[str]] = {nid: set() for nid in by_id}
    for nid, dlist in deps.items():
        for dep in dlist:
            outgoing[dep].add(nid)

    ready: List[str] = sorted(nid for nid, c in incoming_count.items() if c == 0)
    order_ids: List[str] = []

    while ready:
        nid = ready.pop(0)  # smallest lexicographic
        order_ids.append(nid)
        for child in sorted(outgoing[nid]):
            incoming_count[child] -= 1
            if incoming_count[child] == 0:
                ready.append(child)
                ready.sort()

    if len(order_ids) != len(by_id):
        cycle = _find_cycle(set(by_id) - set(order_ids), deps)
        raise CycleDetectedError(
            f"Cycle detected in dependency graph: {' -> '.join(cycle)}",
            cycle=cycle,
        )
    return order_ids


def plan_execution(nodes: Iterable[N]) -> List[N]:
    """
    Valida e produz uma ordem topológica determinística de nós.

    Args:
        nodes (Iterable[N]): Nós com `id` e `depends_on`.

    Returns:
        List[N]: Nós em ordem de materialização.

    Raises:
        ValueError: Se algum nó possuir `id` inválido ou duplicado.
        UnknownDependencyError: Se um nó declarar dependência inexistente.
        CycleDetectedError: Se houver ciclo no grafo de dependências.
    """
    by_id = _index(nodes)
    deps = _dependencies(by_id)
    return [by_id[nid] for nid in _kahn(by_id, deps)]


def execution_levels(nodes: Iterable[N]) -> List[List[N]]:
    """
    Agrupa nós em níveis: cada nó fica no primeiro nível posterior a todas
    as suas dependências. Nós de um mesmo nível são independentes entre si.
    """
    by_id = _index(nodes)
    deps = _dependencies(by_id)
    level_of: Dict[str, int] = {}
    for nid in _kahn(by_id, deps):
        level_of[nid] = 1 + max((level_of[d] for d in deps[nid]), default=-1)

    levels: List[List[N]] = [[] for _ in range(max(level_of.values(), default=-1) + 1)]
    for nid in sorted(level_of):
        levels[level_of[nid]].append(by_id[nid])
    return levels


def reverse_order(nodes: Iterable[N]) -> List[N]:
    """Ordem de destruição: todo nó aparece antes de suas dependências."""
    return list(reversed(plan_execution(nodes)))
