# src/graphform/__init__.py
"""
Graphform: engine declarativo de grafo de recursos.

Um stack declara variáveis, locals, módulos, recursos e outputs em
YAML/JSON. O Graphform resolve referências entre eles em um grafo
acíclico, calcula um plano contra o último state conhecido e aplica as
mudanças em ordem de dependências por meio de handlers plugáveis.

Arquitetura em alto nível:
    - core.config       -> carregamento, merge e hashing de configuração
    - core.declaration  -> stacks, módulos e expressões `${...}`
    - core.graph        -> endereços, arestas e ordenação
    - core.resource     -> protocolo de handlers, registry e contexto de run
    - core.state        -> state JSON com serial, lineage, backup e lock
    - core.engine       -> plan, apply e renderização
    - core.traceability -> journal de execução
    - providers         -> handlers locais embutidos
    - cli               -> interface de linha de comando
"""

__version__ = "0.1.0"
