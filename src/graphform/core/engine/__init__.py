# src/graphform/core/engine/__init__.py
"""
Engine do Graphform.

Este pacote contém a implementação responsável por **planejar** e
**aplicar** mudanças de infraestrutura declaradas em stacks, respeitando
o grafo de dependências, o state persistido e a configuração resolvida.

Componentes principais:
    - planner   -> ordenação topológica determinística e validações estruturais
    - evaluator -> avaliação de expressões no escopo de cada nó
    - plan      -> diff entre estado desejado e observado (Plan)
    - executor  -> aplicação coordenada do Plan via handlers
    - render    -> representação textual do Plan para operadores
    - engine    -> fachada que amarra declarações, state e configuração

Princípios fundamentais:
    - Plan e apply são responsabilidades separadas
    - A ordem de execução é determinística para o mesmo grafo
    - Um plano só é aplicado sobre o state em que foi calculado

Invariantes:
    - Recursos só são criados após suas dependências
    - Recursos só são destruídos após seus dependentes
    - O resultado do apply reflete explicitamente o estado de cada mudança

Limites explícitos:
    - Não implementa handlers de provider
    - Não depende de CLI ou UI
"""
