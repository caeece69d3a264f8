# src/graphform/core/__init__.py
"""
Core do Graphform.

Este pacote reúne as responsabilidades essenciais para declarar,
planejar e aplicar stacks, independente de CLI ou providers concretos.

Princípios fundamentais:
    - Nenhuma decisão silenciosa: todo comportamento é explícito e testado
    - Separação estrita entre declaração, plano, aplicação e state
    - Efeitos colaterais acontecem apenas em handlers, durante o apply

Limites explícitos:
    - Não implementa providers de nuvem
    - Não depende de CLI ou terminal
"""
