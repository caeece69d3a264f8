# src/graphform/core/graph/__init__.py
"""Grafo de recursos: nós endereçáveis, arestas de dependência e ordenação."""

from .builder import ResourceGraph, build_graph
from .types import GraphNode, NodeKind, module_prefix

__all__ = ["GraphNode", "NodeKind", "ResourceGraph", "build_graph", "module_prefix"]
