"""Entity graph snapshot and its computed aggregates"""

from .entity_graph import EntityGraph, GraphStats, IntegrityReport, IntegrityWarning, build_entity_graph

__all__ = [
    'EntityGraph',
    'GraphStats',
    'IntegrityReport',
    'IntegrityWarning',
    'build_entity_graph'
]
