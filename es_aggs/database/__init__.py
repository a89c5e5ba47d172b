"""Index resolution for es_aggs.

- index.py: Entity metadata registry and index resolution
"""

from .index import IndexMetadataRegistry, entity_name, indices, resolve_indices

__all__ = [
    "IndexMetadataRegistry",
    "entity_name",
    "indices",
    "resolve_indices",
]
