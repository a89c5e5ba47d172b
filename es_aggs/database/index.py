"""Index resolution for entity types.

This module maps entity types onto the index names an aggregation runs against. Entity
metadata is registered explicitly and cached on first lookup.
"""

import logging
import threading
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from es_aggs.exceptions import InvalidAggregationSpecError, UnresolvedEntityError
from es_aggs.models import IndexMetadata
from es_aggs.utilities import unique

logger = logging.getLogger(__name__)


def entity_name(entity_type: Any) -> str:
    """
    Translate an entity type into the name it is registered under.

    Args:
        entity_type (Any): A class or a registered string name.

    Returns:
        str: The registration key.
    """
    if isinstance(entity_type, str):
        return entity_type
    return getattr(entity_type, "__name__", str(entity_type))


class IndexMetadataRegistry:
    """Registry of entity index metadata with a first-use cache.

    Definitions are static configuration. The first lookup of an entity derives its
    `IndexMetadata` and caches it for the lifetime of the registry; concurrent first
    lookups compute equivalent values, so the last write wins harmlessly.
    """

    def __init__(self, definitions: Optional[Mapping[str, Any]] = None):
        """Initialize the registry.

        Args:
            definitions (Optional[Mapping[str, Any]]): Metadata keyed by entity name, either
                `IndexMetadata` instances or configuration dictionaries.
        """
        self._definitions: Dict[str, Any] = dict(definitions or {})
        self._cache: Dict[str, IndexMetadata] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Any) -> "IndexMetadataRegistry":
        """Create a registry from the entity registrations held by settings."""
        return cls(settings.index_metadata)

    def register(self, entity_type: Any, metadata: Any) -> None:
        """Register index metadata for an entity type.

        Args:
            entity_type (Any): Class or name of the entity.
            metadata (Any): `IndexMetadata` or a configuration dictionary.
        """
        name = entity_name(entity_type)
        if not isinstance(metadata, IndexMetadata):
            metadata = IndexMetadata.from_dict(metadata)
        with self._lock:
            self._definitions[name] = metadata
            self._cache.pop(name, None)

    def lookup(self, entity_type: Any) -> IndexMetadata:
        """Return the metadata of an entity type.

        Raises:
            UnresolvedEntityError: If nothing is registered for the entity type.
        """
        name = entity_name(entity_type)
        cached = self._cache.get(name)
        if cached is not None:
            return cached

        definition = self._definitions.get(name)
        if definition is None:
            raise UnresolvedEntityError(name)

        metadata = (
            definition
            if isinstance(definition, IndexMetadata)
            else IndexMetadata.from_dict(definition)
        )
        with self._lock:
            self._cache[name] = metadata
        logger.debug(f"Cached index metadata for '{name}': {metadata}")
        return metadata

    def __contains__(self, entity_type: Any) -> bool:
        """Check whether an entity type is registered."""
        return entity_name(entity_type) in self._definitions

    def clear_cache(self) -> None:
        """Drop cached metadata; definitions are kept."""
        with self._lock:
            self._cache.clear()


def resolve_indices(
    registry: IndexMetadataRegistry,
    entity_type: Any,
    explicit_indices: Optional[Iterable[str]] = None,
    search: bool = True,
) -> Tuple[str, ...]:
    """
    Determine the indices a request for an entity type runs against.

    Args:
        registry (IndexMetadataRegistry): Source of entity metadata.
        entity_type (Any): Class or name of the entity.
        explicit_indices (Optional[Iterable[str]]): Indices overriding the configured ones.
        search (bool): Use the search-only index names when configured.

    Returns:
        Tuple[str, ...]: Ordered, de-duplicated index names.

    Raises:
        InvalidAggregationSpecError: If an explicit index name is blank.
        UnresolvedEntityError: If no override is given and the entity is not registered.
    """
    if isinstance(explicit_indices, str):
        explicit_indices = [explicit_indices]
    explicit = list(explicit_indices or [])
    if explicit:
        if any(not isinstance(i, str) or not i.strip() for i in explicit):
            raise InvalidAggregationSpecError("Index names must be non-empty strings")
        return tuple(unique(explicit))

    metadata = registry.lookup(entity_type)
    names = metadata.search_indices if search else (metadata.index_name,)
    resolved = tuple(unique(names))
    logger.debug(f"Resolved '{entity_name(entity_type)}' to indices {resolved}")
    return resolved


def indices(index_names: Iterable[str]) -> str:
    """
    Get the comma-separated index parameter for a list of index names.

    Args:
        index_names: Index names to join.

    Returns:
        str: Index names joined by commas.
    """
    return ",".join(index_names)
