"""
app/domain/resources.py

Resource types and the per-provider dependency-ordered catalog.

The order of a catalog is authored by hand to follow the provider's
foreign-key graph: a type never references a type that appears after it.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass


class UnknownResourceError(ValueError):
    """Raised when a resource name is not part of a provider's catalog."""


@dataclass(frozen=True)
class ResourceType:
    """
    One syncable class of remote object.

    ``parent`` marks a dependent lookup: records are listed per stored parent
    id instead of through a flat top-level listing. ``parent_filter`` narrows
    which stored parents are visited (matched against top-level document
    fields). ``parent_field`` is the document field carrying the parent id.
    """

    name: str
    singular: str
    parent: str | None = None
    parent_filter: tuple[tuple[str, str], ...] = ()
    parent_field: str | None = None

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").capitalize()

    @property
    def is_dependent(self) -> bool:
        return self.parent is not None


class ResourceCatalog:
    """
    Ordered, immutable set of resource types for one provider.
    """

    def __init__(
        self,
        provider: str,
        resources: Sequence[ResourceType],
        core: Iterable[str],
    ) -> None:
        self.provider = provider
        self._resources: tuple[ResourceType, ...] = tuple(resources)
        self._by_name = {resource.name: resource for resource in self._resources}
        self._by_singular = {resource.singular: resource for resource in self._resources}

        seen: set[str] = set()
        for resource in self._resources:
            if resource.parent is not None and resource.parent not in seen:
                raise ValueError(
                    f"{provider}: '{resource.name}' depends on '{resource.parent}' "
                    "which is not declared before it."
                )
            seen.add(resource.name)

        self.core: tuple[str, ...] = tuple(self.get(name).name for name in core)

    def __iter__(self):
        return iter(self._resources)

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name or name in self._by_singular

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(resource.name for resource in self._resources)

    def get(self, name: str) -> ResourceType:
        """Resolve a plural or singular resource name."""
        resource = self._by_name.get(name) or self.by_singular(name)
        if resource is None:
            raise UnknownResourceError(f"Unknown {self.provider} resource: {name}")
        return resource

    def by_singular(self, singular: str) -> ResourceType | None:
        return self._by_singular.get(singular)

    def children_of(self, name: str) -> list[ResourceType]:
        return [resource for resource in self._resources if resource.parent == name]

    def ordered(self, requested: Iterable[str] | None = None) -> list[ResourceType]:
        """
        Return the requested resource types in catalog order.

        ``None`` selects the core subset. Every name is validated before
        anything is returned, so an unknown name rejects the whole request.
        """
        if requested is None:
            wanted = set(self.core)
        else:
            wanted = {self.get(name).name for name in requested}
        return [resource for resource in self._resources if resource.name in wanted]
