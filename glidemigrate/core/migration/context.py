"""Request-scoped migration state.

One :class:`MigrationContext` is created per request and discarded with it.
Rules read facts discovered earlier in the pipeline from here (source client
bindings, tracked batch variables) and report warnings/notes through it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from ..config import MigrationConfig
from .models import ComplexityLevel, PatternTag, SourceClient


@dataclass
class MigrationContext:
    source_client: SourceClient
    config: MigrationConfig
    complexity: ComplexityLevel = ComplexityLevel.SIMPLE
    patterns: Tuple[PatternTag, ...] = ()

    warnings: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    # Local names bound by the source import statements:
    #   client_bindings     ioredis constructor (``Redis``) / node-redis ``createClient``
    #   cluster_bindings    ioredis ``{ Cluster }`` / node-redis ``createCluster``
    #   namespace_bindings  node-redis module object (``redis`` in ``redis.createClient()``)
    client_bindings: Set[str] = field(default_factory=set)
    cluster_bindings: Set[str] = field(default_factory=set)
    namespace_bindings: Set[str] = field(default_factory=set)

    # Batch variable -> client expression that executes it
    tracked_batches: Dict[str, str] = field(default_factory=dict)

    @property
    def is_ioredis(self) -> bool:
        return self.source_client == SourceClient.IOREDIS

    def has_pattern(self, tag: PatternTag) -> bool:
        return tag in self.patterns

    def constructor_names(self) -> Set[str]:
        """Names that construct an ioredis client (``new <name>(...)``)."""
        if self.client_bindings:
            return set(self.client_bindings)
        return set(self.config.ioredis.client_classes)

    def factory_names(self) -> Set[str]:
        """node-redis client factory names (``createClient``)."""
        if self.client_bindings:
            return set(self.client_bindings)
        return set(self.config.node_redis.factory_names)

    def cluster_factory_names(self) -> Set[str]:
        """ioredis ``Cluster`` class aliases / node-redis ``createCluster`` aliases."""
        if self.cluster_bindings:
            return set(self.cluster_bindings)
        if self.is_ioredis:
            return {"Cluster"}
        return set(self.config.node_redis.cluster_factory_names)

    def warn(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def note(self, message: str) -> None:
        if message not in self.notes:
            self.notes.append(message)
