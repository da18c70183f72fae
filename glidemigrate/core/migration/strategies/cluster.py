"""Cluster strategy.

Rewrites cluster construction (``new Redis.Cluster(nodes)``,
``new Cluster(nodes)``, node-redis ``createCluster({ rootNodes })``) into
``GlideClusterClient.createClient``; seed nodes are passed through as the
``addresses`` list.
"""

from typing import List

from ..context import MigrationContext
from ..models import StrategyKind
from ..rules.base import TransformRule
from ..rules.clients import IoredisClusterRule, NodeRedisClusterRule
from .base import MigrationStrategy

FAILOVER_WARNING = (
    "Cluster failover behavior may differ: GLIDE discovers topology and "
    "handles MOVED/ASK redirects itself"
)
REVIEW_NOTE = (
    "Review cluster configuration: seed node addresses were carried over "
    "as-is; GLIDE needs only a subset of nodes to discover the cluster"
)


class ClusterStrategy(MigrationStrategy):

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.CLUSTER

    @property
    def display_name(self) -> str:
        return "Cluster (GlideClusterClient)"

    def strategy_rules(self, ctx: MigrationContext) -> List[TransformRule]:
        return [IoredisClusterRule(), NodeRedisClusterRule()]

    def announce(self, ctx: MigrationContext) -> None:
        ctx.warn(FAILOVER_WARNING)
        ctx.note(REVIEW_NOTE)
