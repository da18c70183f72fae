"""Transaction strategy.

``pipeline()`` / ``multi()`` objects become GLIDE ``Transaction`` / ``Batch``
objects that the client executes: ``client.exec(tx)``. Bound variables are
tracked so their later ``.exec()`` calls can be routed through the client.
"""

from typing import List

from ..context import MigrationContext
from ..models import StrategyKind
from ..rules.base import TransformRule
from ..rules.batch import (
    BatchBindingRule,
    BatchChainRule,
    ExecFallbackRule,
    TrackedBatchRepairRule,
    TrackedExecRule,
    UnboundBatchRule,
)
from .base import MigrationStrategy

BOUND = {"pipeline": "new Transaction(false)", "multi": "new Transaction(true)"}
UNBOUND = {"pipeline": "new Batch(false)", "multi": "new Batch(true)"}


class TransactionStrategy(MigrationStrategy):

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.TRANSACTION

    @property
    def display_name(self) -> str:
        return "Transaction (Transaction / Batch objects)"

    def strategy_rules(self, ctx: MigrationContext) -> List[TransformRule]:
        return [
            BatchBindingRule("transaction-binding", BOUND),
            BatchChainRule(
                "transaction-chain", UNBOUND,
                terminals={"exec": None, "execAsPipeline": "new Batch(false)"},
            ),
            UnboundBatchRule("unbound-batch", UNBOUND),
            TrackedExecRule(),
            TrackedBatchRepairRule(),
            ExecFallbackRule(),
        ]
