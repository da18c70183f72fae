"""Naive strategy: the source client's rule set and nothing else."""

from ..models import StrategyKind
from .base import MigrationStrategy


class NaiveStrategy(MigrationStrategy):

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.NAIVE

    @property
    def display_name(self) -> str:
        return "Naive (one-to-one rewrites)"
