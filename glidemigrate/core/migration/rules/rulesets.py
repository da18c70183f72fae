"""Ordered rule lists.

The order of each list is part of its contract; pipelines additionally sort
stably by phase, so phase boundaries hold even when lists are concatenated.
Rule objects are built per call and hold no request state.
"""

from typing import List

from ..models import SourceClient
from .base import TransformRule
from .batch import BatchBindingRule, BatchChainRule, TrackedExecRule, UnboundBatchRule
from .clients import (
    BareConstructorRule,
    BareFactoryRule,
    DynamicUrlConstructorRule,
    ObjectConstructorRule,
    OptionsFactoryRule,
    PositionalConstructorRule,
    UrlConstructorRule,
    UrlFactoryRule,
)
from .commands import (
    ArrayArgumentsRule,
    BlockingCommandsRule,
    CloseClientRule,
    ConditionalSetRule,
    ExpiryShorthandRule,
    HashArgumentsRule,
    MethodRenameRule,
    SetOptionsRule,
)
from .common import ArrayKeysRule
from .imports import EsImportRule, ImportSymbolsRule, RequireImportRule
from .lifecycle import ConnectDropRule, EventHandlerRule
from .pubsub import SubscribeNoticeRule, SubscribeTodoRule
from .scripting import EvalRule, NodeRedisEvalRule, ScriptCacheTodoRule


def ioredis_rules() -> List[TransformRule]:
    pipeline = {"pipeline": "new Transaction()"}
    return [
        EsImportRule(),
        RequireImportRule(),
        BareConstructorRule(),
        PositionalConstructorRule(),
        UrlConstructorRule(),
        DynamicUrlConstructorRule(),
        ObjectConstructorRule(),
        ExpiryShorthandRule(),
        BatchBindingRule("pipeline-binding", pipeline),
        TrackedExecRule(),
        BatchChainRule("pipeline-chain", pipeline),
        UnboundBatchRule("unbound-pipeline", pipeline),
        CloseClientRule(),
        ConditionalSetRule(),
        ArrayArgumentsRule(),
        EvalRule(),
        SubscribeNoticeRule(),
        BlockingCommandsRule(),
        HashArgumentsRule(),
        EventHandlerRule(),
    ]


def node_redis_rules() -> List[TransformRule]:
    multi = {"multi": "new Transaction()"}
    return [
        EsImportRule(),
        RequireImportRule(),
        BareFactoryRule(),
        UrlFactoryRule(),
        OptionsFactoryRule(),
        ConnectDropRule(),
        CloseClientRule(),
        MethodRenameRule(),
        HashArgumentsRule(),
        ExpiryShorthandRule(),
        SetOptionsRule(),
        BatchChainRule("multi-chain", multi, terminals={"exec": None, "execAsPipeline": "new Batch(false)"}),
        BatchBindingRule("multi-binding", multi),
        TrackedExecRule(),
        SubscribeTodoRule(),
        NodeRedisEvalRule(),
        ScriptCacheTodoRule(),
        EventHandlerRule(),
        BlockingCommandsRule(),
    ]


def naive_rules(source_client: SourceClient) -> List[TransformRule]:
    if source_client == SourceClient.IOREDIS:
        return ioredis_rules()
    return node_redis_rules()


def closing_rules() -> List[TransformRule]:
    """Import symbol sync followed by the common transformer."""
    return [ImportSymbolsRule(), ArrayKeysRule()]
