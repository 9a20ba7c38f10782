from .concept import Concept, action, query
from .engine import Engine, Flow, RequestResult
from .errors import (
    BindingConflict,
    ConceptConflictError,
    DuplicateSync,
    HyperSyncError,
    MalformedSync,
    NoSuchAction,
    NoSuchConcept,
    NoSuchQuery,
    UnboundVariable,
)
from .frames import Frame, Frames, join, unify
from .pattern import Bindings, Var, value_t
from .sync import Sync, SyncRegistry, Then, When
from .trace import ActionTrace, Completion, Trigger

__all__ = (
    'ActionTrace',
    'BindingConflict',
    'Bindings',
    'Completion',
    'Concept',
    'ConceptConflictError',
    'DuplicateSync',
    'Engine',
    'Flow',
    'Frame',
    'Frames',
    'HyperSyncError',
    'MalformedSync',
    'NoSuchAction',
    'NoSuchConcept',
    'NoSuchQuery',
    'RequestResult',
    'Sync',
    'SyncRegistry',
    'Then',
    'Trigger',
    'UnboundVariable',
    'Var',
    'When',
    'action',
    'join',
    'query',
    'value_t',
)
