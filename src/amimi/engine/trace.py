'''
The action trace: an append-only record of every action completed while
processing one request.
'''

from collections.abc import Iterator
from dataclasses import dataclass, field

from .pattern import Bindings, value_t

type ConceptId = str # concept
type ActionId = str # concept/action

@dataclass(frozen=True)
class Trigger:
    '''Record of a sync which was triggered and why.'''

    sync: str
    '''Name of the sync which dispatched the action.'''
    cause: int
    '''Sequence number of the completion whose arrival fired the sync.'''
    frame: Bindings
    '''The bindings the [then] clause was resolved with.'''

@dataclass(frozen=True)
class Completion:
    '''A record of an action being completed.'''

    seq: int
    '''Position of the completion within its trace.'''
    action: ActionId
    '''The name of the action being completed.'''
    params: Bindings
    '''Params passed to the action.'''
    result: Bindings
    '''Result of the completion.'''
    error: value_t | None = None
    '''Error marker, None when the action succeeded.'''
    depth: int = 0
    '''Number of dispatches between the initiating request and this.'''
    trigger: Trigger | None = None
    '''The trigger for the completion. None for the initiating action.'''

    @property
    def ok(self):
        return self.error is None

def error_of(result: Bindings) -> value_t | None:
    '''The error marker of an action result, None on success.'''
    if result.get("status") == "error":
        return result.get("error", "error")
    return result.get("error")

@dataclass
class ActionTrace:
    '''Completions of one request, totally ordered by sequence number.'''

    entries: list[Completion] = field(default_factory=list)

    def __iter__(self) -> Iterator[Completion]:
        return iter(self.entries)

    def __len__(self):
        return len(self.entries)

    def __getitem__(self, seq: int) -> Completion:
        return self.entries[seq]

    def append(self,
            action: ActionId,
            params: Bindings,
            result: Bindings,
            depth: int = 0,
            trigger: Trigger | None = None
        ) -> Completion:
        '''Record a new completion at the end of the trace.'''
        cmp = Completion(
            seq=len(self.entries),
            action=action,
            params=params,
            result=result,
            error=error_of(result),
            depth=depth,
            trigger=trigger
        )
        self.entries.append(cmp)
        return cmp

    def before(self, seq: int) -> list[Completion]:
        '''Completions appended before the given sequence number.'''
        return self.entries[:seq]

    def of(self, action: ActionId) -> list[Completion]:
        return [c for c in self.entries if c.action == action]
