'''
Synchronizations and the registry indexing them by the actions they react
to.
'''

from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import KW_ONLY, dataclass, field
from types import MappingProxyType

from .errors import DuplicateSync, MalformedSync
from .frames import Frames
from .pattern import Bindings, Pattern, Template, Var, match_pattern, pattern_vars
from .trace import ActionId, Completion

type WhereFn = Callable[[Frames], Frames | Awaitable[Frames]]

@dataclass(frozen=True)
class When:
    '''
    [When] clause of a sync. Determines a set of actions to match against and
    provides variable binding.
    '''

    action: ActionId
    '''The action to match against.'''
    params: Pattern = field(default_factory=dict)
    '''Parameter bindings.'''
    result: Pattern = field(default_factory=dict)
    '''Result bindings.'''

    @property
    def on_error(self) -> bool:
        '''
        Whether this clause matches error completions instead of successes,
        either by binding the error or by pinning the status to "error".
        '''
        return "error" in self.result or self.result.get("status") == "error"

    def variables(self) -> set[str]:
        return pattern_vars(dict(self.params)) | pattern_vars(dict(self.result))

    def match(self,
            completion: Completion,
            bindings: Bindings = {}
        ) -> Bindings | None:
        '''Attempt to match a completion with bindings, None on failure.'''

        if self.action != completion.action:
            return
        if completion.ok == self.on_error:
            return

        if (bs := match_pattern(dict(self.params), dict(completion.params), bindings)) is None:
            return
        bindings = bs

        if self.result:
            if (bs := match_pattern(dict(self.result), dict(completion.result), bindings)) is None:
                return
            bindings = bs

        return bindings

@dataclass(frozen=True)
class Then:
    '''
    [Then] clause of a sync specifying which action to invoke with the sync's
    bindings.
    '''

    action: ActionId | Var
    '''Action to invoke.'''
    params: Template = field(default_factory=dict)
    '''The parameters to invoke the action.'''

    def variables(self) -> set[str]:
        vs = pattern_vars(dict(self.params))
        if isinstance(self.action, Var):
            vs.add(self.action.name)
        return vs

@dataclass(frozen=True)
class Sync:
    '''
    A synchronization which coordinates concepts by pattern-matching over
    actions within a request and invokes new actions.
    '''

    name: str
    '''A readable name, unique within a registry.'''
    purpose: str = ""
    '''What does the sync do?'''

    _: KW_ONLY

    when: list[When] = field(default_factory=list)
    '''When clauses, determining when and what it should match.'''
    where: WhereFn | None = None
    '''Where clause, refine frames to zero or more frames.'''
    then: list[Then] = field(default_factory=list)
    '''Then clause, lists actions to invoke with their parameters.'''

    def __post_init__(self):
        if not self.when:
            raise MalformedSync(f"{self.name}: a sync needs at least one [when] clause")

        # Without a [where] every [then] variable must come from [when]
        if self.where is None:
            bound = set[str]().union(*(w.variables() for w in self.when))
            for then in self.then:
                if missing := then.variables() - bound:
                    raise MalformedSync(
                        f"{self.name}: [then] {then.action} uses unbound "
                        + ", ".join(f"?{v}" for v in sorted(missing))
                    )

    def __str__(self):
        return self.name

    def actions(self) -> set[ActionId]:
        '''Actions the sync reacts to.'''
        return {when.action for when in self.when}

class SyncRegistry:
    '''
    Immutable set of syncs loaded at startup, indexed by the actions their
    [when] clauses depend on.
    '''

    __slots__ = ('_syncs', '_deps')

    _syncs: Mapping[str, Sync]
    _deps: Mapping[ActionId, tuple[Sync, ...]]

    def __init__(self, syncs: Iterable[Sync] = ()):
        super().__init__()
        byname: dict[str, Sync] = {}
        deps: defaultdict[ActionId, list[Sync]] = defaultdict(list)

        for sync in syncs:
            if sync.name in byname:
                raise DuplicateSync(sync.name)
            byname[sync.name] = sync
            for act in sorted(sync.actions()):
                deps[act].append(sync)

        object.__setattr__(self, '_syncs', MappingProxyType(byname))
        object.__setattr__(self, '_deps', MappingProxyType(
            {k: tuple(v) for k, v in deps.items()}
        ))

    def __setattr__(self, name, value):
        raise AttributeError("SyncRegistry is immutable")

    def __iter__(self):
        return iter(self._syncs.values())

    def __len__(self):
        return len(self._syncs)

    def __contains__(self, name: str):
        return name in self._syncs

    def __getitem__(self, name: str) -> Sync:
        return self._syncs[name]

    def extend(self, *syncs: Sync) -> 'SyncRegistry':
        '''Return a new registry with additional syncs.'''
        return SyncRegistry([*self._syncs.values(), *syncs])

    def syncs_for(self, action: ActionId) -> tuple[Sync, ...]:
        '''Every sync whose [when] clause references the action.'''
        return self._deps.get(action, ())
