'''
Frames are immutable sets of variable bindings, each representing one
candidate match of a sync. `Frames` is the collection handed to [where]
clauses, with helpers to filter, derive and enrich frames from concept
queries.
'''

from collections.abc import Callable, Iterable, Iterator, Mapping
import logging
from typing import TYPE_CHECKING, Protocol, overload, override

from .errors import BindingConflict
from .pattern import Bindings, Pattern, Template, match_pattern, mutable_hash, resolve, value_t

if TYPE_CHECKING:
    from .engine import QueryId

__all__ = (
    'Frame',
    'Frames',
    'QueryRunner',
    'join',
    'unify',
)

logger = logging.getLogger(__name__)

class Frame(Mapping[str, value_t]):
    '''
    An immutable binding of variable names to values. Frames hash by value
    so identical matches can be recognized across a request.
    '''

    __slots__ = ('_data', '_hash')

    def __init__(self, data: Bindings | Iterable[tuple[str, value_t]] = (), /, **kw: value_t):
        super().__init__()
        self._data: dict[str, value_t] = {**dict(data), **kw}
        self._hash: int | None = None

    def __getitem__(self, key: str) -> value_t:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    @override
    def __eq__(self, other):
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __hash__(self):
        if self._hash is None:
            self._hash = mutable_hash(self._data)
        return self._hash

    def __repr__(self):
        return f"Frame({self._data!r})"

    def bind(self, other: Bindings = {}, /, **kw: value_t) -> 'Frame':
        '''
        Derive a frame with additional bindings. Rebinding an existing name
        to a different value raises BindingConflict.
        '''
        if (frame := unify(self, Frame(other, **kw))) is None:
            raise BindingConflict(other or kw)
        return frame

    def replace(self, other: Bindings = {}, /, **kw: value_t) -> 'Frame':
        '''Derive a frame, overwriting any existing bindings.'''
        return Frame({**self._data, **other, **kw})

    def to_dict(self) -> dict[str, value_t]:
        return dict(self._data)

def unify(a: Bindings, b: Bindings) -> Frame | None:
    '''
    Unify two frames. Shared names must be structurally equal, in which case
    the union of both is returned, otherwise None.
    '''
    if len(b) > len(a):
        a, b = b, a

    for k, v in b.items():
        if k in a and a[k] != v:
            return None

    return Frame({**a, **b})

def join(left: Iterable[Bindings], right: Iterable[Bindings]) -> list[Frame]:
    '''
    Natural join of two frame sets over their shared variable names. Frames
    with no shared names degenerate to a Cartesian product.
    '''
    right = list(right)
    return [
        f for l in left for r in right
            if (f := unify(l, r)) is not None
    ]

class QueryRunner(Protocol):
    async def query(self, query: 'QueryId', params: Bindings) -> list[Bindings]: ...

class Frames(list[Frame]):
    '''
    The frame set passed through a sync's [where] clause. Every method
    returns a new collection bound to the same query runner.
    '''

    runner: QueryRunner | None

    def __init__(self, frames: Iterable[Bindings] = (), runner: QueryRunner | None = None):
        super().__init__(f if isinstance(f, Frame) else Frame(f) for f in frames)
        self.runner = runner

    def _derive(self, frames: Iterable[Bindings]) -> 'Frames':
        return Frames(frames, self.runner)

    @overload
    def __getitem__(self, index: int) -> Frame: ...
    @overload
    def __getitem__(self, index: slice) -> 'Frames': ...

    def __getitem__(self, index: int | slice):
        if isinstance(index, slice):
            return self._derive(super().__getitem__(index))
        return super().__getitem__(index)

    def filter(self, pred: Callable[[Frame], bool]) -> 'Frames':
        return self._derive(f for f in self if pred(f))

    def map(self, fn: Callable[[Frame], Bindings]) -> 'Frames':
        '''
        Derive each frame with the mapping returned by fn. Returned names
        overwrite existing bindings.
        '''
        return self._derive(f.replace(fn(f)) for f in self)

    def bind(self, other: Bindings = {}, /, **kw: value_t) -> 'Frames':
        '''Bind the same values into every frame, dropping conflicts.'''
        return self._derive(join(self, [Frame(other, **kw)]))

    async def query(self,
            query: 'QueryId',
            inputs: Template,
            outputs: Pattern
        ) -> 'Frames':
        '''
        Enrich the frames with a concept query. Each result row matching the
        output pattern yields one derived frame; frames whose query returns
        no rows are dropped.
        '''
        if self.runner is None:
            raise RuntimeError("Frames are not bound to a query runner.")

        result: list[Frame] = []
        for frame in self:
            rows = await self.runner.query(query, resolve(inputs, frame))
            for row in rows:
                if (bs := match_pattern(dict(outputs), dict(row), frame)) is not None:
                    result.append(Frame(bs))

        logger.debug("%s: %d frame(s) -> %d frame(s)", query, len(self), len(result))
        return self._derive(result)
