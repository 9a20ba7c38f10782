from collections.abc import Awaitable, Callable, Mapping
from functools import wraps
import inspect
from typing import Any, ClassVar, cast, override

from .pattern import Bindings

type State = dict[str, dict[str, Any]]

def ignore_extra(func: Callable):
    '''Process the function as if it has a dummy **kwargs parameter.'''
    sig = inspect.signature(func)
    accepted = set[str]()

    for name, param in sig.parameters.items():
        if param.kind in (
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
                inspect.Parameter.KEYWORD_ONLY,
            ):
            accepted.add(name)
        elif param.kind == inspect.Parameter.VAR_KEYWORD:
            # Don't need to ignore if there's a kwargs
            return func

    @wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **{
            k: v for k, v in kwargs.items() if k in accepted
        })

    return wrapper

def action[**P](name: Callable[P, Awaitable[Mapping[str, object]]] | str):
    '''Expose a coroutine method as a concept action, optionally renamed.'''
    def inner(func: Callable[P, Awaitable[Mapping[str, object]]]):
        func._action_name = name # pyright: ignore [reportFunctionMemberAccess]
        return ignore_extra(func)

    if isinstance(name, str):
        return inner

    func, name = name, name.__name__
    return inner(func)

def query[**P](name: Callable[P, Awaitable[list[Mapping[str, object]]]] | str):
    '''
    Expose a coroutine method as a read-only concept query returning zero or
    more rows. Query names start with an underscore by convention.
    '''
    def inner(func: Callable[P, Awaitable[list[Mapping[str, object]]]]):
        func._query_name = name # pyright: ignore [reportFunctionMemberAccess]
        return ignore_extra(func)

    if isinstance(name, str):
        return inner

    func, name = name, name.__name__
    return inner(func)

class ConceptMeta(type):
    '''Aggregates actions and queries from decorators.'''

    @override
    def __new__(cls, name: str, bases: tuple, dct: dict):
        actions: dict[str, str] = {}
        queries: dict[str, str] = {}
        for base in bases:
            actions.update(getattr(base, 'actions', {}))
            queries.update(getattr(base, 'queries', {}))

        for k, v in dct.items():
            if (n := getattr(v, "_action_name", None)):
                actions[n] = k
                del v._action_name
            if (n := getattr(v, "_query_name", None)):
                queries[n] = k
                del v._query_name

        dct['actions'] = actions
        dct['queries'] = queries

        if 'name' not in dct:
            dct['name'] = name.removesuffix("Concept") or name

        if 'purpose' not in dct:
            dct['purpose'] = dct.get('__doc__') or ""

        return super().__new__(cls, name, bases, dct)

class Concept(metaclass=ConceptMeta):
    '''Stateful locus of behavior.'''

    # Provided by metaclass

    actions: ClassVar[dict[str, str]]
    '''Action names mapped to the methods implementing them.'''
    queries: ClassVar[dict[str, str]]
    '''Query names mapped to the methods implementing them.'''

    # Overloadable (by default calculated from __name__ and __doc__)

    name: ClassVar[str]
    '''The concept's name.'''
    purpose: ClassVar[str]
    '''What value does this concept add?'''

    state: State
    '''
    The concept's state, one collection per kind of document:
    {collection: {id: document}}
    '''

    def __init__(self):
        super().__init__()
        self.state = {}

    def collection(self, name: str) -> dict[str, Any]:
        return self.state.setdefault(name, {})

    def bound_action(self, name: str) -> Callable[..., Awaitable[Bindings]] | None:
        if (method := self.actions.get(name)) is None:
            return None
        return cast(Callable[..., Awaitable[Bindings]], getattr(self, method))

    def bound_query(self, name: str) -> Callable[..., Awaitable[list[Bindings]]] | None:
        if (method := self.queries.get(name)) is None:
            return None
        return cast(Callable[..., Awaitable[list[Bindings]]], getattr(self, method))
