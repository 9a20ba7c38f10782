'''
Values, logical variables and the binary pattern matcher shared by [when]
clauses, query outputs and [then] templates.
'''

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import overload

from .errors import UnboundVariable

@dataclass(frozen=True)
class Var:
    name: str

    def __str__(self):
        return f"?{self.name}"

type simple_t = None | bool | int | float | str | bytes
type composite_t[K, V] = simple_t | Sequence[V] | Mapping[K, V]
type var_t[K] = composite_t[K, var_t[K]] | Var

type value_t = composite_t[str, value_t]
type bind_t = var_t[str]

type Pattern = Mapping[str, bind_t]
type Template = Mapping[str, bind_t]
type Bindings = Mapping[str, value_t]

def pattern_vars(x: bind_t) -> set[str]:
    '''Names of every variable appearing in a pattern.'''
    match x:
        case Var(name):
            return {name}
        case dict():
            return {n for v in x.values() for n in pattern_vars(v)}
        case list() | tuple():
            return {n for v in x for n in pattern_vars(v)}
        case _:
            return set()

def mutable_hash(value: value_t) -> int:
    '''Hash mutable values to quickly check for identity.'''
    match value:
        case list() | tuple():
            return hash(tuple(map(mutable_hash, value)))
        case dict():
            return hash(tuple(sorted(
                (k, mutable_hash(v)) for k, v in value.items()
            )))
        case _:
            return hash(value)

def is_value(value: object) -> bool:
    '''Whether a value is plain data which can be matched and hashed.'''
    match value:
        case None | bool() | int() | float() | str() | bytes():
            return True
        case list() | tuple():
            return all(map(is_value, value))
        case dict():
            return all(
                isinstance(k, str) and is_value(v)
                    for k, v in value.items()
            )
        case _:
            return False

def match_pattern(
        pattern: bind_t,
        data: value_t,
        bindings: Bindings
    ) -> Bindings | None:
    '''
    Match a simple binary pattern, as in the [when] clause. Return the
    bindings on match, else None. Keys missing from the data fail the match,
    extra keys in the data are ignored.
    '''

    match pattern:
        # Variable binding
        case Var(name=name):
            if name in bindings:
                if data == bindings[name]:
                    return bindings
            else:
                return {**bindings, name: data}

        # Deconstruction
        case dict():
            # {} matches anything
            if not isinstance(data, dict):
                if not pattern:
                    return bindings
                return

            for k, p in pattern.items():
                if k not in data:
                    return
                if (bs := match_pattern(p, data[k], bindings)) is None:
                    return
                bindings = bs

            return bindings

        # Sequence match
        case list():
            if not isinstance(data, list) or len(pattern) != len(data):
                return

            for p, d in zip(pattern, data):
                if (bs := match_pattern(p, d, bindings)) is None:
                    return
                bindings = bs
            return bindings

        # Literal match
        case _ if pattern == data:
            return bindings

@overload
def resolve(template: Template, env: Bindings) -> Bindings: ...
@overload
def resolve(template: bind_t, env: Bindings) -> value_t: ...

def resolve(template: bind_t, env: Bindings) -> value_t:
    '''Substitute the variables of a template from the environment.'''
    match template:
        case Var(name):
            try:
                return env[name]
            except KeyError:
                raise UnboundVariable(name) from None
        case dict():
            return {str(k): resolve(v, env) for k, v in template.items()}
        case list() | tuple():
            return [resolve(v, env) for v in template]
        case None | bool() | int() | float() | str() | bytes():
            return template
        case _:
            raise TypeError(f"Unsupported template value {template!r}")
