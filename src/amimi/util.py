from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from functools import wraps
import secrets

from uuid_extension import uuid7

def todo_iter[C, T](fn: Callable[[C], T]):
    '''
    Iterate over a stack, removing items as they are yielded. This can be
    appended to during iteration.
    '''
    @wraps(fn)
    def wrapper(todo: C) -> Iterable[T]:
        while todo: yield fn(todo)
    return wrapper

@todo_iter
def todo_list[T](todo: list[T]):
    return todo.pop(0)

def new_id() -> str:
    '''Time-ordered unique identifier for documents and requests.'''
    return str(uuid7().uuid7)

def new_code(nbytes: int = 4) -> str:
    '''Short human-shareable code, uppercase hex.'''
    return secrets.token_hex(nbytes).upper()

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def iso8601(dt: datetime) -> str:
    return dt.isoformat()
