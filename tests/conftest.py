import pytest

from amimi.agent import Companion, CompanionError
from amimi.config import Config, EngineConfig
from amimi.engine import Concept, Engine, SyncRegistry, action, query
from amimi.server import build_engine

class StubCompanion(Companion):
    '''Companion answering without calling a model.'''

    def __init__(self, reply: str | None = "Sounds lovely!"):
        super().__init__()
        self.reply = reply
        self.prompts: list[str] = []

    async def complete(self, messages):
        self.prompts.append(messages[-1]['content'])
        if self.reply is None:
            raise CompanionError("model unavailable")
        return self.reply

class CounterConcept(Concept):
    '''Toy concept recording every call it receives.'''

    def __init__(self):
        super().__init__()
        self.calls: list[tuple[str, dict]] = []

    @action
    async def bump(self, *, n: int):
        self.calls.append(("bump", {"n": n}))
        return {"n": n + 1}

    @action
    async def note(self, **kw):
        self.calls.append(("note", kw))
        return {"noted": kw}

    @action
    async def fail(self, **kw):
        self.calls.append(("fail", kw))
        return {"status": "error", "error": "nope"}

    @action
    async def boom(self, **kw):
        raise ValueError("kaboom")

    @action
    async def tags(self, **kw):
        self.calls.append(("tags", kw))
        return {"tags": {"a", "b"}}

    @query("_rows")
    async def rows(self, *, n: int):
        return [{"m": n * 10}, {"m": n * 10 + 1}] if n > 0 else []

    def notes(self):
        return [kw for name, kw in self.calls if name == "note"]

def make_engine(*syncs, **limits) -> tuple[Engine, CounterConcept]:
    counter = CounterConcept()
    return Engine([counter], SyncRegistry(syncs), EngineConfig(**limits)), counter

@pytest.fixture
def companion():
    return StubCompanion()

@pytest.fixture
def engine(companion):
    return build_engine(Config(), companion)
