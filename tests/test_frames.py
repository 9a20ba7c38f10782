import asyncio

import pytest

from amimi.engine import BindingConflict, Frame, Frames, UnboundVariable, Var, join, unify
from amimi.engine.pattern import match_pattern, resolve

class Table:
    '''Query runner answering from a fixed table keyed by the "k" param.'''

    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    async def query(self, query, params):
        self.calls.append((query, params))
        return self.rows.get(params["k"], [])

def test_match_pattern_binds_and_checks():
    data = {"path": "/x", "session": "s1", "extra": 1}
    assert match_pattern({"path": "/x", "session": Var("s")}, data, {}) == {"s": "s1"}
    assert match_pattern({"path": "/y", "session": Var("s")}, data, {}) is None
    assert match_pattern({"missing": Var("m")}, data, {}) is None
    assert match_pattern({"session": Var("s")}, data, {"s": "other"}) is None

def test_match_pattern_nested():
    data = {"conversation": {"conversationId": "c1", "participants": ["a", "b"]}}
    pattern = {"conversation": {"conversationId": Var("c"), "participants": [Var("x"), "b"]}}
    assert match_pattern(pattern, data, {}) == {"c": "c1", "x": "a"}
    assert match_pattern({"conversation": {"participants": [Var("x")]}}, data, {}) is None

def test_resolve_substitutes_and_fails_on_unbound():
    env = {"user": "u1", "code": "ABC"}
    assert resolve({"user": Var("user"), "code": Var("code"), "n": 1}, env) == {
        "user": "u1", "code": "ABC", "n": 1
    }
    with pytest.raises(UnboundVariable):
        resolve({"pair": Var("pair")}, env)

def test_frames_are_hashable_values():
    a = Frame({"x": [1, 2], "y": {"k": "v"}})
    b = Frame(x=[1, 2], y={"k": "v"})
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1

def test_frame_bind_conflict():
    f = Frame(x=1)
    assert f.bind(y=2) == {"x": 1, "y": 2}
    assert f.bind(x=1) == f
    with pytest.raises(BindingConflict):
        f.bind(x=2)

def test_unify_requires_deep_equality():
    assert unify({"v": {"a": [1]}}, {"v": {"a": [1]}, "w": 2}) == {"v": {"a": [1]}, "w": 2}
    assert unify({"v": {"a": [1]}}, {"v": {"a": [2]}}) is None

def test_join_soundness():
    left = [Frame(v=1, a="x"), Frame(v=2, a="y"), Frame(v=3, a="z")]
    right = [Frame(v=1, b="p"), Frame(v=1, b="q"), Frame(v=3, b="r"), Frame(v=4, b="s")]
    joined = join(left, right)

    assert len(joined) == 3
    for frame in joined:
        assert any(l["v"] == frame["v"] and l["a"] == frame["a"] for l in left)
        assert any(r["v"] == frame["v"] and r["b"] == frame["b"] for r in right)
    assert {(f["a"], f["b"]) for f in joined} == {("x", "p"), ("x", "q"), ("z", "r")}

def test_join_without_shared_names_is_cartesian():
    joined = join([Frame(a=1), Frame(a=2)], [Frame(b=1), Frame(b=2), Frame(b=3)])
    assert len(joined) == 6

def test_query_enriches_one_frame_per_row():
    table = Table({"one": [{"user": "u1"}], "two": [{"user": "u2"}, {"user": "u3"}]})
    frames = Frames([Frame(k="one"), Frame(k="two"), Frame(k="none")], table)

    out = asyncio.run(frames.query("T/_q", {"k": Var("k")}, {"user": Var("user")}))

    assert isinstance(out, Frames)
    assert out.runner is table
    assert [dict(f) for f in out] == [
        {"k": "one", "user": "u1"},
        {"k": "two", "user": "u2"},
        {"k": "two", "user": "u3"},
    ]
    assert [p for _, p in table.calls] == [{"k": "one"}, {"k": "two"}, {"k": "none"}]

def test_query_never_exceeds_rows_and_drops_empty():
    table = Table({"a": [{"user": "u1"}, {"user": "u2"}]})
    frames = Frames([Frame(k="a"), Frame(k="b")], table)
    out = asyncio.run(frames.query("T/_q", {"k": Var("k")}, {"user": Var("user")}))
    assert len(out) == 2
    assert all(f["k"] == "a" for f in out)

def test_query_output_pattern_constrains_rows():
    table = Table({"a": [{"user": "u1"}, {"user": "u2"}]})
    frames = Frames([Frame(k="a", user="u2")], table)
    out = asyncio.run(frames.query("T/_q", {"k": Var("k")}, {"user": Var("user")}))
    assert [dict(f) for f in out] == [{"k": "a", "user": "u2"}]

def test_filter_map_and_slice_keep_runner():
    table = Table({})
    frames = Frames([Frame(n=1), Frame(n=2), Frame(n=3)], table)

    odd = frames.filter(lambda f: f["n"] % 2 == 1)
    doubled = odd.map(lambda f: {"d": f["n"] * 2})

    assert [f["d"] for f in doubled] == [2, 6]
    assert doubled.runner is table
    assert frames[1:].runner is table
    assert frames.bind(n=2) == [Frame(n=2)]

def test_frames_derive_only_through_bind_or_replace():
    f = Frame(x=1)
    assert f.replace(x=2, y=3) == {"x": 2, "y": 3}
    assert f == {"x": 1}
    with pytest.raises(TypeError):
        f | {"y": 2} # pyright: ignore
