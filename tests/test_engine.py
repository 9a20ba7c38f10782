import asyncio
import logging

import pytest

from amimi.engine import ConceptConflictError, Engine, MalformedSync, Sync, SyncRegistry, Then, Var, When

from conftest import CounterConcept, make_engine

def invoke(engine, action="Counter/bump", **params):
    return asyncio.run(engine.invoke(action, params))

def test_no_syncs_reaches_fixpoint_immediately():
    engine, counter = make_engine()
    result = invoke(engine, n=0)

    assert result.status == "complete"
    assert result.response == {"n": 1}
    assert [c.action for c in result.trace] == ["Counter/bump"]

def test_acyclic_chain_depth_is_chain_length():
    engine, counter = make_engine(
        Sync("One", when=[When("Counter/bump", {"n": 0})], then=[Then("Counter/bump", {"n": 10})]),
        Sync("Two", when=[When("Counter/bump", {"n": 10})], then=[Then("Counter/bump", {"n": 20})]),
        Sync("Three", when=[When("Counter/bump", {"n": 20})], then=[Then("Counter/bump", {"n": 30})]),
        max_cascade_depth=3
    )
    result = invoke(engine, n=0)

    assert result.status == "complete"
    assert [c.params["n"] for c in result.trace] == [0, 10, 20, 30]
    assert max(c.depth for c in result.trace) == 3
    assert [c.seq for c in result.trace] == [0, 1, 2, 3]

def test_cyclic_rules_halt_at_depth_limit(caplog):
    engine, counter = make_engine(
        Sync("Forever", when=[When("Counter/bump", {}, {"n": Var("n")})], then=[Then("Counter/bump", {"n": Var("n")})]),
        max_cascade_depth=5
    )
    with caplog.at_level(logging.WARNING):
        result = invoke(engine, n=0)

    assert result.status == "partial"
    assert "depth" in (result.halted or "")
    # Dispatched effects are not rolled back
    assert [kw["n"] for name, kw in counter.calls] == [0, 1, 2, 3, 4, 5]
    assert any("halted" in r.getMessage() for r in caplog.records)

def test_dispatch_limit_halts_fan_out():
    engine, counter = make_engine(
        Sync("Forever", when=[When("Counter/bump", {}, {"n": Var("n")})], then=[Then("Counter/bump", {"n": Var("n")})]),
        max_dispatches=3
    )
    result = invoke(engine, n=0)

    assert result.status == "partial"
    assert len(result.trace) == 4

def test_same_frame_dispatches_once():
    engine, counter = make_engine(
        Sync("Again", when=[When("Counter/bump", {"n": 0})], then=[Then("Counter/bump", {"n": 5})]),
        # Binds nothing, so every bump yields the same empty frame
        Sync("Once", when=[When("Counter/bump")], then=[Then("Counter/note", {"seen": True})]),
    )
    result = invoke(engine, n=0)

    assert len([c for c in result.trace if c.action == "Counter/bump"]) == 2
    assert counter.notes() == [{"seen": True}]

def test_where_collapsing_frames_dispatches_once():
    engine, counter = make_engine(
        Sync("Collapse",
            when=[When("Counter/bump", {"n": Var("n")})],
            where=lambda frames: frames.map(lambda f: {"n": 0}),
            then=[Then("Counter/note", {"n": Var("n")})]
        ),
        Sync("More", when=[When("Counter/bump", {"n": 0})], then=[Then("Counter/bump", {"n": 7})]),
    )
    invoke(engine, n=0)
    assert counter.notes() == [{"n": 0}]

def test_multi_clause_join_across_dispatches():
    engine, counter = make_engine(
        Sync("Next", when=[When("Counter/bump", {"n": 0})], then=[Then("Counter/bump", {"n": 1})]),
        Sync("Chain",
            when=[
                When("Counter/bump", {"n": Var("a")}, {"n": Var("b")}),
                When("Counter/bump", {"n": Var("b")})
            ],
            then=[Then("Counter/note", {"a": Var("a"), "b": Var("b")})]
        ),
    )
    invoke(engine, n=0)
    assert counter.notes() == [{"a": 0, "b": 1}]

def test_error_result_blocks_success_cascade_only():
    engine, counter = make_engine(
        Sync("Start", when=[When("Counter/bump", {"n": 0})], then=[
            Then("Counter/fail"),
            Then("Counter/bump", {"n": 100})
        ]),
        Sync("OnSuccess", when=[When("Counter/fail")], then=[Then("Counter/note", {"ok": True})]),
        Sync("OnError", when=[When("Counter/fail", {}, {"error": Var("e")})], then=[Then("Counter/note", {"why": Var("e")})]),
    )
    result = invoke(engine, n=0)

    failed = [c for c in result.trace if c.action == "Counter/fail"]
    assert len(failed) == 1 and not failed[0].ok and failed[0].error == "nope"
    assert counter.notes() == [{"why": "nope"}]
    assert ("bump", {"n": 100}) in counter.calls
    assert result.status == "complete"

def test_error_status_literal_matches_errors():
    engine, counter = make_engine(
        Sync("Start", when=[When("Counter/bump", {"n": 0})], then=[Then("Counter/fail")]),
        Sync("OnErrorStatus", when=[When("Counter/fail", {}, {"status": "error"})], then=[Then("Counter/note", {"saw": "error"})]),
        Sync("OnOtherStatus", when=[When("Counter/fail", {}, {"status": "success"})], then=[Then("Counter/note", {"saw": "success"})]),
    )
    invoke(engine, n=0)
    assert counter.notes() == [{"saw": "error"}]

def test_conflicting_shared_variable_dispatches_nothing():
    engine, counter = make_engine(
        Sync("Next", when=[When("Counter/bump", {"n": 0})], then=[Then("Counter/bump", {"n": 5})]),
        Sync("Same",
            when=[
                When("Counter/bump", {"n": 0}, {"n": Var("x")}),
                When("Counter/bump", {"n": 5}, {"n": Var("x")})
            ],
            then=[Then("Counter/note", {"x": Var("x")})]
        ),
    )
    result = invoke(engine, n=0)

    assert [c.params["n"] for c in result.trace] == [0, 5]
    assert counter.notes() == []

def test_non_value_result_becomes_error_entry():
    engine, counter = make_engine(
        Sync("Tag", when=[When("Counter/bump", {"n": 0})], then=[Then("Counter/tags")]),
        Sync("Tagged", when=[When("Counter/tags", {}, {"tags": Var("t")})], then=[Then("Counter/note", {"t": Var("t")})]),
    )
    result = invoke(engine, n=0)

    tags = next(c for c in result.trace if c.action == "Counter/tags")
    assert not tags.ok
    assert tags.error["type"] == "TypeError"
    assert counter.notes() == []
    assert result.status == "complete"

def test_raising_action_becomes_error_entry():
    engine, counter = make_engine(
        Sync("Explode", when=[When("Counter/bump", {"n": 0})], then=[
            Then("Counter/boom"),
            Then("Counter/note", {"after": True})
        ]),
    )
    result = invoke(engine, n=0)

    boom = next(c for c in result.trace if c.action == "Counter/boom")
    assert boom.error == {"type": "ValueError", "message": "kaboom"}
    assert counter.notes() == [{"after": True}]

def test_where_exception_skips_only_that_sync(caplog):
    def broken(frames):
        raise RuntimeError("authoring bug")

    engine, counter = make_engine(
        Sync("Broken", when=[When("Counter/bump")], where=broken, then=[Then("Counter/note", {"from": "broken"})]),
        Sync("Fine", when=[When("Counter/bump")], then=[Then("Counter/note", {"from": "fine"})]),
    )
    with caplog.at_level(logging.ERROR):
        result = invoke(engine, n=0)

    assert counter.notes() == [{"from": "fine"}]
    assert result.status == "complete"
    assert any("Broken" in r.getMessage() for r in caplog.records)

def test_unbound_then_variable_aborts_firing(caplog):
    engine, counter = make_engine(
        Sync("Unbound",
            when=[When("Counter/bump")],
            where=lambda frames: frames,
            then=[Then("Counter/note", {"first": 1}), Then("Counter/note", {"x": Var("never")})]
        ),
        Sync("Sibling", when=[When("Counter/bump")], then=[Then("Counter/note", {"sibling": 1})]),
    )
    with caplog.at_level(logging.ERROR):
        invoke(engine, n=0)

    # Nothing of the malformed firing is dispatched
    assert counter.notes() == [{"sibling": 1}]
    assert any("?never" in r.getMessage() for r in caplog.records)

def test_two_syncs_on_same_action_fire_independently():
    engine, counter = make_engine(
        Sync("Filtered",
            when=[When("Counter/bump", {"n": Var("n")})],
            where=lambda frames: frames.filter(lambda f: False),
            then=[Then("Counter/note", {"who": "filtered"})]
        ),
        Sync("First", when=[When("Counter/bump", {"n": Var("n")})], then=[Then("Counter/note", {"who": "first", "n": Var("n")})]),
        Sync("Second", when=[When("Counter/bump", {"n": Var("n")})], then=[Then("Counter/note", {"who": "second", "n": Var("n")})]),
    )
    invoke(engine, n=3)
    assert counter.notes() == [{"who": "first", "n": 3}, {"who": "second", "n": 3}]

def test_where_query_enriches_frames():
    async def rows(frames):
        return await frames.query("Counter/_rows", {"n": Var("n")}, {"m": Var("m")})

    engine, counter = make_engine(
        Sync("Rows", when=[When("Counter/bump", {"n": Var("n")})], where=rows, then=[Then("Counter/note", {"m": Var("m")})]),
    )
    invoke(engine, n=3)
    assert counter.notes() == [{"m": 30}, {"m": 31}]

    engine, counter = make_engine(
        Sync("Rows", when=[When("Counter/bump", {"n": Var("n")})], where=rows, then=[Then("Counter/note", {"m": Var("m")})]),
    )
    invoke(engine, n=0)
    assert counter.notes() == []

def test_variable_action_resolves_at_dispatch():
    engine, counter = make_engine(
        Sync("Dynamic",
            when=[When("Counter/bump", {"n": 0})],
            where=lambda frames: frames.bind(target="Counter/missing"),
            then=[Then(Var("target"))]
        ),
    )
    result = invoke(engine, n=0)

    missing = result.trace[-1]
    assert missing.action == "Counter/missing"
    assert missing.error == "No such action Counter/missing"

def test_engine_rejects_unknown_references():
    with pytest.raises(MalformedSync):
        make_engine(Sync("Ghost", when=[When("Ghost/appear")]))
    with pytest.raises(MalformedSync):
        make_engine(Sync("Typo", when=[When("Counter/bump")], then=[Then("Counter/bmup")]))

def test_engine_rejects_duplicate_concepts():
    with pytest.raises(ConceptConflictError):
        Engine([CounterConcept(), CounterConcept()], SyncRegistry())

def test_concurrent_requests_have_separate_traces():
    engine, counter = make_engine(
        Sync("Note", when=[When("Counter/bump", {"n": Var("n")})], then=[Then("Counter/note", {"n": Var("n")})]),
    )

    async def both():
        return await asyncio.gather(
            engine.invoke("Counter/bump", {"n": 1}),
            engine.invoke("Counter/bump", {"n": 2})
        )

    a, b = asyncio.run(both())
    assert [c.params for c in a.trace] == [{"n": 1}, {"n": 1}]
    assert [c.params for c in b.trace] == [{"n": 2}, {"n": 2}]
    assert a.request != b.request
