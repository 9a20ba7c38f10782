'''
The synchronization engine. Each request gets its own flow: an action trace
which syncs are matched against, dispatching new actions until no sync
produces anything new.
'''

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
import inspect
import itertools
import logging
from typing import Literal

from amimi.config import EngineConfig
from amimi.util import new_id, todo_list

from .concept import Concept
from .errors import ConceptConflictError, HyperSyncError, MalformedSync, NoSuchAction, NoSuchConcept, NoSuchQuery
from .frames import Frame, Frames, unify
from .pattern import Bindings, Var, is_value, resolve
from .sync import Sync, SyncRegistry, Then
from .trace import ActionId, ActionTrace, Completion, ConceptId, Trigger

__all__ = (
    'Engine',
    'Flow',
    'QueryId',
    'RequestResult',
)

logger = logging.getLogger(__name__)

type QueryId = str # concept/_query
type FlowId = str
type FlowStatus = Literal["complete", "partial"]

def format_error(e: Exception):
    return {
        "type": type(e).__name__,
        "message": str(e.args[0]) if e.args else str(e)
    }

class Flow:
    '''State for tracking the processing of a single request.'''

    uuid: FlowId
    '''Flow's id, shared with the request it processes.'''
    trace: ActionTrace
    '''All completions in the flow.'''
    fired: set[tuple[str, Frame]]
    '''Sync and frame pairs which have already been dispatched.'''
    dispatches: int
    '''Number of actions dispatched by syncs.'''
    halted: str | None
    '''Why the cascade was cut short, None if it reached a fixpoint.'''

    def __init__(self, uuid: FlowId | None = None):
        super().__init__()
        self.uuid = uuid or new_id()
        self.trace = ActionTrace()
        self.fired = set()
        self.dispatches = 0
        self.halted = None

    @property
    def status(self) -> FlowStatus:
        return "complete" if self.halted is None else "partial"

@dataclass
class RequestResult:
    '''Outcome of processing a request to its fixpoint.'''

    request: str
    '''Request id assigned by the initiating action.'''
    status: FlowStatus
    '''"partial" if the cascade guard halted processing.'''
    response: Bindings | None
    '''Params of the respond action addressed to the request, if any.'''
    trace: list[Completion] = field(default_factory=list)
    halted: str | None = None

class Engine:
    concepts: dict[ConceptId, Concept]
    '''All loaded concepts.'''
    registry: SyncRegistry
    '''All loaded syncs, indexed by their action dependencies.'''
    config: EngineConfig

    def __init__(self,
            concepts: Iterable[Concept],
            registry: SyncRegistry,
            config: EngineConfig | None = None
        ):
        super().__init__()
        self.concepts = {}
        for c in concepts:
            if c.name in self.concepts:
                raise ConceptConflictError(c.name)
            self.concepts[c.name] = c
        self.registry = registry
        self.config = config or EngineConfig()

        for sync in registry:
            self._check_sync(sync)

    def _check_sync(self, sync: Sync):
        '''Statically verify a sync only references loaded actions.'''
        refs: list[ActionId] = [when.action for when in sync.when]
        refs.extend(
            then.action for then in sync.then
                if not isinstance(then.action, Var)
        )
        for ref in refs:
            try:
                self._resolve_action(ref)
            except HyperSyncError as e:
                raise MalformedSync(f"{sync.name}: {type(e).__name__} {e}") from e

    # Methods intended to be overridden to report meta-events

    async def uncaught(self,
            action: ActionId,
            params: Bindings,
            error: Exception,
            flow: Flow
        ) -> Bindings:
        '''
        An action raised instead of returning an error result. This is always
        a programming error. Returns the result to record in its completion.
        '''
        logger.exception("%s raised during flow %s", action, flow.uuid, exc_info=error)
        return {"status": "error", "error": format_error(error)}

    async def ignored(self, cmp: Completion, flow: Flow):
        '''
        An action was completed but it wasn't matched by any sync [when]
        clauses. There are always terminal actions, but it can indicate an
        overlooked edge case.
        '''
        logger.debug("%s #%d ignored, no dependent syncs", cmp.action, cmp.seq)

    async def no_action(self, action: ActionId, params: Bindings, flow: Flow) -> Bindings:
        '''An action was invoked which does not exist on an existant concept.'''
        return {"status": "error", "error": f"No such action {action}"}

    async def no_concept(self, concept: ConceptId, params: Bindings, flow: Flow) -> Bindings:
        '''A nonexistant concept was referenced.'''
        return {"status": "error", "error": f"No such concept {concept}"}

    async def cascade_halted(self, flow: Flow, cmp: Completion):
        '''The cascade guard stopped processing a request.'''
        logger.warning(
            "Flow %s halted at #%d %s: %s; %d completion(s) stand",
            flow.uuid, cmp.seq, cmp.action, flow.halted, len(flow.trace)
        )

    # Public methods

    async def submit_request(self, path: str, body: Bindings | None = None) -> RequestResult:
        '''
        Seed a new flow with the request action and drive it to a fixpoint.
        The response is whatever the flow addressed back to the request.
        '''
        flow = Flow()
        params = {**(body or {}), "path": path}
        root = await self._record(flow, self.config.request_action, params)
        logger.info("Request %s %s", flow.uuid, path)

        await self.run(flow, root)

        request = root.result.get("request", flow.uuid)
        return RequestResult(
            request=str(request),
            status=flow.status,
            response=self.response_for(flow, request),
            trace=list(flow.trace),
            halted=flow.halted
        )

    async def invoke(self, action: ActionId, params: Bindings) -> RequestResult:
        '''
        Invoke an action directly in a new flow, letting any syncs depending
        on it cascade. The response is the action's own result.
        '''
        flow = Flow()
        root = await self._record(flow, action, params)
        await self.run(flow, root)
        return RequestResult(
            request=flow.uuid,
            status=flow.status,
            response=root.result,
            trace=list(flow.trace),
            halted=flow.halted
        )

    async def query(self, query: QueryId, params: Bindings) -> list[Bindings]:
        '''Call a read-only concept query, returning its rows.'''
        c, q = query.rsplit("/", 1)
        if (con := self.concepts.get(c)) is None:
            raise NoSuchConcept(c)
        if (fn := con.bound_query(q)) is None:
            raise NoSuchQuery(query)
        return list(await fn(**params))

    def response_for(self, flow: Flow, request: object) -> Bindings | None:
        '''Params of the first respond action addressed to the request.'''
        for cmp in flow.trace.of(self.config.respond_action):
            if cmp.ok and cmp.params.get("request") == request:
                return {k: v for k, v in cmp.params.items() if k != "request"}
        return None

    async def run(self, flow: Flow, root: Completion):
        '''
        Process completions in trace order until no sync dispatches anything
        new or the cascade guard trips.
        '''
        pending = [root]
        for cmp in todo_list(pending):
            if not (deps := self.registry.syncs_for(cmp.action)):
                await self.ignored(cmp, flow)
                continue

            for sync in deps:
                frames = self.match(flow, sync, cmp)
                if not frames:
                    continue

                if (frames := await self._where(flow, sync, frames)) is None:
                    continue

                for frame in frames:
                    if (key := (sync.name, frame)) in flow.fired:
                        logger.debug("%s: already fired for %r", sync.name, frame)
                        continue
                    flow.fired.add(key)

                    if (halt := self._guard(flow, cmp, len(sync.then))) is not None:
                        flow.halted = halt
                        await self.cascade_halted(flow, cmp)
                        return

                    pending.extend(await self._dispatch(flow, sync, frame, cmp))

    def match(self, flow: Flow, sync: Sync, cmp: Completion) -> list[Frame]:
        '''
        Build the frames of every combination of completions matching the
        sync's [when] clauses in which the new completion takes part. Other
        clauses draw from earlier completions, so each combination is
        considered once per flow.
        '''
        earlier = flow.trace.before(cmp.seq)
        frames: list[Frame] = []

        for i, pinned in enumerate(sync.when):
            if (bs := pinned.match(cmp)) is None:
                continue

            # (frame, completions used) pairs, joined clause by clause
            partial: list[tuple[Frame, tuple[int, ...]]] = [(Frame(bs), (cmp.seq,))]
            for j, when in enumerate(sync.when):
                if j == i:
                    continue
                candidates = [
                    (Frame(m), c.seq) for c in earlier
                        if (m := when.match(c)) is not None
                ]
                joined: list[tuple[Frame, tuple[int, ...]]] = []
                for (frame, used), (cand, seq) in itertools.product(partial, candidates):
                    # Completions can only be matched once per combination
                    if seq in used:
                        continue
                    if (u := unify(frame, cand)) is not None:
                        joined.append((u, used + (seq,)))

                if not (partial := joined):
                    break

            frames.extend(frame for frame, _ in partial)

        if frames:
            logger.debug("%s: %d frame(s) from #%d %s", sync.name, len(frames), cmp.seq, cmp.action)
        return frames

    async def _where(self, flow: Flow, sync: Sync, frames: Sequence[Frame]) -> Frames | None:
        '''Run a sync's [where] clause, None if it raised.'''
        fs = Frames(frames, self)
        if sync.where is None:
            return fs

        try:
            result = sync.where(fs)
            if inspect.isawaitable(result):
                result = await result
            if not isinstance(result, Frames):
                result = Frames(result, self)
        except Exception:
            logger.exception(
                "[where] of %s failed in flow %s over %r",
                sync.name, flow.uuid, [f.to_dict() for f in fs]
            )
            return None

        logger.debug("%s: [where] kept %d of %d frame(s)", sync.name, len(result), len(fs))
        return result

    def _guard(self, flow: Flow, cmp: Completion, count: int) -> str | None:
        '''Check whether dispatching would exceed the cascade limits.'''
        if cmp.depth + 1 > self.config.max_cascade_depth:
            return f"cascade depth {self.config.max_cascade_depth} exceeded"
        if flow.dispatches + count > self.config.max_dispatches:
            return f"dispatch limit {self.config.max_dispatches} exceeded"
        return None

    async def _dispatch(self,
            flow: Flow,
            sync: Sync,
            frame: Frame,
            cause: Completion
        ) -> list[Completion]:
        '''Invoke the [then] actions of a sync with a frame.'''

        # Resolve everything first so a bad template fires nothing
        try:
            calls = [self._resolve_then(then, frame) for then in sync.then]
        except (HyperSyncError, TypeError) as e:
            logger.error("%s: cannot fire with %r: %s", sync.name, frame.to_dict(), e)
            return []

        trigger = Trigger(sync=sync.name, cause=cause.seq, frame=frame.to_dict())
        done: list[Completion] = []
        for action, params in calls:
            flow.dispatches += 1
            logger.debug("%s -> %s %r", sync.name, action, params)
            done.append(await self._record(
                flow, action, params,
                depth=cause.depth + 1,
                trigger=trigger
            ))
        return done

    def _resolve_then(self, then: Then, frame: Frame) -> tuple[ActionId, Bindings]:
        action = then.action
        if isinstance(action, Var):
            if not isinstance(action := resolve(action, frame), str):
                raise TypeError(f"?{then.action.name} is not an action id: {action!r}")
        return action, resolve(dict(then.params), frame)

    async def _record(self,
            flow: Flow,
            action: ActionId,
            params: Bindings,
            depth: int = 0,
            trigger: Trigger | None = None
        ) -> Completion:
        '''Invoke an action and append its completion to the flow.'''
        result = await self._call(flow, action, params)
        cmp = flow.trace.append(action, params, result, depth, trigger)
        if not cmp.ok:
            logger.info("%s #%d failed: %s", action, cmp.seq, cmp.error)
        return cmp

    async def _call(self, flow: Flow, action: ActionId, params: Bindings) -> Bindings:
        try:
            fn = self._resolve_action(action)
        except NoSuchAction:
            return await self.no_action(action, params, flow)
        except NoSuchConcept as e:
            return await self.no_concept(e.args[0], params, flow)

        try:
            result = await fn(**params)
        except Exception as e:
            return await self.uncaught(action, params, e, flow)

        if not isinstance(result, Mapping):
            return await self.uncaught(
                action, params,
                TypeError(f"{action} returned {type(result).__name__}, expected a mapping"),
                flow
            )
        if not is_value(result := dict(result)):
            return await self.uncaught(
                action, params,
                TypeError(f"{action} returned values which are not plain data"),
                flow
            )
        return result

    def _resolve_action(self, action: ActionId):
        '''Resolve an ActionId to the bound method implementing it.'''
        c, _, a = action.rpartition('/')
        if (con := self.concepts.get(c)) is None:
            raise NoSuchConcept(c)
        if (fn := con.bound_action(a)) is None:
            raise NoSuchAction(action)
        return fn
