'''
Authentication synchronizations. These validate a request's session before
invoking the protected action, and route the action's outcome back to the
request.
'''

from amimi.engine import Frames, Sync, Then, Var, When

REQUEST = "Requesting/request"
RESPOND = "Requesting/respond"
SESSION_QUERY = "Sessioning/_getUserBySession"

def vars_of(*names: str):
    return {n: Var(n) for n in names}

async def with_user(frames: Frames) -> Frames:
    '''Bind ?user from the request's session, dropping invalid sessions.'''
    return await frames.query(SESSION_QUERY, {"session": Var("session")}, {"user": Var("user")})

async def without_user(frames: Frames) -> Frames:
    '''Keep only frames whose session resolves to no user.'''
    rejected = Frames(runner=frames.runner)
    for i in range(len(frames)):
        if not await with_user(frames[i:i+1]):
            rejected.append(frames[i])
    return rejected.map(lambda _: {"status": "error", "error": "Invalid or expired session"})

def authenticated(name: str, action: str, inputs: tuple[str, ...], then: dict):
    '''Sync invoking an action when a request carries a valid session.'''
    return Sync(f"Authenticated{name}",
        f"Invoke {action} for requests with a valid session.",
        when=[When(REQUEST,
            {"path": f"/{action}", **vars_of("session", *inputs)},
            {"request": Var("request")}
        )],
        where=with_user,
        then=[Then(action, then)]
    )

def responds(name: str, action: str, outputs: tuple[str, ...], route: str | None = None):
    '''Sync responding to a request with the outcome of an action.'''
    return Sync(name,
        f"Respond to {route or action} with the outcome of {action}.",
        when=[
            When(REQUEST, {"path": f"/{route or action}"}, {"request": Var("request")}),
            When(action, {}, vars_of(*outputs))
        ],
        then=[Then(RESPOND, vars_of("request", *outputs))]
    )

def gated(name: str, action: str, inputs: tuple[str, ...], then: dict,
        success: tuple[str, ...], error: tuple[str, ...] = ("error",)
    ):
    '''The authenticated invocation plus its success and error responses.'''
    return [
        authenticated(name, action, inputs, then),
        responds(f"{name}Response", action, success),
        responds(f"{name}Error", action, error),
    ]

ROUTES = [
    # Pairing
    *gated("GenerateCode", "Pairing/generateCode", (),
        vars_of("user"), ("code",)),
    *gated("AcceptPairing", "Pairing/acceptPairing", ("code",),
        vars_of("user", "code"), ("pair",)),
    *gated("DissolvePair", "Pairing/dissolvePair", ("pair",),
        vars_of("pair"), ()),
    *gated("GetPair", "Pairing/getPair", (),
        vars_of("user"), ("pair", "sharedConversationId", "partner")),
    *gated("IsPaired", "Pairing/isPaired", (),
        vars_of("user"), ("isPaired",)),

    # ConversationalAgent
    *gated("CreateConversation", "ConversationalAgent/createConversation", ("context",),
        {"userId": Var("user"), "context": Var("context")},
        ("status", "conversation"), ("status", "error")),
    *gated("SendUserMessage", "ConversationalAgent/sendUserMessage", ("conversationId", "content"),
        vars_of("conversationId", "content"),
        ("status", "message"), ("status", "error")),
    *gated("GetAgentResponse", "ConversationalAgent/getAgentResponse", ("conversationId", "userMessageContent"),
        vars_of("conversationId", "userMessageContent"),
        ("status", "message"), ("status", "error")),
    *gated("GetHistory", "ConversationalAgent/getHistory", ("conversationId",),
        vars_of("conversationId"),
        ("status", "messages"), ("status", "error")),

    # GroupConversation
    *gated("CreateGroupConversation", "GroupConversation/createGroupConversation", ("participants", "context"),
        vars_of("participants", "context"),
        ("status", "conversation"), ("status", "error")),
    *gated("GroupSendMessage", "GroupConversation/sendMessage", ("conversationId", "sender", "content"),
        vars_of("conversationId", "sender", "content"),
        ("status", "message"), ("status", "error")),
    *gated("GroupGetAgentResponse", "GroupConversation/getAgentResponse", ("conversationId", "contextPrompt"),
        vars_of("conversationId", "contextPrompt"),
        ("status", "message"), ("status", "error")),
    *gated("GroupGetHistory", "GroupConversation/getHistory", ("conversationId",),
        vars_of("conversationId"),
        ("status", "messages"), ("status", "error")),

    # ContentCapture, owned by the session's user
    *gated("StartCapture", "ContentCapture/startCapture", ("sourceId", "type"),
        {"sourceId": Var("sourceId"), "type": Var("type"), "owner": Var("user")},
        ("status", "capture"), ("status", "error")),
    *gated("StopCapture", "ContentCapture/stopCapture", ("captureId", "capturedText"),
        vars_of("captureId", "capturedText"),
        ("status", "capture"), ("status", "error")),
    *gated("GetCapturesBySource", "ContentCapture/getCapturesBySource", ("sourceId",),
        vars_of("sourceId"),
        ("status", "captures"), ("status", "error")),

    # CommunicationInteraction, initiated or ended by the session's user
    *gated("StartInteraction", "CommunicationInteraction/startInteraction", ("participants",),
        {"participants": Var("participants"), "initiatorId": Var("user")},
        ("status", "interactionId"), ("status", "error")),
    *gated("EndInteraction", "CommunicationInteraction/endInteraction", ("interactionId",),
        {"interactionId": Var("interactionId"), "participantId": Var("user")},
        ("status", "interaction"), ("status", "error")),
    *gated("GetActiveInteraction", "CommunicationInteraction/getActiveInteraction", (),
        {"userId": Var("user")},
        ("status", "interaction"), ("status", "error")),

    # VisualGeneration, owned by the session's user
    *gated("GenerateVisual", "VisualGeneration/generateVisual", ("text", "style"),
        {"text": Var("text"), "style": Var("style"), "owner": Var("user")},
        ("status", "visual"), ("status", "error")),
    *gated("GetUserVisuals", "VisualGeneration/getUserVisuals", (),
        {"userId": Var("user")},
        ("status", "visuals"), ("status", "error")),

    # Sessioning
    *gated("GetUserInfo", "Sessioning/getUserInfo", (),
        vars_of("session"), ("user", "name")),
    *gated("Logout", "Sessioning/logout", (),
        vars_of("session"), ()),
]

# Every gated route answers requests with a bad session
SESSION_ERRORS = [
    Sync(f"{sync.name.removeprefix('Authenticated')}AuthError",
        f"Reject requests to {sync.when[0].params['path']} without a valid session.",
        when=[When(REQUEST,
            {"path": sync.when[0].params['path'], "session": Var("session")},
            {"request": Var("request")}
        )],
        where=without_user,
        then=[Then(RESPOND, vars_of("request", "status", "error"))]
    ) for sync in ROUTES if sync.name.startswith("Authenticated")
]

# Rejections are checked before the gated action can change the session
SYNCS = [*SESSION_ERRORS, *ROUTES]
