'''
Pairing synchronizations. These give every new couple a shared group
conversation.
'''

from amimi.engine import Frames, Sync, Then, Var, When

async def partners(frames: Frames) -> Frames:
    rows = await frames.query("Pairing/_getPair", {"pair": Var("pair")}, {
        "user1": Var("user1"),
        "user2": Var("user2")
    })
    return rows.map(lambda f: {"participants": [f["user1"], f["user2"]]})

CreateSharedConversationOnPairing = Sync("CreateSharedConversationOnPairing",
    "Create the couple's shared conversation once a pairing is accepted.",
    when=[When("Pairing/acceptPairing", {}, {"pair": Var("pair")})],
    where=partners,
    then=[Then("GroupConversation/createGroupConversation", {
        "participants": Var("participants"),
        "context": "Shared conversation"
    })]
)

LinkSharedConversation = Sync("LinkSharedConversation",
    "Record the shared conversation created for a new pair.",
    when=[
        When("Pairing/acceptPairing", {}, {"pair": Var("pair"), "users": Var("users")}),
        When("GroupConversation/createGroupConversation",
            {"participants": Var("users")},
            {"conversation": {"conversationId": Var("conversation")}}
        )
    ],
    then=[Then("Pairing/updateSharedConversation", {
        "pair": Var("pair"),
        "sharedConversationId": Var("conversation")
    })]
)

SYNCS = [CreateSharedConversationOnPairing, LinkSharedConversation]
