'''
Amimi mention synchronizations. These trigger an AI response when a user
mentions @Amimi in a shared chat.
'''

import logging

from amimi.engine import Frame, Frames, Sync, Then, Var, When

logger = logging.getLogger(__name__)

MENTION = "@Amimi"
DEFAULT_PROMPT = "General conversation"

def mention_prompt(content: str) -> str:
    '''Strip the first mention from a message to use it as a prompt.'''
    return content.replace(MENTION, "", 1).strip() or DEFAULT_PROMPT

def mentioned(frame: Frame):
    content = frame.get("content")
    return isinstance(content, str) and MENTION in content

def prompt_frames(frames: Frames) -> Frames:
    def bind(frame: Frame):
        prompt = mention_prompt(str(frame["content"]))
        logger.info(
            "Triggering shared AI response for conversation %s with prompt %r",
            frame["conversationId"], prompt
        )
        return {"contextPrompt": prompt}

    return frames.filter(mentioned).map(bind)

TriggerAmimiResponseInSharedChat = Sync("TriggerAmimiResponseInSharedChat",
    "Have Amimi answer shared chat messages which mention it.",
    when=[
        When("Requesting/request",
            {"path": "/GroupConversation/sendMessage", "conversationId": Var("conversationId"), "content": Var("content")},
            {"request": Var("request")}
        ),
        When("GroupConversation/sendMessage",
            {"conversationId": Var("conversationId"), "content": Var("content")},
            {"status": Var("status"), "message": Var("message")}
        )
    ],
    where=prompt_frames,
    then=[
        Then("GroupConversation/getAgentResponse", {
            "conversationId": Var("conversationId"),
            "contextPrompt": Var("contextPrompt")
        })
    ]
)

SYNCS = [TriggerAmimiResponseInSharedChat]
