from typing import Any

from amimi.agent import Companion, CompanionError
from amimi.engine import Concept, action
from amimi.util import iso8601, new_id, utcnow

AGENT_SENDER = "amimi-agent"
FALLBACK_RESPONSE = "I'm sorry, I'm having trouble responding right now. Please try again in a moment."

def _nonempty(s: Any):
    return isinstance(s, str) and bool(s.strip())

class GroupConversationConcept(Concept):
    '''Conversations shared by several participants and Amimi.'''

    def __init__(self, companion: Companion | None = None):
        super().__init__()
        self.companion = companion or Companion()

    @property
    def conversations(self):
        return self.collection("groupConversations")

    @property
    def messages(self):
        return self.collection("groupMessages")

    def _conversation(self, cid: str):
        if (doc := self.conversations.get(cid)) is None:
            return None
        return {"conversationId": cid, **doc, "participants": list(doc['participants'])}

    def _message(self, mid: str):
        return {"messageId": mid, **self.messages[mid]}

    def _history(self, cid: str):
        return [
            self._message(mid) for mid, m in self.messages.items()
                if m['conversationId'] == cid
        ]

    def _post(self, cid: str, sender: str, content: str, from_agent: bool):
        mid = new_id()
        self.messages[mid] = {
            "conversationId": cid,
            "sender": sender,
            "isFromAgent": from_agent,
            "content": content,
            "timestamp": iso8601(utcnow())
        }
        return self._message(mid)

    @action("createGroupConversation")
    async def create_group_conversation(self, *,
            participants: list[str] | None = None,
            context: str = ""
        ):
        if not participants:
            return {"status": "error", "error": "Participants array cannot be empty."}
        if len(set(participants)) != len(participants):
            return {"status": "error", "error": "Participants array contains duplicate IDs."}
        if not all(map(_nonempty, participants)):
            return {"status": "error", "error": "All participant IDs must be non-empty strings."}

        cid = new_id()
        self.conversations[cid] = {
            "participants": list(participants),
            "context": context,
            "createdAt": iso8601(utcnow())
        }
        return {"status": "success", "conversation": self._conversation(cid)}

    @action("addParticipant")
    async def add_participant(self, *, conversationId: str, user: str):
        if not _nonempty(user):
            return {"status": "error", "error": "User ID must be a non-empty string."}
        if (doc := self.conversations.get(conversationId)) is None:
            return {"status": "error", "error": "Conversation not found."}
        if user in doc['participants']:
            return {"status": "error", "error": "User is already a participant."}

        doc['participants'].append(user)
        return {"status": "success", "conversation": self._conversation(conversationId)}

    @action("sendMessage")
    async def send_message(self, *, conversationId: str, sender: str, content: str):
        '''Post a participant's message to the conversation.'''
        if not _nonempty(sender):
            return {"status": "error", "error": "Sender ID must be a non-empty string."}
        if not _nonempty(content):
            return {"status": "error", "error": "Content must be a non-empty string."}
        if (doc := self.conversations.get(conversationId)) is None:
            return {"status": "error", "error": "Conversation not found."}
        if sender not in doc['participants']:
            return {"status": "error", "error": "Sender is not a participant in this conversation."}

        return {
            "status": "success",
            "message": self._post(conversationId, sender, content.strip(), False)
        }

    @action("getAgentResponse")
    async def get_agent_response(self, *, conversationId: str, contextPrompt: str):
        '''
        Ask Amimi to reply in the conversation. If the model fails a fallback
        apology is posted instead.
        '''
        if not _nonempty(contextPrompt):
            return {"status": "error", "error": "Context prompt must be a non-empty string."}
        if (doc := self.conversations.get(conversationId)) is None:
            return {"status": "error", "error": "Conversation not found."}

        history = [
            {
                "isFromUser": not m['isFromAgent'],
                "content": f"{'Amimi' if m['isFromAgent'] else 'User'}: {m['content']}"
            } for m in self._history(conversationId)
        ]
        context = (
            f"Shared conversation for couple with {len(doc['participants'])} "
            f"participants. {doc['context']}"
        )
        try:
            content = await self.companion.respond_shared(contextPrompt, history, context)
        except CompanionError:
            content = FALLBACK_RESPONSE

        return {
            "status": "success",
            "message": self._post(conversationId, AGENT_SENDER, content, True)
        }

    @action("getHistory")
    async def get_history(self, *, conversationId: str):
        if conversationId not in self.conversations:
            return {"status": "error", "error": "Conversation not found."}
        return {"status": "success", "messages": self._history(conversationId)}

    @action("updateContext")
    async def update_context(self, *, conversationId: str, newContext: str):
        if not isinstance(newContext, str):
            return {"status": "error", "error": "New context must be a string."}
        if (doc := self.conversations.get(conversationId)) is None:
            return {"status": "error", "error": "Conversation not found."}
        doc['context'] = newContext
        return {"status": "success", "conversation": self._conversation(conversationId)}

    @action("deleteConversation")
    async def delete_conversation(self, *, conversationId: str):
        if self.conversations.pop(conversationId, None) is None:
            return {"status": "error", "error": "Conversation not found."}
        doomed = [
            mid for mid, m in self.messages.items()
                if m['conversationId'] == conversationId
        ]
        for mid in doomed:
            del self.messages[mid]
        return {
            "status": "success",
            "message": f"Conversation and {len(doomed)} messages deleted successfully."
        }
