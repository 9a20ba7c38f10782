from amimi.agent import Companion, CompanionError
from amimi.engine import Concept, action
from amimi.util import iso8601, new_id, utcnow

class ConversationalAgentConcept(Concept):
    '''Private conversations between one user and Amimi.'''

    def __init__(self, companion: Companion | None = None):
        super().__init__()
        self.companion = companion or Companion()

    @property
    def conversations(self):
        return self.collection("conversations")

    @property
    def messages(self):
        return self.collection("messages")

    def _conversation(self, cid: str):
        return {"conversationId": cid, **self.conversations[cid]}

    def _history(self, cid: str):
        return [
            {"messageId": mid, **m} for mid, m in self.messages.items()
                if m['conversationId'] == cid
        ]

    def _post(self, cid: str, content: str, from_user: bool):
        mid = new_id()
        self.messages[mid] = {
            "conversationId": cid,
            "isFromUser": from_user,
            "content": content,
            "timestamp": iso8601(utcnow())
        }
        return {"messageId": mid, **self.messages[mid]}

    @action("createConversation")
    async def create_conversation(self, *, userId: str, context: str = ""):
        cid = new_id()
        self.conversations[cid] = {
            "userId": userId,
            "context": context,
            "createdAt": iso8601(utcnow())
        }
        return {"status": "success", "conversation": self._conversation(cid)}

    @action("sendUserMessage")
    async def send_user_message(self, *, conversationId: str, content: str):
        if conversationId not in self.conversations:
            return {"status": "error", "error": "Conversation not found."}
        if not isinstance(content, str) or not content.strip():
            return {"status": "error", "error": "Message content cannot be empty."}
        return {"status": "success", "message": self._post(conversationId, content.strip(), True)}

    @action("getAgentResponse")
    async def get_agent_response(self, *, conversationId: str, userMessageContent: str):
        if (doc := self.conversations.get(conversationId)) is None:
            return {"status": "error", "error": "Conversation not found."}

        history = [
            {"isFromUser": m['isFromUser'], "content": m['content']}
                for m in self._history(conversationId)
        ]
        try:
            content = await self.companion.respond(userMessageContent, history, doc['context'])
        except CompanionError as e:
            return {"status": "error", "error": str(e)}

        return {"status": "success", "message": self._post(conversationId, content, False)}

    @action("getHistory")
    async def get_history(self, *, conversationId: str):
        if conversationId not in self.conversations:
            return {"status": "error", "error": "Conversation not found."}
        return {"status": "success", "messages": self._history(conversationId)}

    @action("updateContext")
    async def update_context(self, *, conversationId: str, newContext: str):
        if (doc := self.conversations.get(conversationId)) is None:
            return {"status": "error", "error": "Conversation not found."}
        doc['context'] = newContext
        return {"status": "success", "conversation": self._conversation(conversationId)}

    @action("deleteConversation")
    async def delete_conversation(self, *, conversationId: str):
        if self.conversations.pop(conversationId, None) is None:
            return {"status": "error", "error": "Conversation not found."}
        for mid in [k for k, m in self.messages.items() if m['conversationId'] == conversationId]:
            del self.messages[mid]
        return {"status": "success", "message": "Conversation deleted successfully."}
