'''
The Amimi companion, an LLM persona supporting people in long-distance
relationships. Completions go through litellm so any provider works.
'''

from collections.abc import Sequence
import logging
from typing import Literal, TypedDict, cast

from litellm import ModelResponse, acompletion

from amimi.config import AgentConfig

logger = logging.getLogger(__name__)

BASE_PROMPT = '''\
You are Amimi, an AI companion designed to support people in long-distance relationships. You are empathetic, understanding, and provide thoughtful advice about relationships, communication, and emotional support.

Your role is to:
- Listen actively and provide emotional support
- Offer practical advice for maintaining long-distance relationships
- Help users express their feelings and communicate better with their partners
- Suggest activities and ways to stay connected
- Be encouraging and positive while being realistic about challenges

Guidelines:
- Be warm, friendly, and understanding
- Ask follow-up questions to better understand their situation
- Provide specific, actionable advice when appropriate
- Acknowledge their feelings and validate their experiences
- Keep responses conversational and not too formal
- If they're having relationship issues, help them think through solutions rather than just giving advice'''

SHARED_PROMPT = "This chat is shared by both partners, speak to them together."

class Turn(TypedDict):
    isFromUser: bool
    content: str

class Message(TypedDict):
    role: Literal['user', 'assistant', 'system']
    content: str

class CompanionError(RuntimeError):
    '''The model failed to produce a response.'''

class Companion:
    '''Generates Amimi's replies for private and shared conversations.'''

    def __init__(self, config: AgentConfig | None = None):
        super().__init__()
        self.config = config or AgentConfig()

    def system_prompt(self, context: str = "") -> str:
        if context and context.strip():
            return f"{BASE_PROMPT}\n\nAdditional context about this user: {context}"
        return BASE_PROMPT

    def messages(self, prompt: str, history: Sequence[Turn], context: str) -> list[Message]:
        msgs: list[Message] = [{"role": "system", "content": self.system_prompt(context)}]
        if self.config.history:
            for turn in history[-self.config.history:]:
                msgs.append({
                    "role": "user" if turn['isFromUser'] else "assistant",
                    "content": turn['content']
                })
        msgs.append({"role": "user", "content": prompt})
        return msgs

    async def complete(self, messages: list[Message]) -> str:
        cfg = self.config
        try:
            res = cast(ModelResponse, await acompletion(
                model=cfg.model,
                messages=messages,
                api_key=cfg.api_key,
                temperature=cfg.temperature,
                max_tokens=cfg.max_tokens,
                stream=False
            ))
        except Exception as e:
            logger.error("Completion with %s failed: %s", cfg.model, e)
            raise CompanionError(f"Failed to generate AI response: {e}") from e

        if not res.choices or not (text := res.choices[0].message.content): # pyright: ignore [reportAttributeAccessIssue]
            raise CompanionError("No response generated")
        return text.strip()

    async def respond(self, prompt: str, history: Sequence[Turn] = (), context: str = "") -> str:
        '''Reply to a user in a private conversation.'''
        return await self.complete(self.messages(prompt, history, context))

    async def respond_shared(self, prompt: str, history: Sequence[Turn] = (), context: str = "") -> str:
        '''Reply within a conversation shared by a couple, addressing both.'''
        shared = f"{SHARED_PROMPT} {context}".strip()
        return await self.complete(self.messages(prompt, history, shared))
