from amimi.agent import Companion
from amimi.config import Config
from amimi.engine import Concept

from .communication_interaction import CommunicationInteractionConcept
from .content_capture import ContentCaptureConcept
from .conversational_agent import ConversationalAgentConcept
from .group_conversation import GroupConversationConcept
from .pairing import PairingConcept
from .requesting import RequestingConcept
from .sessioning import SessioningConcept
from .visual_generation import VisualGenerationConcept

__all__ = (
    'CommunicationInteractionConcept',
    'ContentCaptureConcept',
    'ConversationalAgentConcept',
    'GroupConversationConcept',
    'PairingConcept',
    'RequestingConcept',
    'SessioningConcept',
    'VisualGenerationConcept',
    'load_concepts',
)

def load_concepts(config: Config, companion: Companion | None = None) -> list[Concept]:
    '''Instantiate every concept of the application.'''
    companion = companion or Companion(config.agent)
    return [
        RequestingConcept(),
        SessioningConcept(config.sessions),
        PairingConcept(),
        ConversationalAgentConcept(companion),
        GroupConversationConcept(companion),
        ContentCaptureConcept(),
        CommunicationInteractionConcept(),
        VisualGenerationConcept(),
    ]
