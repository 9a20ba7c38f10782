'''
concept: CommunicationInteraction [User]

purpose: Track live calls or chats between partners and how long they last.

principle: An interaction starts with its participants, none of whom may be
in another active interaction, and ends when any participant ends it.
'''

from datetime import datetime
import logging

from amimi.engine import Concept, action
from amimi.util import iso8601, new_id, utcnow

logger = logging.getLogger(__name__)

class CommunicationInteractionConcept(Concept):
    '''Track live interactions between users.'''

    @property
    def interactions(self):
        return self.collection("communicationInteractions")

    def _interaction(self, iid: str):
        doc = self.interactions[iid]
        return {"interactionId": iid, **doc, "participants": list(doc['participants'])}

    def _active_for(self, user: str) -> str | None:
        for iid, doc in self.interactions.items():
            if doc['active'] and user in doc['participants']:
                return iid
        return None

    @action("startInteraction")
    async def start_interaction(self, *, participants: list[str] | None = None, initiatorId: str = ""):
        if not participants:
            return {"status": "error", "error": "Participants array cannot be empty."}

        unique = list(dict.fromkeys(participants))
        if len(unique) != len(participants):
            logger.warning(
                "Duplicate participants removed starting interaction: %d of %d unique",
                len(unique), len(participants)
            )

        for user in unique:
            if self._active_for(user) is not None:
                return {
                    "status": "error",
                    "error": f"Participant {user} is already in an active communication interaction."
                }

        iid = new_id()
        self.interactions[iid] = {
            "participants": unique,
            "active": True,
            "startTime": iso8601(utcnow()),
            "endTime": None
        }
        return {"status": "success", "interactionId": iid}

    @action("endInteraction")
    async def end_interaction(self, *, interactionId: str, participantId: str):
        if (doc := self.interactions.get(interactionId)) is None:
            return {"status": "error", "error": f"Interaction with ID {interactionId} not found."}
        if not doc['active']:
            return {"status": "error", "error": f"Interaction with ID {interactionId} is already inactive."}
        if participantId not in doc['participants']:
            return {
                "status": "error",
                "error": f"Participant {participantId} is not part of interaction {interactionId}."
            }

        doc['active'] = False
        doc['endTime'] = iso8601(utcnow())
        return {"status": "success", "interaction": self._interaction(interactionId)}

    @action("getActiveInteraction")
    async def get_active_interaction(self, *, userId: str = ""):
        '''The user's ongoing interaction, null when there is none.'''
        if not userId:
            return {"status": "error", "error": "User ID cannot be empty."}
        iid = self._active_for(userId)
        return {
            "status": "success",
            "interaction": None if iid is None else self._interaction(iid)
        }

    @action("getInteractionDuration")
    async def get_interaction_duration(self, *, interactionId: str):
        if (doc := self.interactions.get(interactionId)) is None:
            return {"status": "error", "error": f"Interaction with ID {interactionId} not found."}
        if doc['active'] or doc['endTime'] is None:
            return {
                "status": "error",
                "error": f"Interaction with ID {interactionId} is still active, duration cannot be calculated."
            }

        elapsed = datetime.fromisoformat(doc['endTime']) - datetime.fromisoformat(doc['startTime'])
        return {"status": "success", "durationMs": int(elapsed.total_seconds() * 1000)}

    @action("getInteractionHistory")
    async def get_interaction_history(self, *, userId: str = ""):
        if not userId:
            return {"status": "error", "error": "User ID cannot be empty."}
        return {
            "status": "success",
            "interactions": [
                self._interaction(iid) for iid, doc in self.interactions.items()
                    if userId in doc['participants']
            ]
        }
