'''
concept: VisualGeneration [User]

purpose: Turn a text prompt into a styled visual a user can keep.

principle: A user asks for a visual of some text in one of the allowed
styles and gets back a link to it, which can be regenerated or deleted.
'''

from amimi.engine import Concept, action
from amimi.util import iso8601, new_id, utcnow

VISUAL_STYLES = ("comic", "photo", "abstract", "sketch", "watercolor")
VISUAL_HOST = "https://api.visualgen.example.com/visuals"

class VisualGenerationConcept(Concept):
    '''Styled visuals generated from text prompts.'''

    def __init__(self, host: str = VISUAL_HOST):
        super().__init__()
        self.host = host
        self.revision = 0

    @property
    def visuals(self):
        return self.collection("visuals")

    def _visual(self, vid: str):
        return {"visualId": vid, **self.visuals[vid]}

    @action("generateVisual")
    async def generate_visual(self, *, text: str = "", style: str = "", owner: str):
        if not text or not text.strip():
            return {"status": "error", "error": "Text prompt cannot be empty."}
        if style not in VISUAL_STYLES:
            return {
                "status": "error",
                "error": f'Invalid visual style: "{style}". Allowed styles are: {", ".join(VISUAL_STYLES)}.'
            }

        vid = new_id()
        self.visuals[vid] = {
            "promptText": text,
            "visualUrl": f"{self.host}/{vid}",
            "style": style,
            "owner": owner,
            "createdAt": iso8601(utcnow())
        }
        return {"status": "success", "visual": self._visual(vid)}

    @action("getVisual")
    async def get_visual(self, *, visualId: str):
        if visualId not in self.visuals:
            return {"status": "error", "error": f'Visual with ID "{visualId}" not found.'}
        return {"status": "success", "visual": self._visual(visualId)}

    @action("regenerateVisual")
    async def regenerate_visual(self, *, visualId: str):
        '''Point the visual at a fresh rendering of the same prompt.'''
        if (doc := self.visuals.get(visualId)) is None:
            return {"status": "error", "error": f'Visual with ID "{visualId}" not found for regeneration.'}
        self.revision += 1
        doc['visualUrl'] = f"{self.host}/{visualId}?v={self.revision}"
        return {"status": "success", "visual": self._visual(visualId)}

    @action("deleteVisual")
    async def delete_visual(self, *, visualId: str):
        if self.visuals.pop(visualId, None) is None:
            return {"status": "error", "error": f'Visual with ID "{visualId}" not found for deletion.'}
        return {"status": "success", "message": f'Visual with ID "{visualId}" deleted successfully.'}

    @action("getUserVisuals")
    async def get_user_visuals(self, *, userId: str):
        return {
            "status": "success",
            "visuals": [
                self._visual(vid) for vid, doc in self.visuals.items()
                    if doc['owner'] == userId
            ]
        }
