'''
concept: ContentCapture [User, Source]

purpose: Record audio, image or text captures of a source, such as a call,
and the text transcribed from them.

principle: A capture is started for a source and stays "capturing" until it
is stopped with the captured text, after which it is "completed".
'''

from amimi.engine import Concept, action
from amimi.util import iso8601, new_id, utcnow

CAPTURE_TYPES = ("audio", "image", "text")

class ContentCaptureConcept(Concept):
    '''Record captures of a source and the text taken from them.'''

    @property
    def captures(self):
        return self.collection("contentCaptures")

    def _capture(self, cid: str):
        return {"captureId": cid, **self.captures[cid]}

    @action("startCapture")
    async def start_capture(self, *, sourceId: str, type: str, owner: str):
        if type not in CAPTURE_TYPES:
            return {
                "status": "error",
                "error": f"Invalid capture type: '{type}'. Must be 'audio', 'image', or 'text'."
            }

        cid = new_id()
        self.captures[cid] = {
            "sourceId": sourceId,
            "captureType": type,
            "timestamp": iso8601(utcnow()),
            "owner": owner,
            "status": "capturing",
            "capturedText": None
        }
        return {"status": "success", "capture": self._capture(cid)}

    @action("stopCapture")
    async def stop_capture(self, *, captureId: str, capturedText: str):
        '''Complete a capture which is still in progress.'''
        if (doc := self.captures.get(captureId)) is None:
            return {"status": "error", "error": f"Capture with ID '{captureId}' not found."}
        if doc['status'] != "capturing":
            return {
                "status": "error",
                "error": f"Capture with ID '{captureId}' is not in 'capturing' status. Current status: {doc['status']}."
            }

        doc['status'] = "completed"
        doc['capturedText'] = capturedText
        return {"status": "success", "capture": self._capture(captureId)}

    @action("getCapture")
    async def get_capture(self, *, captureId: str):
        if captureId not in self.captures:
            return {"status": "error", "error": f"Capture with ID '{captureId}' not found."}
        return {"status": "success", "capture": self._capture(captureId)}

    @action("getCapturesBySource")
    async def get_captures_by_source(self, *, sourceId: str):
        return {
            "status": "success",
            "captures": [
                self._capture(cid) for cid, doc in self.captures.items()
                    if doc['sourceId'] == sourceId
            ]
        }

    @action("deleteCapture")
    async def delete_capture(self, *, captureId: str):
        if self.captures.pop(captureId, None) is None:
            return {"status": "error", "error": f"Capture with ID '{captureId}' not found for deletion."}
        return {"status": "success", "message": f"Capture with ID '{captureId}' deleted successfully."}
