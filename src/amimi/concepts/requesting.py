from typing import TypedDict

from amimi.engine import Concept, action
from amimi.util import iso8601, new_id, utcnow

class RequestingConcept(Concept):
    '''
    Inbound requests and their responses. Every request to a route which is
    not passed through becomes a `request` action for syncs to react to.
    '''

    class Request(TypedDict):
        request: str

    @action
    async def request(self, *, path: str, **body) -> Request:
        '''An inbound request to be processed by syncs.'''
        uid = new_id()
        self.collection("requests")[uid] = {
            "path": path,
            "input": body,
            "createdAt": iso8601(utcnow())
        }
        return {"request": uid}

    @action
    async def respond(self, *, request: str, **response):
        '''Respond to a request, once.'''
        reqs = self.collection("requests")
        if (req := reqs.get(request)) is None:
            return {"status": "error", "error": f"Unknown request {request}"}
        if "response" in req:
            return {"status": "error", "error": f"Request {request} already responded"}
        req['response'] = response
        return {"request": request}

