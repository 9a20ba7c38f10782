'''
concept: Pairing [User]

purpose: Link two users as a couple through a one-time code.

principle: One user generates a code and shares it, their partner accepts it
and both become paired until the pair is dissolved.
'''

from amimi.engine import Concept, action, query
from amimi.util import iso8601, new_code, new_id, utcnow

class PairingConcept(Concept):
    '''Link two users as a couple through a one-time code.'''

    @property
    def codes(self):
        return self.collection("pendingCodes")

    @property
    def pairs(self):
        return self.collection("pairs")

    def _pair_of(self, user: str) -> tuple[str, dict] | None:
        for pid, doc in self.pairs.items():
            if user in (doc['user1'], doc['user2']):
                return pid, doc
        return None

    @action("generateCode")
    async def generate_code(self, *, user: str):
        if self._pair_of(user):
            return {"error": f"User {user} is already in an active pair."}
        if any(doc['generator'] == user for doc in self.codes.values()):
            return {"error": f"User {user} has already generated a pending pairing code."}

        while (code := new_code()) in self.codes:
            pass
        self.codes[code] = {"generator": user, "createdAt": iso8601(utcnow())}
        return {"code": code}

    @action("acceptPairing")
    async def accept_pairing(self, *, user: str, code: str):
        if (pending := self.codes.get(code)) is None:
            return {"error": f"Pairing code {code} is invalid or has already been used."}
        generator = pending['generator']
        if generator == user:
            return {"error": f"User {user} cannot accept a pairing code they generated."}
        if self._pair_of(user):
            return {"error": f"User {user} is already in an active pair."}
        if self._pair_of(generator):
            return {"error": f"User {generator} is already in an active pair."}

        del self.codes[code]
        # The acceptor's own pending code is void once paired
        for c in [c for c, d in self.codes.items() if d['generator'] == user]:
            del self.codes[c]

        pid = new_id()
        self.pairs[pid] = {
            "user1": generator,
            "user2": user,
            "sharedConversationId": None,
            "createdAt": iso8601(utcnow())
        }
        return {"pair": pid, "users": [generator, user]}

    @action("dissolvePair")
    async def dissolve_pair(self, *, pair: str):
        if self.pairs.pop(pair, None) is None:
            return {"error": f"Pair {pair} does not exist."}
        return {}

    @action("getPair")
    async def get_pair(self, *, user: str):
        if (found := self._pair_of(user)) is None:
            return {"error": f"User {user} is not in an active pair."}
        pid, doc = found
        return {
            "pair": pid,
            "sharedConversationId": doc['sharedConversationId'],
            "partner": doc['user2'] if doc['user1'] == user else doc['user1']
        }

    @action("isPaired")
    async def is_paired(self, *, user: str):
        return {"isPaired": self._pair_of(user) is not None}

    @action("updateSharedConversation")
    async def update_shared_conversation(self, *, pair: str, sharedConversationId: str):
        if (doc := self.pairs.get(pair)) is None:
            return {"error": f"Pair {pair} does not exist."}
        doc['sharedConversationId'] = sharedConversationId
        return {"pair": pair, "sharedConversationId": sharedConversationId}

    @query("_getPair")
    async def get_pair_doc(self, *, pair: str):
        if (doc := self.pairs.get(pair)) is None:
            return []
        return [{"pair": pair, **doc}]
