'''
concept: Sessioning [User, Session]

purpose: Manage user authentication, sessions, and authorization

principle: Users register with email/password, can login to get session
tokens, and their sessions can be validated to check authentication status.
'''

from datetime import datetime, timedelta
import hashlib
import hmac
import secrets
from typing import TypedDict

from amimi.config import SessionConfig
from amimi.engine import Concept, action, query
from amimi.util import new_id, utcnow

def hash_password(password: str, salt: bytes | None = None) -> str:
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.scrypt(password.encode(), salt=salt, n=2**14, r=8, p=1)
    return f"{salt.hex()}${digest.hex()}"

def check_password(password: str, stored: str) -> bool:
    salt, _, digest = stored.partition("$")
    expect = hash_password(password, bytes.fromhex(salt))
    return hmac.compare_digest(expect.partition("$")[2], digest)

class SessioningConcept(Concept):
    '''Manage user authentication, sessions, and authorization.'''

    class UserRow(TypedDict):
        user: str

    def __init__(self, config: SessionConfig | None = None):
        super().__init__()
        self.config = config or SessionConfig()

    @property
    def users(self):
        return self.collection("users")

    @property
    def sessions(self):
        return self.collection("sessions")

    def _create_session(self, user: str) -> str:
        token = new_id()
        now = utcnow()
        self.sessions[token] = {
            "userId": user,
            "createdAt": now,
            "expiresAt": now + timedelta(days=self.config.ttl_days)
        }
        return token

    def _find_email(self, email: str):
        email = email.lower()
        for uid, doc in self.users.items():
            if doc['email'] == email:
                return uid, doc
        return None

    @action
    async def register(self, *, email: str = "", password: str = "", name: str = ""):
        '''
        Creates a new user account with hashed password, creates a session,
        and returns both.
        '''
        if not email or not email.strip():
            return {"error": "Email is required"}
        if "@" not in email:
            return {"error": "Invalid email format"}
        if not password or len(password) < self.config.min_password:
            return {"error": f"Password must be at least {self.config.min_password} characters"}
        if not name or not name.strip():
            return {"error": "Name is required"}
        if self._find_email(email):
            return {"error": "Email already registered"}

        uid = new_id()
        self.users[uid] = {
            "email": email.lower(),
            "passwordHash": hash_password(password),
            "name": name.strip(),
            "createdAt": utcnow()
        }
        return {"user": uid, "session": self._create_session(uid)}

    @action
    async def login(self, *, email: str = "", password: str = ""):
        '''Validates credentials and returns a new session if valid.'''
        if not email or not password:
            return {"error": "Email and password are required"}
        if (found := self._find_email(email)) is None:
            return {"error": "Invalid email or password"}
        uid, doc = found
        if not check_password(password, doc['passwordHash']):
            return {"error": "Invalid email or password"}
        return {"user": uid, "session": self._create_session(uid)}

    @action
    async def logout(self, *, session: str):
        if self.sessions.pop(session, None) is None:
            return {"error": "Session not found or already expired"}
        return {}

    @query("_getUserBySession")
    async def get_user_by_session(self, *, session: str) -> list[UserRow]:
        '''
        The user associated with a session if valid, no rows if the session
        is invalid or expired.
        '''
        if (doc := self.sessions.get(session)) is None:
            return []
        if doc['expiresAt'] < utcnow():
            del self.sessions[session]
            return []
        return [{"user": doc['userId']}]

    @action("getUser")
    async def get_user(self, *, session: str):
        if not (rows := await self.get_user_by_session(session=session)):
            return {"error": "Invalid or expired session"}
        return rows[0]

    @action("getUserInfo")
    async def get_user_info(self, *, session: str):
        if not (rows := await self.get_user_by_session(session=session)):
            return {"error": "Invalid or expired session"}
        user = rows[0]['user']
        if (doc := self.users.get(user)) is None:
            return {"error": "User not found"}
        return {"user": user, "name": doc['name']}

    @action("validateSession")
    async def validate_session(self, *, session: str):
        if not (rows := await self.get_user_by_session(session=session)):
            return {"valid": False}
        return {"valid": True, "user": rows[0]['user']}

    @action("cleanupExpiredSessions")
    async def cleanup_expired_sessions(self):
        now = utcnow()
        expired = [k for k, v in self.sessions.items() if v['expiresAt'] < now]
        for k in expired:
            del self.sessions[k]
        return {"deleted": len(expired)}

    def expire(self, session: str, at: datetime | None = None):
        '''Force a session's expiry, mostly useful for administration.'''
        if doc := self.sessions.get(session):
            doc['expiresAt'] = at or utcnow() - timedelta(seconds=1)
