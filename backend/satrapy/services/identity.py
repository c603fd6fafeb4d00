"""Username/password checks for the HTTP login flow.

Rooms never call this; they trust whatever player id the client sends.
"""

from satrapy import db
from satrapy.models import User

OK = 'ok'
EXISTS = 'exists'
INVALID = 'invalid'
NOT_FOUND = 'notfound'
BAD_PASSWORD = 'badpass'


class IdentityGate:
    def register(self, username, password) -> str:
        if not username or not password:
            return INVALID
        if User.query.filter_by(username=username).first():
            return EXISTS
        user = User(username=username)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return OK

    def login(self, username, password) -> str:
        if not username or not password:
            return INVALID
        user = self.find(username)
        if not user:
            return NOT_FOUND
        if not user.check_password(password):
            return BAD_PASSWORD
        return OK

    def find(self, username):
        return User.query.filter_by(username=username).first()
