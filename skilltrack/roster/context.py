"""
Explicit caller context threaded into every engine call.

The engine never looks up a "current user" on its own; the transport layer
(or a test) builds a CallerContext and passes it down.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class CallerContext:
    """Authenticated principal: who is calling, in what role, for which school"""
    id: object
    role: str
    school_scope: object = None

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def is_instructor(self):
        return self.role in ('instructor', 'admin')

    @classmethod
    def for_profile(cls, profile):
        return cls(id=profile.id, role=profile.role, school_scope=profile.school_code)
