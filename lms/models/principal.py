from __future__ import annotations

import enum
from dataclasses import dataclass
from uuid import UUID


class Capability(enum.StrEnum):
    SELF_ENROLL = "self_enroll"
    ADMIN_ENROLL = "admin_enroll"
    VIEW_ALL_ENROLLMENTS = "view_all_enrollments"
    MANAGE_COURSES = "manage_courses"
    SCHEDULE_LIVE_CLASSES = "schedule_live_classes"


# The one place that maps roles to what they may do.  Route guards ask
# for a capability, never for a role.
CAPABILITIES_BY_ROLE: dict[str, frozenset[Capability]] = {
    "student": frozenset({Capability.SELF_ENROLL}),
    "teacher": frozenset(
        {Capability.MANAGE_COURSES, Capability.SCHEDULE_LIVE_CLASSES}
    ),
    "moderator": frozenset(
        {Capability.ADMIN_ENROLL, Capability.VIEW_ALL_ENROLLMENTS}
    ),
    "admin": frozenset(
        {
            Capability.ADMIN_ENROLL,
            Capability.VIEW_ALL_ENROLLMENTS,
            Capability.MANAGE_COURSES,
            Capability.SCHEDULE_LIVE_CLASSES,
        }
    ),
}


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    user_id: subject claim, always a UUID string
    roles: platform roles (student, teacher, moderator, admin)
    """

    user_id: str
    roles: frozenset[str]

    @property
    def user_uuid(self) -> UUID:
        return UUID(self.user_id)

    @property
    def capabilities(self) -> frozenset[Capability]:
        caps: set[Capability] = set()
        for role in self.roles:
            caps |= CAPABILITIES_BY_ROLE.get(role, frozenset())
        return frozenset(caps)

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def has_role(self, role: str) -> bool:
        return role in self.roles
