from dataclasses import dataclass

TRAINER = "trainer"
MANAGER = "manager"
ADMIN = "admin"
EXTENSION = "extension"

REVIEWER_ROLES = frozenset({MANAGER, ADMIN})
COMPONENT_EDITOR_ROLES = frozenset({MANAGER, ADMIN, EXTENSION})


@dataclass(frozen=True)
class Actor:
    """Caller identity as resolved by the HTTP layer (JWT subject + role claim)."""

    user_id: str
    role: str

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES

    @property
    def can_edit_components(self) -> bool:
        return self.role in COMPONENT_EDITOR_ROLES
