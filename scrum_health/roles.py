"""
Role Capabilities

Advisory role flags for the dashboard. These drive what the client offers
(e.g. an Approve button); they are not an authorization boundary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(Enum):
    ADMIN = "admin"
    PRODUCT_OWNER = "product_owner"
    SCRUM_MASTER = "scrum_master"

    @classmethod
    def parse(cls, value: Optional[str], default: Optional["Role"] = None) -> "Role":
        """Lenient lookup; unknown values fall back to ``default`` (scrum master)."""
        default = default or cls.SCRUM_MASTER
        if not value:
            return default
        try:
            return cls(value.strip().lower())
        except ValueError:
            return default


@dataclass(frozen=True)
class Capabilities:
    can_edit_config: bool
    can_enter_data: bool
    can_approve: bool
    can_view_all: bool
    can_manage_teams: bool
    label: str

    def to_dict(self) -> dict:
        return {
            "can_edit_config": self.can_edit_config,
            "can_enter_data": self.can_enter_data,
            "can_approve": self.can_approve,
            "can_view_all": self.can_view_all,
            "can_manage_teams": self.can_manage_teams,
            "label": self.label,
        }


_CAPABILITIES = {
    Role.ADMIN: Capabilities(
        can_edit_config=True,
        can_enter_data=True,
        can_approve=True,
        can_view_all=True,
        can_manage_teams=True,
        label="Full Access",
    ),
    Role.PRODUCT_OWNER: Capabilities(
        can_edit_config=False,
        can_enter_data=False,
        can_approve=True,
        can_view_all=True,
        can_manage_teams=False,
        label="Approval & Analytics",
    ),
    Role.SCRUM_MASTER: Capabilities(
        can_edit_config=False,
        can_enter_data=True,
        can_approve=False,
        can_view_all=False,
        can_manage_teams=False,
        label="Data Entry",
    ),
}


def capabilities_for(role: Role) -> Capabilities:
    return _CAPABILITIES[role]
