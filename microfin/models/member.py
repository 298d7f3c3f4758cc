"""Member and group models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from microfin.models.base import enum_value, to_datetime
from microfin.models.enums import MemberStatus


@dataclass
class Member:
    """Person registered with the institution."""

    member_id: str
    full_name: str
    phone_number: str
    group_id: str | None = None
    status: str = MemberStatus.ACTIVE.value
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Member":
        return cls(
            member_id=row["id"],
            full_name=row.get("full_name") or "",
            phone_number=row.get("phone_number") or "",
            group_id=row.get("group_id"),
            status=enum_value(row.get("status")) or MemberStatus.ACTIVE.value,
            created_at=to_datetime(row.get("created_at")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.member_id,
            "full_name": self.full_name,
            "phone_number": self.phone_number,
            "group_id": self.group_id,
            "status": enum_value(self.status),
            "created_at": self.created_at,
        }


@dataclass
class Group:
    """Lending group; may designate one member as its contact person."""

    group_id: str
    name: str
    contact_person_id: str | None = None
    loan_officer_id: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Group":
        return cls(
            group_id=row["id"],
            name=row.get("name") or "",
            contact_person_id=row.get("contact_person_id"),
            loan_officer_id=row.get("loan_officer_id"),
            created_at=to_datetime(row.get("created_at")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.group_id,
            "name": self.name,
            "contact_person_id": self.contact_person_id,
            "loan_officer_id": self.loan_officer_id,
            "created_at": self.created_at,
        }
