"""Member and group generators."""

from __future__ import annotations

import random
from datetime import timedelta
from typing import Iterator

from microfin.generators.base import BaseGenerator
from microfin.models import Group, Member, MemberStatus


class GroupGenerator(BaseGenerator):
    """Generate synthetic lending groups."""

    GROUP_KINDS = ["Women Group", "Self Help Group", "Traders Association", "Farmers Circle"]

    def generate(self, loan_officer_id: str | None = None) -> Group:
        """Generate a group with no contact person yet."""
        return Group(
            group_id=self.fake.uuid4(),
            name=f"{self.fake.city()} {random.choice(self.GROUP_KINDS)}",
            loan_officer_id=loan_officer_id,
            created_at=self.clock.now() - timedelta(days=random.randint(180, 3 * 365)),
        )


class MemberGenerator(BaseGenerator):
    """Generate synthetic members."""

    STATUSES = [MemberStatus.ACTIVE, MemberStatus.INACTIVE, MemberStatus.DORMANT]
    STATUS_WEIGHTS = [0.85, 0.05, 0.10]

    def generate(self, group_id: str | None = None) -> Member:
        """Generate a single member.

        Parameters
        ----------
        group_id : str | None
            Group the member belongs to.

        Returns
        -------
        Member
            Generated member.
        """
        status = random.choices(self.STATUSES, weights=self.STATUS_WEIGHTS, k=1)[0]
        return Member(
            member_id=self.fake.uuid4(),
            full_name=self.fake.name(),
            phone_number=self.fake.phone_number(),
            group_id=group_id,
            status=status.value,
            created_at=self.clock.now() - timedelta(days=random.randint(0, 2 * 365)),
        )

    def generate_batch(self, count: int, group_id: str | None = None) -> Iterator[Member]:
        """Generate multiple members of the same group."""
        for _ in range(count):
            yield self.generate(group_id)
