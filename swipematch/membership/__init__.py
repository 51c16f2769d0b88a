"""
Membership directory.

Group membership is owned by the group-management service; this package only
defines the lookup contract the consensus engine consumes and an in-memory
adapter used by the API and tests.
"""
from .directory import InMemoryMembershipDirectory, MembershipDirectory, seed_demo_groups

__all__ = ["InMemoryMembershipDirectory", "MembershipDirectory", "seed_demo_groups"]
