from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from core.auth import InMemoryAuthClient, UserDirectory
from core.votes import InMemoryVoteStore, VoteStore


@dataclass(frozen=True)
class Backend:
    users: UserDirectory
    votes: VoteStore

    def auth_client(self) -> InMemoryAuthClient:
        return InMemoryAuthClient(self.users)


@lru_cache(maxsize=1)
def get_backend() -> Backend:
    """Process-wide auth/vote handle, built once and passed to the UI and API."""
    return Backend(users=UserDirectory(), votes=InMemoryVoteStore())
