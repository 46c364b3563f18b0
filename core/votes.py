from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Tuple

from core.auth import UserIdentity
from core.errors import VoteError

logger = logging.getLogger(__name__)

VOTE_CHOICES = ("yay", "nay")


@dataclass(frozen=True)
class Vote:
    user_id: str
    vote: str
    created_at: datetime
    email: Optional[str] = None


class VoteStore(Protocol):
    def get_vote(self, user_id: str) -> Optional[Vote]: ...

    def set_vote_if_absent(self, user_id: str, choice: str, email: Optional[str] = None) -> Tuple[Vote, bool]: ...


class InMemoryVoteStore:
    """Write-once vote documents keyed by user id.

    The check and the write happen under one lock, so two sessions racing for
    the same user still end up with exactly one stored vote.
    """

    def __init__(self) -> None:
        self._votes: Dict[str, Vote] = {}
        self._lock = threading.Lock()

    def get_vote(self, user_id: str) -> Optional[Vote]:
        with self._lock:
            return self._votes.get(user_id)

    def set_vote_if_absent(self, user_id: str, choice: str, email: Optional[str] = None) -> Tuple[Vote, bool]:
        with self._lock:
            existing = self._votes.get(user_id)
            if existing is not None:
                return existing, False
            vote = Vote(user_id=user_id, vote=choice, created_at=datetime.now(timezone.utc), email=email)
            self._votes[user_id] = vote
            return vote, True


def normalize_choice(choice: object) -> str:
    value = str(choice or "").strip().lower()
    if value not in VOTE_CHOICES:
        raise VoteError(f"Vote must be one of {', '.join(VOTE_CHOICES)}, got {choice!r}.")
    return value


def cast_vote(store: VoteStore, user: Optional[UserIdentity], choice: object) -> Tuple[Vote, bool]:
    """Record ``choice`` for ``user`` unless a vote already exists; returns (vote, created)."""
    if user is None:
        raise VoteError("Sign in to vote.")
    value = normalize_choice(choice)
    vote, created = store.set_vote_if_absent(user.uid, value, user.email)
    if created:
        logger.info("Recorded %s vote for user %s", value, user.uid)
    else:
        logger.info("User %s already voted %s; keeping it", user.uid, vote.vote)
    return vote, created
