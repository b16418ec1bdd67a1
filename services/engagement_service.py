"""
Engagement Service Module

This module handles views and likes. A like is shown to the reader before
the store confirms it, so each like is tracked as a LikeAttempt:

    pending --store increment succeeds--> confirmed
    pending --store increment fails-----> reverted

A reverted attempt restores the previous count and un-marks the post as
liked for that visitor.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Set

from utils.exceptions import BlogError, DuplicateError
from utils.logger import get_logger

logger = get_logger(__name__)


class LikeState(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


@dataclass
class LikeAttempt:
    """One optimistic like and its outcome."""
    post_id: str
    visitor_id: str
    previous_count: int
    state: LikeState = LikeState.PENDING
    confirmed_count: Optional[int] = None
    error: Optional[str] = None

    @property
    def optimistic_count(self) -> int:
        return self.previous_count + 1

    @property
    def displayed_count(self) -> int:
        """The count a reader should see right now."""
        if self.state is LikeState.CONFIRMED:
            return self.confirmed_count
        if self.state is LikeState.REVERTED:
            return self.previous_count
        return self.optimistic_count

    def confirm(self, new_count: int) -> None:
        if self.state is not LikeState.PENDING:
            raise ValueError(f"Cannot confirm a like that is already {self.state.value}")
        self.state = LikeState.CONFIRMED
        self.confirmed_count = new_count

    def revert(self, error: str) -> None:
        if self.state is not LikeState.PENDING:
            raise ValueError(f"Cannot revert a like that is already {self.state.value}")
        self.state = LikeState.REVERTED
        self.error = error


class LikedPosts:
    """Per-visitor memory of liked posts."""

    def __init__(self):
        self._liked: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def has_liked(self, visitor_id: str, post_id: str) -> bool:
        with self._lock:
            return post_id in self._liked.get(visitor_id, set())

    def add(self, visitor_id: str, post_id: str) -> bool:
        """Mark a post liked. False if it already was."""
        with self._lock:
            liked = self._liked.setdefault(visitor_id, set())
            if post_id in liked:
                return False
            liked.add(post_id)
            return True

    def discard(self, visitor_id: str, post_id: str) -> None:
        with self._lock:
            self._liked.get(visitor_id, set()).discard(post_id)


class EngagementService:
    """Service for post views and likes."""

    def __init__(self, post_service, liked_posts: Optional[LikedPosts] = None):
        self.post_service = post_service
        self.liked_posts = liked_posts or LikedPosts()

    def record_view(self, post_id: str) -> Optional[int]:
        """Count a view. A failed increment is logged and never shown to the reader."""
        try:
            return self.post_service.increment_view(post_id)
        except BlogError as e:
            logger.warning(f"Failed to record view for post {post_id}: {e}")
            return None

    def has_liked(self, visitor_id: str, post_id: str) -> bool:
        return self.liked_posts.has_liked(visitor_id, post_id)

    def begin_like(self, post_id: str, visitor_id: str, current_count: int) -> LikeAttempt:
        """
        Start an optimistic like.

        Raises:
            DuplicateError: If this visitor already liked the post.
        """
        if not self.liked_posts.add(visitor_id, post_id):
            raise DuplicateError("You have already liked this post")
        return LikeAttempt(post_id=post_id, visitor_id=visitor_id, previous_count=current_count)

    def settle(self, attempt: LikeAttempt) -> LikeAttempt:
        """Send the increment to the store and confirm or revert the attempt."""
        try:
            new_count = self.post_service.increment_like(attempt.post_id)
        except BlogError as e:
            attempt.revert(str(e))
            self.liked_posts.discard(attempt.visitor_id, attempt.post_id)
            logger.error(f"Like for post {attempt.post_id} reverted: {e}")
            return attempt

        attempt.confirm(new_count)
        logger.info(f"Like for post {attempt.post_id} confirmed ({new_count} likes)")
        return attempt

    def like(self, post_id: str, visitor_id: str, current_count: int) -> LikeAttempt:
        return self.settle(self.begin_like(post_id, visitor_id, current_count))
