"""
Comment Service Module

This module reads and adds reader comments and rebuilds the reply tree
from flat parent_id references.

Tree policy:
- A comment whose parent is missing (deleted, or never visible) is shown at
  root level and flagged is_orphan; it is never dropped.
- A comment whose parent chain loops is treated the same way.
- Replies nested deeper than max_depth are shown under their deepest
  allowed ancestor.
"""

from typing import Optional, List, Dict

from config import settings
from data.models import Comment, CommentNode
from data.protocols import CommentStore
from utils.exceptions import ValidationError
from utils.logger import get_logger

logger = get_logger(__name__)


def _ancestors(comment: Comment, by_id: Dict[str, Comment]) -> Optional[List[str]]:
    """Known ancestor ids, nearest first. None when the chain loops."""
    chain = []
    seen = {comment.id}
    parent_id = comment.parent_id
    while parent_id is not None and parent_id in by_id:
        if parent_id in seen:
            return None
        seen.add(parent_id)
        chain.append(parent_id)
        parent_id = by_id[parent_id].parent_id
    return chain


def build_comment_tree(comments: List[Comment], max_depth: Optional[int] = None) -> List[CommentNode]:
    """
    Rebuild the reply tree from a flat, oldest-first comment list.

    Args:
        comments: Comments for one post, oldest first.
        max_depth: Deepest reply level shown (COMMENT_MAX_DEPTH when omitted);
            0 flattens every comment to root level.

    Returns:
        List[CommentNode]: Root nodes in input order, replies in input order.
    """
    if max_depth is None:
        max_depth = settings.COMMENT_MAX_DEPTH

    by_id = {comment.id: comment for comment in comments}
    nodes = {comment.id: CommentNode(comment=comment) for comment in comments}
    roots = []

    for comment in comments:
        node = nodes[comment.id]
        chain = _ancestors(comment, by_id)

        if comment.parent_id is not None and not chain:
            # Parent missing or part of a loop
            node.is_orphan = True
            logger.debug(f"Comment {comment.id} has unresolved parent {comment.parent_id}; shown at root")
            roots.append(node)
            continue

        if not chain or max_depth < 1:
            roots.append(node)
            continue

        depth = len(chain)
        if depth <= max_depth:
            parent_id = chain[0]
        else:
            parent_id = chain[depth - max_depth]
        node.depth = min(depth, max_depth)
        nodes[parent_id].replies.append(node)

    return roots


class CommentService:
    """Service for reader comments."""

    def __init__(self, comment_store: CommentStore):
        self.store = comment_store

    def list(self, post_id: str) -> List[Comment]:
        """Approved comments for a post, oldest first."""
        rows = self.store.fetch_comments(post_id, status=settings.COMMENT_DEFAULT_STATUS)
        return [Comment.from_row(row) for row in rows]

    def get_tree(self, post_id: str, max_depth: Optional[int] = None) -> List[CommentNode]:
        return build_comment_tree(self.list(post_id), max_depth)

    def add(self, post_id: str, author_name: str, author_email: str, content: str,
            parent_id: Optional[str] = None) -> Comment:
        """
        Add a comment, or a reply when parent_id is given.

        Args:
            post_id: Post the comment belongs to.
            author_name: Display name (required).
            author_email: Contact email (required, not verified).
            content: Comment text (required).
            parent_id: Comment being replied to; must belong to the same post.

        Returns:
            Comment: The stored comment.

        Raises:
            ValidationError: If a required field is blank or the parent is invalid.
            PermissionError: If the store rejects the write.
            BackendError: For any other store failure.
        """
        fields = {
            'post_id': (post_id or '').strip(),
            'author_name': (author_name or '').strip(),
            'author_email': (author_email or '').strip(),
            'content': (content or '').strip(),
        }
        errors = [f"{name} is required" for name, value in fields.items() if not value]
        if errors:
            raise ValidationError(errors)

        if parent_id is not None:
            parent = self.store.fetch_comment_by_id(parent_id)
            if not parent or str(Comment.from_row(parent).post_id) != fields['post_id']:
                raise ValidationError("parent comment must belong to the same post")
            fields['parent_id'] = parent_id

        fields['status'] = settings.COMMENT_DEFAULT_STATUS
        comment = Comment.from_row(self.store.insert_comment(fields))
        logger.info(f"Added comment {comment.id} to post {comment.post_id}")
        return comment
