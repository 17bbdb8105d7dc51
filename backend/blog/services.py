"""
Engagement Service
==================

The public operations the HTTP layer calls. Sequences the Entity Store,
Like-Set Manager, Thread Resolver and Counter Synchronizer, and enforces
authorization using the user id that the authentication layer resolved.

Nothing here accepts an author/user id from a request body: views pass
request.user.id.

ORDER OF WORK:
--------------
check existence/ownership -> validate input -> mutate (one transaction)

A non-author gets Forbidden whatever the payload looks like.
Validation strictly precedes any counter mutation, so a rejected comment can
never leave comments_count incremented.
"""

import logging

from django.db import transaction

from . import counters, likes, store
from .exceptions import Forbidden, ValidationError
from .models import (
    Post, Comment, COMMENT_MAX_LENGTH, POST_TITLE_MAX_LENGTH, TAG_MAX_LENGTH
)
from .queries import validate_parent

logger = logging.getLogger(__name__)


# ============================================================================
# LIKES
# ============================================================================

def like_post(post_id: int, user_id: int) -> int:
    """Like a post. Returns the post's likes_count. Raises NotFound."""
    return likes.like(Post, post_id, user_id)


def unlike_post(post_id: int, user_id: int) -> int:
    return likes.unlike(Post, post_id, user_id)


def like_comment(comment_id: int, user_id: int) -> int:
    """Like a comment. Returns the comment's likes_count. Raises NotFound."""
    return likes.like(Comment, comment_id, user_id)


def unlike_comment(comment_id: int, user_id: int) -> int:
    return likes.unlike(Comment, comment_id, user_id)


# ============================================================================
# COMMENTS
# ============================================================================

def clean_comment_content(content) -> str:
    """Trimmed content, 1-500 characters, or ValidationError."""
    if not isinstance(content, str):
        raise ValidationError("Comment content is required", {'content': ['This field is required.']})
    content = content.strip()
    if not content:
        raise ValidationError("Comment must not be empty", {'content': ['Comment must not be empty.']})
    if len(content) > COMMENT_MAX_LENGTH:
        raise ValidationError(
            f"Comment cannot exceed {COMMENT_MAX_LENGTH} characters",
            {'content': [f'Comment cannot exceed {COMMENT_MAX_LENGTH} characters.']}
        )
    return content


def add_comment(post_id: int, author_id: int, content: str, parent_id: int | None = None) -> Comment:
    """
    Create a comment (or a reply when parent_id is given).

    Errors:
    - ValidationError: empty or overlong content
    - NotFound: the post does not exist
    - InvalidParent: parent missing, on another post, or malformed chain

    On success comments_count went up by exactly one and the returned
    comment has likes_count == 0.
    """
    content = clean_comment_content(content)

    def check_parent(post, parent_id):
        if parent_id is None:
            return None
        return validate_parent(post.id, parent_id)

    return counters.add_comment(post_id, author_id, content, parent_id, validate=check_parent)


def authorize_comment(comment_id: int, requester_id: int, action: str = 'edit') -> Comment:
    """The comment, or Forbidden when requester_id is not its author."""
    comment = store.get_comment(comment_id)
    if comment.author_id != requester_id:
        raise Forbidden(f"Only the author can {action} this comment")
    return comment


def update_comment(comment_id: int, requester_id: int, content: str) -> Comment:
    """Edit a comment's content. Author only."""
    authorize_comment(comment_id, requester_id)
    content = clean_comment_content(content)

    with transaction.atomic():
        comment = store.lock_comment(comment_id)
        comment.content = content
        comment.save(update_fields=['content', 'updated_at'])

    logger.info("Comment %s edited by user %s", comment_id, requester_id)
    return store.get_comment(comment_id)


def delete_comment(comment_id: int, requester_id: int) -> int:
    """
    Delete a comment and its whole reply subtree. Author only.

    Returns the number of comments removed; the post's comments_count went
    down by the same amount.
    """
    comment = authorize_comment(comment_id, requester_id, 'delete')

    return counters.remove_comment_subtree(comment)


# ============================================================================
# POSTS
# ============================================================================

def _clean_title(title) -> str:
    title = title.strip() if isinstance(title, str) else ''
    if not title:
        raise ValidationError("Title is required", {'title': ['Title must not be empty.']})
    if len(title) > POST_TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Title cannot exceed {POST_TITLE_MAX_LENGTH} characters",
            {'title': [f'Title cannot exceed {POST_TITLE_MAX_LENGTH} characters.']}
        )
    return title


def _clean_body(body) -> str:
    body = body.strip() if isinstance(body, str) else ''
    if not body:
        raise ValidationError("Body is required", {'body': ['Body must not be empty.']})
    return body


def _clean_tags(tags) -> list[str]:
    names = store.normalize_tags(tags)
    too_long = [name for name in names if len(name) > TAG_MAX_LENGTH]
    if too_long:
        raise ValidationError(
            f"Tags cannot exceed {TAG_MAX_LENGTH} characters",
            {'tags': [f'Tag "{name[:20]}..." is too long.' for name in too_long]}
        )
    return names


def create_post(author_id: int, title: str, body: str, tags=(), cover_image: str = '') -> Post:
    post = store.create_post(
        author_id,
        _clean_title(title),
        _clean_body(body),
        _clean_tags(tags),
        cover_image,
    )
    logger.info("Post %s created by user %s", post.id, author_id)
    return post


def authorize_post(post_id: int, requester_id: int, action: str = 'edit') -> Post:
    """The post, or Forbidden when requester_id is not its author."""
    post = store.get_post(post_id)
    if post.author_id != requester_id:
        raise Forbidden(f"Only the author can {action} this post")
    return post


def update_post(post_id: int, requester_id: int, **fields) -> Post:
    """
    Edit title, body, tags and/or cover_image. Author only.

    Author, counters and timestamps are never editable here.
    """
    authorize_post(post_id, requester_id)

    cleaned = {}
    if 'title' in fields:
        cleaned['title'] = _clean_title(fields['title'])
    if 'body' in fields:
        cleaned['body'] = _clean_body(fields['body'])
    if 'cover_image' in fields:
        cleaned['cover_image'] = fields['cover_image'] or ''
    tags = _clean_tags(fields['tags']) if 'tags' in fields else None

    with transaction.atomic():
        post = store.lock_post(post_id)
        for name, value in cleaned.items():
            setattr(post, name, value)
        post.save(update_fields=[*cleaned, 'updated_at'])
        if tags is not None:
            post.tags.set(store.resolve_tags(tags))

    logger.info("Post %s edited by user %s", post_id, requester_id)
    return store.get_post(post_id)


def delete_post(post_id: int, requester_id: int) -> int:
    """
    Delete a post and every comment on it. Author only.

    Returns the number of comments removed.
    """
    post = authorize_post(post_id, requester_id, 'delete')

    return counters.remove_post(post)
