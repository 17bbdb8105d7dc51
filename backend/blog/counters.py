"""
Counter Synchronizer
====================

Keeps Post.comments_count equal to the number of Comment rows for the post.

WHY NOT SIGNALS:
----------------
post_save / post_delete receivers run outside the caller's view, do not fire
for QuerySet.delete() on cascaded rows in one batch, and decrement once per
row of a cascade. Here the counter update is an explicit statement in the
same transaction as the row change:

    with transaction.atomic():
        lock post row (and, on delete, every doomed comment row)
        insert/delete comment rows
        UPDATE post SET comments_count = comments_count +/- n

A reader sees both halves or neither. Every structural change to a post's
thread takes the post row lock first, so creates and deletes on one thread
are applied one at a time.

Callers validate BEFORE calling in here; nothing in this module validates
user input.
"""

import logging

from django.db import transaction
from django.db.models import F

from . import store
from .models import Post, Comment
from .queries import subtree_ids

logger = logging.getLogger(__name__)


def add_comment(post_id: int, author_id: int, content: str, parent_id: int | None = None,
                validate=None) -> Comment:
    """
    Insert a comment and bump its post's comments_count by one, atomically.

    `validate` is called with the locked post and must return the parent
    comment (or None). It runs under the post lock so the parent cannot be
    deleted between the check and the insert.
    """
    with transaction.atomic():
        post = store.lock_post(post_id)
        parent = validate(post, parent_id) if validate else None

        comment = store.create_comment(post, author_id, content, parent)
        Post.objects.filter(id=post.id).update(comments_count=F('comments_count') + 1)

    logger.info("Comment %s added to post %s (parent=%s)", comment.id, post_id, parent_id)
    return comment


def remove_comment_subtree(comment: Comment) -> int:
    """
    Delete a comment and all of its replies, transitively, and decrement the
    post's comments_count by the number of rows removed.

    Returns the number of comments removed.
    """
    with transaction.atomic():
        store.lock_post(comment.post_id)
        # Re-read under the lock; a concurrent delete may have taken it
        store.lock_comment(comment.id)

        ids = subtree_ids(comment.post_id, comment.id)
        # Lock the replies too: a like on one of them holds only that row, and
        # its Like must commit before the cascade deletes likes by object_id
        ids = store.lock_comments(ids)
        Comment.objects.filter(id__in=ids).delete()
        removed = len(ids)

        Post.objects.filter(id=comment.post_id).update(
            comments_count=F('comments_count') - removed
        )

    logger.info("Removed %s comment(s) from post %s starting at comment %s",
                removed, comment.post_id, comment.id)
    return removed


def remove_post(post: Post) -> int:
    """
    Delete a post and every comment on it.

    No counter is touched: the row holding comments_count is itself removed.
    Returns the number of comments removed.
    """
    with transaction.atomic():
        store.lock_post(post.id)
        removed = len(store.lock_post_comments(post.id))
        # Comments first, then the post row
        Comment.objects.filter(post_id=post.id).delete()
        store.delete_post(post.id)

    logger.info("Removed post %s with %s comment(s)", post.id, removed)
    return removed
