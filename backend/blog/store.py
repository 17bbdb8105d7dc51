"""
Entity Store
============

Thin persistence primitives over the ORM for Posts and Comments.

Contract:
- create is atomic: the full row (counters at zero, tags attached) or nothing
- get raises NotFound instead of returning None
- delete of a missing id raises NotFound, so callers can tell
  "already gone" from "just removed"
- lock_* must be called inside transaction.atomic(); it takes a row lock
  (SELECT ... FOR UPDATE) that serialises every counter mutation on that row

Lock order, when both are needed: post first, then comment. Bulk comment
locks are taken in id order.
"""

from typing import Iterable

from django.db import transaction

from .exceptions import NotFound
from .models import Post, Comment, Tag


def normalize_tags(names: Iterable[str]) -> list[str]:
    """Trim, lower-case and de-duplicate tag names, keeping first-seen order."""
    seen = set()
    ordered = []
    for name in names or ():
        cleaned = name.strip().lower()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            ordered.append(cleaned)
    return ordered


def resolve_tags(names: Iterable[str]) -> list[Tag]:
    # get_or_create retries on IntegrityError, so concurrent posts sharing a
    # new tag both end up with the same row
    return [Tag.objects.get_or_create(name=name)[0] for name in normalize_tags(names)]


def create_post(author_id: int, title: str, body: str, tags=(), cover_image: str = '') -> Post:
    with transaction.atomic():
        post = Post.objects.create(
            author_id=author_id,
            title=title,
            body=body,
            cover_image=cover_image or '',
        )
        post.tags.set(resolve_tags(tags))
    return post


def create_comment(post: Post, author_id: int, content: str, parent: Comment | None = None) -> Comment:
    """
    Insert a comment row. Only counters.add_comment calls this, inside the
    transaction that also bumps Post.comments_count.
    """
    return Comment.objects.create(
        post=post,
        author_id=author_id,
        content=content,
        parent=parent,
        depth=parent.depth + 1 if parent else 0,
    )


def get_post(post_id: int) -> Post:
    try:
        return Post.objects.select_related('author').get(id=post_id)
    except Post.DoesNotExist:
        raise NotFound(f"Post {post_id} does not exist")


def get_comment(comment_id: int) -> Comment:
    try:
        return Comment.objects.select_related('author').get(id=comment_id)
    except Comment.DoesNotExist:
        raise NotFound(f"Comment {comment_id} does not exist")


def lock_post(post_id: int) -> Post:
    try:
        return Post.objects.select_for_update().get(id=post_id)
    except Post.DoesNotExist:
        raise NotFound(f"Post {post_id} does not exist")


def lock_comment(comment_id: int) -> Comment:
    try:
        return Comment.objects.select_for_update().get(id=comment_id)
    except Comment.DoesNotExist:
        raise NotFound(f"Comment {comment_id} does not exist")


def lock_comments(comment_ids) -> list[int]:
    """Lock the given comment rows in id order. Returns the ids still present."""
    return list(
        Comment.objects.select_for_update()
        .filter(id__in=comment_ids)
        .order_by('id')
        .values_list('id', flat=True)
    )


def lock_post_comments(post_id: int) -> list[int]:
    """Lock every comment row of a post in id order."""
    return list(
        Comment.objects.select_for_update()
        .filter(post_id=post_id)
        .order_by('id')
        .values_list('id', flat=True)
    )


def lock(model, object_id: int):
    """Row lock for any likeable model."""
    if model is Post:
        return lock_post(object_id)
    if model is Comment:
        return lock_comment(object_id)
    raise ValueError(f"Not a likeable model: {model!r}")


def delete_post(post_id: int) -> None:
    deleted, _ = Post.objects.filter(id=post_id).delete()
    if not deleted:
        raise NotFound(f"Post {post_id} does not exist")
