"""
Like-Set Manager
================

Owns like/unlike for any likeable entity (Post or Comment).

INVARIANT:
    entity.likes_count == Like.objects.filter(<entity>).count()

CONCURRENCY STRATEGY:
---------------------
Problem: two requests toggling a like on the same post at the same moment.
Naive: read likes -> check membership -> append -> save count -> LOST UPDATE.

What we do, all inside one transaction:
1. SELECT ... FOR UPDATE on the target row
   - toggles on the same entity queue up behind each other
   - toggles on different entities never touch the same lock
2. Insert the Like row inside a savepoint
   - the unique constraint makes this an atomic "add to set if absent"
   - IntegrityError means the user is already in the set: no-op
3. Move the counter with F() in the same transaction
   - the counter and the set commit (or roll back) together

Both operations are idempotent and return the resulting likes_count.
"""

import logging

from django.db import transaction, IntegrityError
from django.db.models import F, Q
from django.contrib.contenttypes.models import ContentType

from . import store
from .models import Post, Comment, Like

logger = logging.getLogger(__name__)


def like(model, object_id: int, user_id: int) -> int:
    """
    Add user_id to the entity's like-set.

    Raises NotFound if the entity does not exist. Liking twice returns the
    current count unchanged.
    """
    content_type = ContentType.objects.get_for_model(model)

    with transaction.atomic():
        target = store.lock(model, object_id)

        try:
            with transaction.atomic():
                Like.objects.create(
                    user_id=user_id,
                    content_type=content_type,
                    object_id=object_id
                )
        except IntegrityError:
            # Already in the set. Expected, not an error.
            logger.debug("Duplicate like ignored: user=%s %s=%s",
                         user_id, content_type.model, object_id)
            return target.likes_count

        model.objects.filter(pk=object_id).update(likes_count=F('likes_count') + 1)
        target.refresh_from_db(fields=['likes_count'])

    logger.info("Liked %s %s by user %s (likes_count=%s)",
                content_type.model, object_id, user_id, target.likes_count)
    return target.likes_count


def unlike(model, object_id: int, user_id: int) -> int:
    """
    Remove user_id from the entity's like-set.

    Raises NotFound if the entity does not exist. Unliking something the
    user never liked returns the current count unchanged.
    """
    content_type = ContentType.objects.get_for_model(model)

    with transaction.atomic():
        target = store.lock(model, object_id)

        deleted_count, _ = Like.objects.filter(
            user_id=user_id,
            content_type=content_type,
            object_id=object_id
        ).delete()

        if not deleted_count:
            return target.likes_count

        model.objects.filter(pk=object_id).update(likes_count=F('likes_count') - deleted_count)
        target.refresh_from_db(fields=['likes_count'])

    logger.info("Unliked %s %s by user %s (likes_count=%s)",
                content_type.model, object_id, user_id, target.likes_count)
    return target.likes_count


def liked_by(user_id: int, post_id: int) -> dict:
    """
    Get all items (post + its comments) that a user has liked.

    Query: 1

    Returns: {
        'post_liked': bool,
        'liked_comment_ids': set[int]
    }
    """
    post_ct = ContentType.objects.get_for_model(Post)
    comment_ct = ContentType.objects.get_for_model(Comment)

    likes = Like.objects.filter(user_id=user_id).filter(
        Q(content_type=post_ct, object_id=post_id) |
        Q(content_type=comment_ct,
          object_id__in=Comment.objects.filter(post_id=post_id).values('id'))
    ).values_list('content_type_id', 'object_id')

    post_liked = False
    liked_comment_ids = set()

    for ct_id, obj_id in likes:
        if ct_id == post_ct.id:
            post_liked = True
        else:
            liked_comment_ids.add(obj_id)

    return {
        'post_liked': post_liked,
        'liked_comment_ids': liked_comment_ids
    }


def liked_post_ids(user_id: int, post_ids) -> set:
    """Which of post_ids the user has liked (for list views). Query: 1"""
    post_ct = ContentType.objects.get_for_model(Post)
    return set(
        Like.objects.filter(
            user_id=user_id,
            content_type=post_ct,
            object_id__in=list(post_ids)
        ).values_list('object_id', flat=True)
    )
