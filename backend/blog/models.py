"""
Data Models for Inkwell
=======================

Design Philosophy:
------------------
1. Comments use Adjacency List pattern (parent_id FK)
   - Thread assembly happens in Python from one flat query (see queries.py)
   - Replies of a single comment come from an indexed query on parent_id

2. Likes use a polymorphic approach via ContentType
   - One Like row per (user, entity); the rows ARE the like-set
   - Unique constraint makes "insert if absent" a single atomic statement
   - GenericRelation on Post/Comment so likes vanish with their entity

3. Denormalized counters on Post and Comment
   - likes_count / comments_count are caches of the underlying rows
   - They are ONLY written by likes.py and counters.py, always with F()
     inside the same transaction as the row change they mirror

Indexes Strategy:
-----------------
- comment.post_id + comment.created_at: fetching all comments for a post
- comment.parent_id + comment.created_at: replies of one comment
- like.content_type + like.object_id + like.user: uniqueness + lookup
"""

from django.db import models
from django.contrib.auth.models import User
from django.contrib.contenttypes.fields import GenericForeignKey, GenericRelation
from django.contrib.contenttypes.models import ContentType
from django.utils import timezone


COMMENT_MAX_LENGTH = 500
POST_TITLE_MAX_LENGTH = 200
TAG_MAX_LENGTH = 50


class Like(models.Model):
    """
    Polymorphic Like using Django's ContentType framework.

    CONCURRENCY STRATEGY:
    - Unique constraint (user, content_type, object_id) enforced at DB level
    - Insert inside a savepoint; IntegrityError means "already in the set"
    - The target row is locked first, so toggles on one entity never interleave
    """
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='likes'
    )

    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE
    )
    object_id = models.PositiveIntegerField()
    content_object = GenericForeignKey('content_type', 'object_id')

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'content_type', 'object_id'],
                name='unique_like_per_user_per_object'
            )
        ]
        indexes = [
            # For counting likes on an object
            models.Index(fields=['content_type', 'object_id'], name='blog_like_target_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} liked {self.content_type.model} {self.object_id}"


class Tag(models.Model):
    """Free-form post tag. Names are stored trimmed and lower-cased."""
    name = models.CharField(max_length=TAG_MAX_LENGTH, unique=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class Post(models.Model):
    """
    A blog post. Owns its comments: deleting it removes the whole thread.

    The author is fixed at creation; services.update_post never touches it.
    """
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='posts',
        db_index=True  # Profile pages list a user's posts
    )
    title = models.CharField(max_length=POST_TITLE_MAX_LENGTH)
    body = models.TextField()
    tags = models.ManyToManyField(Tag, related_name='posts', blank=True)
    cover_image = models.URLField(max_length=500, blank=True, default='')
    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True  # Feed ordering
    )
    updated_at = models.DateTimeField(auto_now=True)

    likes = GenericRelation(Like, related_query_name='post')

    # Cached counters, see likes.py and counters.py
    likes_count = models.PositiveIntegerField(default=0)
    comments_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['-created_at', 'author'], name='blog_post_feed_idx'),
        ]

    def __str__(self):
        return f"{self.title[:50]} by {self.author.username}"


class Comment(models.Model):
    """
    Threaded comment using Adjacency List pattern.

    A set parent always belongs to the same post (checked by
    queries.validate_parent before insert). Deleting a parent deletes its
    replies, mirroring the post-level cascade.
    """
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='comments',
        db_index=True
    )
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='replies',
        db_index=True
    )
    content = models.CharField(max_length=COMMENT_MAX_LENGTH)
    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True
    )
    updated_at = models.DateTimeField(auto_now=True)

    likes = GenericRelation(Like, related_query_name='comment')

    likes_count = models.PositiveIntegerField(default=0)

    # Depth stored for rendering; no upper bound
    depth = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['created_at', 'id']  # Oldest first within a thread
        indexes = [
            models.Index(fields=['post', 'created_at'], name='blog_comment_post_idx'),
            models.Index(fields=['parent', 'created_at'], name='blog_comment_parent_idx'),
        ]

    def __str__(self):
        return f"Comment by {self.author.username} on {self.post_id}"
