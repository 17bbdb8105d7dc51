"""
DRF Serializers
===============

Serializers handle:
1. Shape validation of incoming payloads (types, required fields)
2. Transformation of model instances to JSON
3. Nested comment tree serialization

Business rules (content length, parent validity, ownership) live in
services.py; input serializers only produce the arguments for it.
"""

from rest_framework import serializers
from django.contrib.auth.models import User

from .models import Post, Comment, POST_TITLE_MAX_LENGTH


class UserSerializer(serializers.ModelSerializer):
    """Minimal user representation for embedding in other objects."""

    class Meta:
        model = User
        fields = ['id', 'username']
        read_only_fields = fields


class PostSerializer(serializers.ModelSerializer):
    """
    Post for list and detail views.

    `liked` comes from context: either a set of liked post ids
    ('liked_post_ids') for lists, or 'post_liked' for a single post.
    """
    author = UserSerializer(read_only=True)
    tags = serializers.SlugRelatedField(many=True, read_only=True, slug_field='name')
    liked = serializers.SerializerMethodField()

    class Meta:
        model = Post
        fields = [
            'id',
            'title',
            'body',
            'tags',
            'cover_image',
            'author',
            'likes_count',
            'comments_count',
            'liked',
            'created_at',
            'updated_at'
        ]
        read_only_fields = fields

    def get_liked(self, obj):
        if 'post_liked' in self.context:
            return self.context['post_liked']
        return obj.id in self.context.get('liked_post_ids', ())


class PostWriteSerializer(serializers.Serializer):
    """
    Input for creating/editing posts.

    Author is never read from input; views pass request.user.id.
    Blank titles/bodies are let through so services.py reports them with
    the same messages as any other caller gets.
    """
    title = serializers.CharField(max_length=POST_TITLE_MAX_LENGTH, allow_blank=True, trim_whitespace=False)
    body = serializers.CharField(allow_blank=True, trim_whitespace=False)
    tags = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False, default=list)
    cover_image = serializers.URLField(max_length=500, required=False, allow_blank=True, default='')


class CommentSerializer(serializers.ModelSerializer):
    """
    Serializer for individual comments.

    NOTE: This does NOT include nested replies!
    Tree structure is handled by CommentTreeSerializer.
    """
    author = UserSerializer(read_only=True)
    post_id = serializers.IntegerField(read_only=True)
    parent_id = serializers.IntegerField(read_only=True)
    liked = serializers.SerializerMethodField()

    class Meta:
        model = Comment
        fields = [
            'id',
            'post_id',
            'parent_id',
            'content',
            'author',
            'depth',
            'likes_count',
            'liked',
            'created_at',
            'updated_at'
        ]
        read_only_fields = fields

    def get_liked(self, obj):
        return obj.id in self.context.get('liked_comment_ids', ())


class CommentCreateSerializer(serializers.Serializer):
    """
    Input for POST /comments/.

    Body:
    {
        "post_id": 1,
        "content": "Comment text",
        "parent_id": 123  // optional, for replies
    }
    """
    post_id = serializers.IntegerField(min_value=1)
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)
    parent_id = serializers.IntegerField(min_value=1, required=False, allow_null=True, default=None)


class CommentUpdateSerializer(serializers.Serializer):
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)


class CommentTreeSerializer(serializers.Serializer):
    """
    Serializer for nested comment tree.

    Serializes the pre-built tree from queries.build_comment_tree():
    {
        "comment": { ...comment data... },
        "replies": [ ...nested CommentTreeSerializer... ]
    }
    """
    comment = serializers.SerializerMethodField()
    replies = serializers.SerializerMethodField()

    def get_comment(self, obj):
        return CommentSerializer(obj['comment'], context=self.context).data

    def get_replies(self, obj):
        """Recursively serialize replies."""
        return CommentTreeSerializer(obj['replies'], many=True, context=self.context).data

