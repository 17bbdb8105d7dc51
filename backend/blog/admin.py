"""
Django Admin Configuration for Blog Models

Counters are read-only here: they are only ever moved by likes.py and
counters.py.
"""
from django.contrib import admin
from .models import Post, Comment, Like, Tag


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ['title', 'author', 'likes_count', 'comments_count', 'created_at']
    list_filter = ['created_at', 'tags']
    search_fields = ['title', 'body', 'author__username']
    readonly_fields = ['likes_count', 'comments_count', 'created_at', 'updated_at']
    filter_horizontal = ['tags']


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'post', 'author', 'parent', 'depth', 'likes_count', 'created_at']
    list_filter = ['created_at', 'depth']
    search_fields = ['content', 'author__username']
    readonly_fields = ['post', 'author', 'parent', 'likes_count', 'depth', 'created_at', 'updated_at']

    def has_add_permission(self, request):
        # Comments must go through services.add_comment to keep comments_count right
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Like)
class LikeAdmin(admin.ModelAdmin):
    list_display = ['user', 'content_type', 'object_id', 'created_at']
    list_filter = ['content_type', 'created_at']
    search_fields = ['user__username']
    readonly_fields = ['user', 'content_type', 'object_id', 'created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    list_display = ['name']
    search_fields = ['name']
