"""
Blog App URL Configuration
"""
from django.urls import path
from .views import (
    PostListView,
    UserPostsView,
    PostDetailView,
    LikePostView,
    CommentCreateView,
    CommentDetailView,
    LikeCommentView,
    PostCommentsView,
    CommentRepliesView,
)

urlpatterns = [
    # Posts
    path('posts/', PostListView.as_view(), name='post-list'),
    path('posts/user/<int:user_id>/', UserPostsView.as_view(), name='user-posts'),
    path('posts/<int:post_id>/', PostDetailView.as_view(), name='post-detail'),
    path('posts/<int:post_id>/like/', LikePostView.as_view(), name='like-post'),

    # Comments
    path('comments/', CommentCreateView.as_view(), name='comment-create'),
    path('comments/post/<int:post_id>/', PostCommentsView.as_view(), name='post-comments'),
    path('comments/<int:comment_id>/', CommentDetailView.as_view(), name='comment-detail'),
    path('comments/<int:comment_id>/like/', LikeCommentView.as_view(), name='like-comment'),
    path('comments/<int:comment_id>/replies/', CommentRepliesView.as_view(), name='comment-replies'),
]
