"""
DRF Views
=========

API endpoints for posts, comments and likes.

AUTHENTICATION NOTE:
--------------------
Identity comes only from BearerTokenAuthentication (request.user). Every
mutation passes request.user.id to services.py; ids in request bodies are
never trusted as the acting user.

Views do not catch domain errors: NotFound / Forbidden / InvalidParent /
ValidationError propagate to exceptions.custom_exception_handler.
"""

from rest_framework import generics, status, permissions
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from django.contrib.auth.models import User
from django.shortcuts import get_object_or_404

from . import likes, services, store
from .serializers import (
    PostSerializer,
    PostWriteSerializer,
    CommentSerializer,
    CommentCreateSerializer,
    CommentUpdateSerializer,
    CommentTreeSerializer,
)
from .queries import (
    get_all_comments_for_post,
    build_comment_tree,
    get_feed_posts,
    replies_of,
)


class PostPagination(PageNumberPagination):
    """
    Page-number pagination (?page=2&limit=10), as the web client expects.
    """
    page_size = 10
    page_size_query_param = 'limit'
    max_page_size = 100


class ThreadPagination(PostPagination):
    """Pages over root comments; each root carries its full reply tree."""
    page_size = 20


def _user_id(request):
    return request.user.id if request.user.is_authenticated else None


class PostListView(generics.ListAPIView):
    """
    GET  /api/posts/?page=1&limit=10&tag=python
    POST /api/posts/

    Newest first. Creating requires authentication; the author is the caller.
    """
    serializer_class = PostSerializer
    pagination_class = PostPagination
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get_queryset(self):
        return get_feed_posts(tag=self.request.query_params.get('tag'))

    def list(self, request, *args, **kwargs):
        page = self.paginate_queryset(self.get_queryset())
        liked_ids = set()
        if request.user.is_authenticated:
            liked_ids = likes.liked_post_ids(request.user.id, [post.id for post in page])
        serializer = PostSerializer(
            page, many=True, context={'request': request, 'liked_post_ids': liked_ids}
        )
        return self.get_paginated_response(serializer.data)

    def post(self, request):
        serializer = PostWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        post = services.create_post(request.user.id, **serializer.validated_data)
        return Response(
            PostSerializer(store.get_post(post.id), context={'post_liked': False}).data,
            status=status.HTTP_201_CREATED
        )


class UserPostsView(PostListView):
    """
    GET /api/posts/user/<user_id>/

    Profile listing: the user's posts, newest first.
    """
    permission_classes = [permissions.AllowAny]
    http_method_names = ['get', 'head', 'options']

    def get_queryset(self):
        user = get_object_or_404(User, id=self.kwargs['user_id'])
        return get_feed_posts(author_id=user.id)


class PostDetailView(APIView):
    """
    GET    /api/posts/<id>/   post with `liked` for the caller
    PUT    /api/posts/<id>/   edit (author only)
    PATCH  /api/posts/<id>/   partial edit (author only)
    DELETE /api/posts/<id>/   delete with all comments (author only)
    """
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get(self, request, post_id):
        post = store.get_post(post_id)
        post_liked = False
        if request.user.is_authenticated:
            post_liked = likes.liked_by(request.user.id, post_id)['post_liked']
        return Response(PostSerializer(post, context={'post_liked': post_liked}).data)

    def put(self, request, post_id, partial=False):
        services.authorize_post(post_id, request.user.id)
        serializer = PostWriteSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        post = services.update_post(post_id, request.user.id, **serializer.validated_data)
        post_liked = likes.liked_by(request.user.id, post_id)['post_liked']
        return Response(PostSerializer(post, context={'post_liked': post_liked}).data)

    def patch(self, request, post_id):
        return self.put(request, post_id, partial=True)

    def delete(self, request, post_id):
        removed = services.delete_post(post_id, request.user.id)
        return Response({'deleted_comments': removed})


class LikePostView(APIView):
    """
    POST   /api/posts/<post_id>/like/   like
    DELETE /api/posts/<post_id>/like/   unlike

    Both idempotent; both return {"likes_count": n}.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, post_id):
        return Response({'likes_count': services.like_post(post_id, request.user.id)})

    def delete(self, request, post_id):
        return Response({'likes_count': services.unlike_post(post_id, request.user.id)})


class CommentCreateView(APIView):
    """
    POST /api/comments/

    Body:
    {
        "post_id": 1,
        "content": "Comment text",
        "parent_id": 123  // optional, for replies
    }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        comment = services.add_comment(
            data['post_id'],
            request.user.id,
            data['content'],
            data.get('parent_id')
        )
        return Response(
            CommentSerializer(store.get_comment(comment.id)).data,
            status=status.HTTP_201_CREATED
        )


class CommentDetailView(APIView):
    """
    PUT/PATCH /api/comments/<id>/   edit content (author only)
    DELETE    /api/comments/<id>/   delete with all replies (author only)
    """
    permission_classes = [permissions.IsAuthenticated]

    def put(self, request, comment_id):
        services.authorize_comment(comment_id, request.user.id)
        serializer = CommentUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        comment = services.update_comment(
            comment_id, request.user.id, serializer.validated_data['content']
        )
        liked = likes.liked_by(request.user.id, comment.post_id)['liked_comment_ids']
        return Response(CommentSerializer(comment, context={'liked_comment_ids': liked}).data)

    patch = put

    def delete(self, request, comment_id):
        comment = store.get_comment(comment_id)
        removed = services.delete_comment(comment_id, request.user.id)
        post = store.get_post(comment.post_id)
        return Response({'deleted': removed, 'comments_count': post.comments_count})


class LikeCommentView(APIView):
    """
    POST   /api/comments/<comment_id>/like/   like
    DELETE /api/comments/<comment_id>/like/   unlike
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, comment_id):
        return Response({'likes_count': services.like_comment(comment_id, request.user.id)})

    def delete(self, request, comment_id):
        return Response({'likes_count': services.unlike_comment(comment_id, request.user.id)})


class PostCommentsView(APIView):
    """
    GET /api/comments/post/<post_id>/?page=1&limit=20

    Paged root comments, each with its nested replies.

    QUERY COUNT: 2-3 regardless of nesting depth
    1. Post (existence)
    2. All comments with authors
    3. (Optional) caller's likes
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, post_id):
        store.get_post(post_id)

        tree = build_comment_tree(get_all_comments_for_post(post_id))

        context = {'request': request}
        user_id = _user_id(request)
        if user_id is not None:
            context['liked_comment_ids'] = likes.liked_by(user_id, post_id)['liked_comment_ids']

        paginator = ThreadPagination()
        page = paginator.paginate_queryset(tree, request, view=self)
        return paginator.get_paginated_response(
            CommentTreeSerializer(page, many=True, context=context).data
        )


class CommentRepliesView(APIView):
    """
    GET /api/comments/<comment_id>/replies/

    Direct replies, oldest first.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, comment_id):
        replies = replies_of(comment_id)
        return Response(CommentSerializer(replies, many=True).data)
