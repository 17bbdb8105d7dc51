"""
Thread Resolver
===============

Comment threads are stored as flat parent pointers. This module turns them
back into trees and guards tree well-formedness.

THE N+1 PROBLEM:
----------------
Naive approach for 50 nested comments:
    for comment in post.comments.filter(parent=None):   # 1 query
        for reply in comment.replies.all():             # 1 query per node
            ...

OUR APPROACH:
-------------
1. Fetch ALL comments for a post in ONE query (select_related author)
2. Group by parent_id in Python, O(n) single pass

Parent validation and subtree collection use the same trick on the
(id, parent_id) pairs only, so both stay linear in the comment count.
"""

from typing import Optional

from .exceptions import InvalidParent
from .models import Post, Comment
from . import store


def get_all_comments_for_post(post_id: int) -> list[Comment]:
    """
    Fetch ALL comments for a post in a SINGLE query, oldest first.

    Ordering by created_at means parents almost always precede replies;
    build_comment_tree does not depend on it.
    """
    return list(
        Comment.objects
        .filter(post_id=post_id)
        .select_related('author')
        .order_by('created_at', 'id')
    )


def replies_of(comment_id: int) -> list[Comment]:
    """
    Direct replies of a comment, ordered by creation time ascending.

    A fresh indexed query (parent_id, created_at) on every call.
    Raises NotFound if the comment itself does not exist.
    """
    comment = store.get_comment(comment_id)
    return list(
        Comment.objects
        .filter(parent_id=comment.id)
        .select_related('author')
        .order_by('created_at', 'id')
    )


def _parent_map(post_id: int) -> dict[int, Optional[int]]:
    return dict(
        Comment.objects
        .filter(post_id=post_id)
        .values_list('id', 'parent_id')
    )


def validate_parent(post_id: int, parent_id: int) -> Comment:
    """
    Check that parent_id may be used as the parent of a new comment on post_id.

    Fails with InvalidParent when the candidate:
    - does not exist
    - belongs to a different post
    - has an ancestor chain that loops or leaves the post

    Returns the parent comment on success.
    """
    try:
        parent = Comment.objects.get(id=parent_id)
    except Comment.DoesNotExist:
        raise InvalidParent(f"Parent comment {parent_id} does not exist")

    if parent.post_id != post_id:
        raise InvalidParent(
            f"Parent comment {parent_id} belongs to post {parent.post_id}, not {post_id}"
        )

    # Walk the ancestor chain in memory; one query for the whole post
    parents = _parent_map(post_id)
    seen = set()
    current = parent.id
    while current is not None:
        if current in seen:
            raise InvalidParent(f"Comment {parent_id} has a cyclic ancestor chain")
        if current not in parents:
            raise InvalidParent(f"Comment {parent_id} has an ancestor outside post {post_id}")
        seen.add(current)
        current = parents[current]

    return parent


def subtree_ids(post_id: int, root_id: int) -> list[int]:
    """
    Ids of root_id and all its descendants, parents before children.

    One query for the post's (id, parent_id) pairs, then a breadth-first walk
    over a children index.
    """
    children = {}
    for comment_id, parent_id in _parent_map(post_id).items():
        children.setdefault(parent_id, []).append(comment_id)

    ids = [root_id]
    seen = {root_id}
    i = 0
    while i < len(ids):
        for child_id in children.get(ids[i], ()):
            if child_id not in seen:
                seen.add(child_id)
                ids.append(child_id)
        i += 1
    return ids


def build_comment_tree(flat_comments: list[Comment]) -> list[dict]:
    """
    Build nested tree structure from flat list.

    Algorithm: O(n) with a lookup dict

    1. First pass: Create lookup dict {id -> node}
    2. Second pass: Attach children to parents

    Example Input (flat):
        [Comment(id=1, parent=None), Comment(id=2, parent=1), Comment(id=3, parent=1)]

    Example Output (nested):
        [
            {
                'comment': Comment(id=1),
                'replies': [
                    {'comment': Comment(id=2), 'replies': []},
                    {'comment': Comment(id=3), 'replies': []}
                ]
            }
        ]
    """
    nodes = {}
    for comment in flat_comments:
        nodes[comment.id] = {
            'comment': comment,
            'replies': []
        }

    root_nodes = []
    for comment in flat_comments:
        node = nodes[comment.id]
        if comment.parent_id is None:
            root_nodes.append(node)
        else:
            parent_node = nodes.get(comment.parent_id)
            if parent_node:
                parent_node['replies'].append(node)
            else:
                # Orphan (parent not in this batch) - surface as root
                root_nodes.append(node)

    return root_nodes


def get_post_with_comment_tree(post_id: int) -> dict:
    """
    Post with its fully nested comment tree.

    TOTAL QUERIES: 2
    - 1 for post + author
    - 1 for all comments + authors

    Raises NotFound if the post does not exist.
    """
    post = store.get_post(post_id)
    flat_comments = get_all_comments_for_post(post_id)

    return {
        'post': post,
        'comments': build_comment_tree(flat_comments),
        'comment_count': len(flat_comments)
    }


def get_feed_posts(tag: Optional[str] = None, author_id: Optional[int] = None):
    """
    Posts for list views, newest first, author joined and tags prefetched.

    Returns a queryset so the paginator can slice it.
    """
    queryset = (
        Post.objects
        .select_related('author')
        .prefetch_related('tags')
        .order_by('-created_at', '-id')
    )
    if tag:
        queryset = queryset.filter(tags__name=tag.strip().lower())
    if author_id is not None:
        queryset = queryset.filter(author_id=author_id)
    return queryset
