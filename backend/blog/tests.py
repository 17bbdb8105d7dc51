"""
Tests for Inkwell

Focus areas:
1. Like counters always equal the like-set size (idempotence, races)
2. comments_count always equals the live comment rows (replies, cascades)
3. Thread resolution (ordering, parent validation, no N+1)
4. HTTP contract: status codes, error kinds, author-only mutations
"""

import threading
from datetime import datetime, timedelta, timezone

from django.conf import settings
from django.contrib.auth.models import User
from django.contrib.contenttypes.models import ContentType
from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.urls import reverse
from jose import jwt
from rest_framework.test import APITestCase

from .authentication import create_access_token
from .exceptions import NotFound, ValidationError, InvalidParent, Forbidden
from .models import Post, Comment, Like, Tag
from .queries import (
    build_comment_tree,
    get_all_comments_for_post,
    get_post_with_comment_tree,
    replies_of,
    subtree_ids,
    validate_parent,
)
from .services import (
    add_comment,
    create_post,
    delete_comment,
    delete_post,
    like_comment,
    like_post,
    unlike_comment,
    unlike_post,
    update_comment,
    update_post,
)
from . import store


def make_post(author, title='Test post', body='Some body text', tags=()):
    return create_post(author.id, title, body, tags=tags)


def like_rows(obj):
    content_type = ContentType.objects.get_for_model(obj)
    return Like.objects.filter(content_type=content_type, object_id=obj.id).count()


class EntityStoreTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')

    def test_new_post_starts_with_zero_counters(self):
        post = make_post(self.author)
        post.refresh_from_db()

        self.assertEqual(post.likes_count, 0)
        self.assertEqual(post.comments_count, 0)
        self.assertEqual(post.author, self.author)

    def test_tags_are_normalized_and_deduplicated(self):
        post = make_post(self.author, tags=['Python', ' python ', 'web', '', 'WEB'])

        self.assertEqual(sorted(post.tags.values_list('name', flat=True)), ['python', 'web'])
        self.assertEqual(Tag.objects.count(), 2)

    def test_normalize_tags_keeps_first_seen_order(self):
        self.assertEqual(store.normalize_tags(['B', 'a', ' b ', 'A', 'c']), ['b', 'a', 'c'])
        self.assertEqual(store.normalize_tags(None), [])

    def test_tags_are_shared_between_posts(self):
        make_post(self.author, tags=['django'])
        make_post(self.author, tags=['Django'])

        self.assertEqual(Tag.objects.filter(name='django').count(), 1)
        self.assertEqual(Tag.objects.get(name='django').posts.count(), 2)

    def test_get_missing_post_raises_not_found(self):
        with self.assertRaises(NotFound):
            store.get_post(999999)

    def test_get_missing_comment_raises_not_found(self):
        with self.assertRaises(NotFound):
            store.get_comment(999999)

    def test_delete_reports_not_found_when_already_gone(self):
        post = make_post(self.author)

        store.delete_post(post.id)
        with self.assertRaises(NotFound):
            store.delete_post(post.id)


class LikeSetTestCase(TestCase):
    """
    likes_count == |like-set| after any sequence of like/unlike.
    """

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.alice = User.objects.create_user('alice', 'al@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'b@test.com', 'pass')
        self.post = make_post(self.author)

    def test_like_returns_new_count(self):
        self.assertEqual(like_post(self.post.id, self.alice.id), 1)
        self.assertEqual(like_post(self.post.id, self.bob.id), 2)

    def test_like_is_idempotent(self):
        first = like_post(self.post.id, self.alice.id)
        second = like_post(self.post.id, self.alice.id)

        self.assertEqual(first, second)
        self.assertEqual(like_rows(self.post), 1)

    def test_unlike_is_idempotent(self):
        like_post(self.post.id, self.alice.id)

        self.assertEqual(unlike_post(self.post.id, self.alice.id), 0)
        self.assertEqual(unlike_post(self.post.id, self.alice.id), 0)
        self.assertEqual(like_rows(self.post), 0)

    def test_unlike_without_like_is_noop(self):
        like_post(self.post.id, self.alice.id)

        self.assertEqual(unlike_post(self.post.id, self.bob.id), 1)

    def test_like_unlike_round_trip(self):
        like_post(self.post.id, self.bob.id)
        before = Post.objects.get(id=self.post.id).likes_count

        like_post(self.post.id, self.alice.id)
        unlike_post(self.post.id, self.alice.id)

        self.assertEqual(Post.objects.get(id=self.post.id).likes_count, before)

    def test_like_scenario(self):
        """A and B like, A likes again, B unlikes."""
        like_post(self.post.id, self.alice.id)
        self.assertEqual(like_post(self.post.id, self.bob.id), 2)
        self.assertEqual(like_post(self.post.id, self.alice.id), 2)
        self.assertEqual(unlike_post(self.post.id, self.bob.id), 1)

        self.post.refresh_from_db()
        self.assertEqual(self.post.likes_count, like_rows(self.post))

    def test_like_missing_post_raises_not_found(self):
        with self.assertRaises(NotFound):
            like_post(999999, self.alice.id)
        with self.assertRaises(NotFound):
            unlike_post(999999, self.alice.id)

    def test_comment_likes_are_independent_of_post_likes(self):
        comment = add_comment(self.post.id, self.bob.id, 'Nice')

        self.assertEqual(like_comment(comment.id, self.alice.id), 1)
        self.assertEqual(like_comment(comment.id, self.alice.id), 1)
        self.assertEqual(like_comment(comment.id, self.author.id), 2)
        self.assertEqual(unlike_comment(comment.id, self.alice.id), 1)

        comment.refresh_from_db()
        self.post.refresh_from_db()
        self.assertEqual(comment.likes_count, like_rows(comment))
        self.assertEqual(self.post.likes_count, 0)

    def test_like_missing_comment_raises_not_found(self):
        with self.assertRaises(NotFound):
            like_comment(999999, self.alice.id)

    def test_likes_are_removed_with_their_post(self):
        comment = add_comment(self.post.id, self.bob.id, 'Nice')
        like_post(self.post.id, self.alice.id)
        like_comment(comment.id, self.alice.id)

        delete_post(self.post.id, self.author.id)

        self.assertEqual(Like.objects.count(), 0)

    def test_likes_on_replies_are_removed_with_the_subtree(self):
        root = add_comment(self.post.id, self.bob.id, 'root')
        reply = add_comment(self.post.id, self.alice.id, 'reply', root.id)
        nested = add_comment(self.post.id, self.bob.id, 'nested', reply.id)
        keeper = add_comment(self.post.id, self.bob.id, 'another thread')
        for comment in (root, reply, nested, keeper):
            like_comment(comment.id, self.alice.id)
            like_comment(comment.id, self.author.id)
        like_post(self.post.id, self.alice.id)

        self.assertEqual(delete_comment(root.id, self.bob.id), 3)

        comment_type = ContentType.objects.get_for_model(Comment)
        self.assertFalse(Like.objects.filter(
            content_type=comment_type, object_id__in=[root.id, reply.id, nested.id]
        ).exists())
        self.assertEqual(like_rows(keeper), 2)
        self.assertEqual(like_rows(self.post), 1)


class LikeConcurrencyTestCase(TransactionTestCase):
    """
    Concurrent likes and thread edits from many threads.

    PostgreSQL serialises them with row locks; SQLite with its write lock,
    taken at BEGIN (see DATABASES in settings). Runs on both.
    """

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.post = make_post(self.author)
        # Warm the content type cache so workers only read it
        ContentType.objects.get_for_models(Post, Comment)

    def _run_concurrently(self, calls):
        barrier = threading.Barrier(len(calls))
        errors = []

        def worker(call):
            try:
                barrier.wait()
                call()
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(call,)) for call in calls]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return errors

    def test_concurrent_likes_from_distinct_users(self):
        users = [User.objects.create_user(f'racer{i}', f'r{i}@test.com', 'pass') for i in range(8)]

        errors = self._run_concurrently(
            [lambda user=user: like_post(self.post.id, user.id) for user in users]
        )

        self.assertEqual(errors, [])
        self.post.refresh_from_db()
        self.assertEqual(self.post.likes_count, 8)
        self.assertEqual(like_rows(self.post), 8)

    def test_concurrent_duplicate_likes_count_once(self):
        user = User.objects.create_user('racer', 'r@test.com', 'pass')

        errors = self._run_concurrently(
            [lambda: like_post(self.post.id, user.id) for _ in range(6)]
        )

        self.assertEqual(errors, [])
        self.post.refresh_from_db()
        self.assertEqual(self.post.likes_count, 1)

    def test_concurrent_comments_keep_count(self):
        users = [User.objects.create_user(f'writer{i}', f'w{i}@test.com', 'pass') for i in range(6)]

        errors = self._run_concurrently(
            [lambda user=user: add_comment(self.post.id, user.id, 'hello') for user in users]
        )

        self.assertEqual(errors, [])
        self.post.refresh_from_db()
        self.assertEqual(self.post.comments_count, 6)
        self.assertEqual(Comment.objects.filter(post=self.post).count(), 6)

    def test_reply_likes_racing_subtree_delete_leave_no_strays(self):
        root = add_comment(self.post.id, self.author.id, 'root')
        replies = [add_comment(self.post.id, self.author.id, f'reply {i}', root.id) for i in range(3)]
        users = [User.objects.create_user(f'fan{i}', f'f{i}@test.com', 'pass') for i in range(6)]

        def like_if_present(comment_id, user_id):
            try:
                like_comment(comment_id, user_id)
            except NotFound:
                pass

        calls = [lambda: delete_comment(root.id, self.author.id)]
        calls += [
            lambda user=user, reply=reply: like_if_present(reply.id, user.id)
            for user in users for reply in replies
        ]
        errors = self._run_concurrently(calls)

        self.assertEqual(errors, [])
        comment_type = ContentType.objects.get_for_model(Comment)
        live_ids = Comment.objects.values_list('id', flat=True)
        self.assertFalse(
            Like.objects.filter(content_type=comment_type).exclude(object_id__in=live_ids).exists()
        )
        self.post.refresh_from_db()
        self.assertEqual(self.post.comments_count, 0)


class ThreadResolverTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.post = make_post(self.user)
        self.other_post = make_post(self.user, title='Other')

    def test_replies_are_ordered_oldest_first(self):
        root = add_comment(self.post.id, self.user.id, 'root')
        first = add_comment(self.post.id, self.user.id, 'first', root.id)
        second = add_comment(self.post.id, self.user.id, 'second', root.id)
        # Older timestamp wins even though it was inserted last
        early = add_comment(self.post.id, self.user.id, 'early', root.id)
        Comment.objects.filter(id=early.id).update(created_at=root.created_at - timedelta(minutes=1))

        self.assertEqual(
            [c.id for c in replies_of(root.id)],
            [early.id, first.id, second.id]
        )

    def test_replies_only_direct_children(self):
        root = add_comment(self.post.id, self.user.id, 'root')
        child = add_comment(self.post.id, self.user.id, 'child', root.id)
        add_comment(self.post.id, self.user.id, 'grandchild', child.id)

        self.assertEqual([c.id for c in replies_of(root.id)], [child.id])

    def test_replies_of_missing_comment(self):
        with self.assertRaises(NotFound):
            replies_of(999999)

    def test_validate_parent_accepts_same_post(self):
        parent = add_comment(self.post.id, self.user.id, 'parent')

        self.assertEqual(validate_parent(self.post.id, parent.id), parent)

    def test_validate_parent_rejects_missing(self):
        with self.assertRaises(InvalidParent):
            validate_parent(self.post.id, 999999)

    def test_validate_parent_rejects_other_post(self):
        foreign = add_comment(self.other_post.id, self.user.id, 'elsewhere')

        with self.assertRaises(InvalidParent):
            validate_parent(self.post.id, foreign.id)

    def test_validate_parent_rejects_cycle(self):
        c1 = add_comment(self.post.id, self.user.id, 'one')
        c2 = add_comment(self.post.id, self.user.id, 'two', c1.id)
        # Corrupt the chain directly: c1 -> c2 -> c1
        Comment.objects.filter(id=c1.id).update(parent_id=c2.id)

        with self.assertRaises(InvalidParent):
            validate_parent(self.post.id, c2.id)

    def test_validate_parent_rejects_chain_leaving_post(self):
        c1 = add_comment(self.post.id, self.user.id, 'one')
        foreign = add_comment(self.other_post.id, self.user.id, 'elsewhere')
        Comment.objects.filter(id=c1.id).update(parent_id=foreign.id)

        with self.assertRaises(InvalidParent):
            validate_parent(self.post.id, c1.id)

    def test_tree_building_single_level(self):
        c1 = add_comment(self.post.id, self.user.id, 'Comment 1')
        c2 = add_comment(self.post.id, self.user.id, 'Comment 2')

        tree = build_comment_tree(get_all_comments_for_post(self.post.id))

        self.assertEqual(len(tree), 2)
        self.assertEqual(tree[0]['comment'].id, c1.id)
        self.assertEqual(tree[1]['comment'].id, c2.id)

    def test_tree_building_nested(self):
        c1 = add_comment(self.post.id, self.user.id, 'Comment 1')
        c2 = add_comment(self.post.id, self.user.id, 'Reply to 1', c1.id)
        c3 = add_comment(self.post.id, self.user.id, 'Reply to reply', c2.id)

        tree = build_comment_tree(get_all_comments_for_post(self.post.id))

        self.assertEqual(len(tree), 1)
        self.assertEqual(tree[0]['comment'].id, c1.id)
        self.assertEqual(tree[0]['replies'][0]['comment'].id, c2.id)
        self.assertEqual(tree[0]['replies'][0]['replies'][0]['comment'].id, c3.id)
        self.assertEqual(c3.depth, 2)

    def test_orphan_is_surfaced_as_root(self):
        c1 = add_comment(self.post.id, self.user.id, 'Comment 1')
        c2 = add_comment(self.post.id, self.user.id, 'Reply', c1.id)

        tree = build_comment_tree([Comment.objects.get(id=c2.id)])

        self.assertEqual([node['comment'].id for node in tree], [c2.id])

    def test_no_n_plus_one_queries(self):
        """Loading 50 comments in nested threads takes 2 queries."""
        parent = None
        for i in range(50):
            if i % 5 == 0:
                parent = add_comment(self.post.id, self.user.id, f'Comment {i}')
            else:
                parent = add_comment(self.post.id, self.user.id, f'Reply {i}', parent.id)

        with self.assertNumQueries(2):
            result = get_post_with_comment_tree(self.post.id)

        self.assertEqual(result['comment_count'], 50)
        self.assertEqual(len(result['comments']), 10)

    def test_subtree_ids(self):
        root = add_comment(self.post.id, self.user.id, 'root')
        a = add_comment(self.post.id, self.user.id, 'a', root.id)
        b = add_comment(self.post.id, self.user.id, 'b', root.id)
        a1 = add_comment(self.post.id, self.user.id, 'a1', a.id)
        sibling = add_comment(self.post.id, self.user.id, 'sibling')

        ids = subtree_ids(self.post.id, root.id)

        self.assertEqual(ids[0], root.id)
        self.assertEqual(set(ids), {root.id, a.id, b.id, a1.id})
        self.assertNotIn(sibling.id, ids)


class CounterSynchronizerTestCase(TestCase):
    """
    comments_count == Comment rows for the post, through every path.
    """

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.reader = User.objects.create_user('reader', 'r@test.com', 'pass')
        self.post = make_post(self.author)
        self.other_post = make_post(self.author, title='Other')

    def assertCountMatches(self, post):
        post.refresh_from_db()
        self.assertEqual(post.comments_count, Comment.objects.filter(post=post).count())

    def test_add_comment_increments_count(self):
        comment = add_comment(self.post.id, self.reader.id, '  Hello there  ')

        self.post.refresh_from_db()
        self.assertEqual(self.post.comments_count, 1)
        self.assertEqual(comment.content, 'Hello there')
        self.assertEqual(comment.likes_count, 0)
        self.assertEqual(comment.author_id, self.reader.id)

    def test_empty_comment_rejected_without_side_effects(self):
        for content in ['', '   ', None]:
            with self.assertRaises(ValidationError):
                add_comment(self.post.id, self.reader.id, content)

        self.assertCountMatches(self.post)
        self.assertEqual(Comment.objects.count(), 0)

    def test_overlong_comment_rejected(self):
        with self.assertRaises(ValidationError):
            add_comment(self.post.id, self.reader.id, 'x' * 501)

        comment = add_comment(self.post.id, self.reader.id, 'x' * 500)
        self.assertEqual(len(comment.content), 500)
        self.assertCountMatches(self.post)

    def test_comment_on_missing_post(self):
        with self.assertRaises(NotFound):
            add_comment(999999, self.reader.id, 'Hello')

    def test_cross_post_parent_creates_nothing(self):
        foreign = add_comment(self.other_post.id, self.reader.id, 'elsewhere')

        with self.assertRaises(InvalidParent):
            add_comment(self.post.id, self.reader.id, 'reply', foreign.id)

        self.post.refresh_from_db()
        self.assertEqual(self.post.comments_count, 0)
        self.assertEqual(Comment.objects.filter(post=self.post).count(), 0)
        self.assertCountMatches(self.other_post)

    def test_missing_parent_creates_nothing(self):
        with self.assertRaises(InvalidParent):
            add_comment(self.post.id, self.reader.id, 'reply', 999999)

        self.assertCountMatches(self.post)
        self.assertEqual(Comment.objects.count(), 0)

    def test_deleting_root_removes_replies(self):
        """C1 root, C2 reply to C1: deleting C1 drops the count by 2."""
        c1 = add_comment(self.post.id, self.reader.id, 'root')
        c2 = add_comment(self.post.id, self.reader.id, 'reply', c1.id)
        add_comment(self.post.id, self.author.id, 'unrelated')
        self.post.refresh_from_db()
        before = self.post.comments_count

        removed = delete_comment(c1.id, self.reader.id)

        self.assertEqual(removed, 2)
        self.post.refresh_from_db()
        self.assertEqual(self.post.comments_count, before - 2)
        self.assertFalse(Comment.objects.filter(id__in=[c1.id, c2.id]).exists())
        self.assertCountMatches(self.post)

    def test_deleting_deep_subtree(self):
        root = add_comment(self.post.id, self.reader.id, 'root')
        parent = root
        for i in range(5):
            parent = add_comment(self.post.id, self.author.id, f'level {i}', parent.id)
        middle = Comment.objects.get(post=self.post, depth=3)

        self.assertEqual(delete_comment(middle.id, self.author.id), 3)
        self.assertCountMatches(self.post)
        self.assertEqual(Comment.objects.filter(post=self.post).count(), 3)

    def test_deleting_a_reply_leaves_parent(self):
        c1 = add_comment(self.post.id, self.reader.id, 'root')
        c2 = add_comment(self.post.id, self.reader.id, 'reply', c1.id)

        self.assertEqual(delete_comment(c2.id, self.reader.id), 1)
        self.assertTrue(Comment.objects.filter(id=c1.id).exists())
        self.assertCountMatches(self.post)

    def test_delete_post_removes_all_comments(self):
        roots = [add_comment(self.post.id, self.reader.id, f'root {i}') for i in range(3)]
        add_comment(self.post.id, self.author.id, 'reply', roots[0].id)
        add_comment(self.other_post.id, self.reader.id, 'survivor')
        total_before = Comment.objects.count()

        removed = delete_post(self.post.id, self.author.id)

        self.assertEqual(removed, 4)
        self.assertEqual(Comment.objects.count(), total_before - 4)
        self.assertFalse(Comment.objects.filter(post_id=self.post.id).exists())
        self.assertFalse(Post.objects.filter(id=self.post.id).exists())
        self.assertCountMatches(self.other_post)

    def test_count_matches_after_mixed_sequence(self):
        a = add_comment(self.post.id, self.reader.id, 'a')
        b = add_comment(self.post.id, self.author.id, 'b', a.id)
        add_comment(self.post.id, self.reader.id, 'c', b.id)
        d = add_comment(self.post.id, self.reader.id, 'd')
        delete_comment(b.id, self.author.id)
        add_comment(self.post.id, self.author.id, 'e', d.id)
        delete_comment(d.id, self.reader.id)

        self.assertCountMatches(self.post)
        self.assertEqual(self.post.comments_count, 1)


class EngagementServiceTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.stranger = User.objects.create_user('stranger', 's@test.com', 'pass')
        self.post = make_post(self.author, tags=['python'])

    def test_only_author_deletes_comment(self):
        comment = add_comment(self.post.id, self.author.id, 'mine')

        with self.assertRaises(Forbidden):
            delete_comment(comment.id, self.stranger.id)

        self.assertTrue(Comment.objects.filter(id=comment.id).exists())
        self.post.refresh_from_db()
        self.assertEqual(self.post.comments_count, 1)

    def test_only_author_deletes_post(self):
        with self.assertRaises(Forbidden):
            delete_post(self.post.id, self.stranger.id)

        self.assertTrue(Post.objects.filter(id=self.post.id).exists())

    def test_delete_missing(self):
        with self.assertRaises(NotFound):
            delete_post(999999, self.author.id)
        with self.assertRaises(NotFound):
            delete_comment(999999, self.author.id)

    def test_update_comment(self):
        comment = add_comment(self.post.id, self.author.id, 'before')

        updated = update_comment(comment.id, self.author.id, '  after ')
        self.assertEqual(updated.content, 'after')

        with self.assertRaises(Forbidden):
            update_comment(comment.id, self.stranger.id, 'hijack')
        with self.assertRaises(ValidationError):
            update_comment(comment.id, self.author.id, '   ')

    def test_update_post(self):
        updated = update_post(self.post.id, self.author.id, title='New title', tags=['Web', 'web'])

        self.assertEqual(updated.title, 'New title')
        self.assertEqual(updated.body, 'Some body text')
        self.assertEqual(list(updated.tags.values_list('name', flat=True)), ['web'])

        with self.assertRaises(Forbidden):
            update_post(self.post.id, self.stranger.id, title='Mine now')
        with self.assertRaises(ValidationError):
            update_post(self.post.id, self.author.id, title='  ')

    def test_non_author_edit_is_forbidden_even_when_invalid(self):
        comment = add_comment(self.post.id, self.author.id, 'mine')

        with self.assertRaises(Forbidden):
            update_post(self.post.id, self.stranger.id, title='  ')
        with self.assertRaises(Forbidden):
            update_post(self.post.id, self.stranger.id, tags=['x' * 100])
        with self.assertRaises(Forbidden):
            update_comment(comment.id, self.stranger.id, '')

        self.post.refresh_from_db()
        self.assertEqual(self.post.title, 'Test post')

    def test_create_post_validation(self):
        with self.assertRaises(ValidationError):
            create_post(self.author.id, '', 'body')
        with self.assertRaises(ValidationError):
            create_post(self.author.id, 'title', '   ')
        with self.assertRaises(ValidationError):
            create_post(self.author.id, 't' * 201, 'body')


class EngagementAPITestCase(APITestCase):
    """HTTP contract of the engagement endpoints."""

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.reader = User.objects.create_user('reader', 'r@test.com', 'pass')
        self.post = make_post(self.author, tags=['python'])

    def login(self, user):
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {create_access_token(user)}')

    # -- auth -------------------------------------------------------------

    def test_like_requires_token(self):
        response = self.client.post(reverse('like-post', args=[self.post.id]))

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['error'], 'unauthenticated')

    def test_bad_token_rejected(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-jwt')

        response = self.client.post(reverse('like-post', args=[self.post.id]))
        self.assertEqual(response.status_code, 401)

    def test_expired_token_rejected(self):
        token = create_access_token(self.reader, expires_delta=timedelta(minutes=-5))
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.post(reverse('like-post', args=[self.post.id]))
        self.assertEqual(response.status_code, 401)

    def test_token_with_non_integer_id_rejected(self):
        expire = datetime.now(timezone.utc) + timedelta(minutes=5)
        for claim in ('abc', {'id': 1}):
            token = jwt.encode(
                {'id': claim, 'exp': expire},
                settings.JWT_SECRET,
                algorithm=settings.JWT_ALGORITHM,
            )
            self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

            response = self.client.post(reverse('like-post', args=[self.post.id]))
            self.assertEqual(response.status_code, 401)
            self.assertEqual(response.data['error'], 'unauthenticated')

        self.post.refresh_from_db()
        self.assertEqual(self.post.likes_count, 0)

    # -- likes ------------------------------------------------------------

    def test_like_and_unlike_post(self):
        self.login(self.reader)
        url = reverse('like-post', args=[self.post.id])

        self.assertEqual(self.client.post(url).data, {'likes_count': 1})
        self.assertEqual(self.client.post(url).data, {'likes_count': 1})
        response = self.client.delete(url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {'likes_count': 0})

    def test_like_missing_post(self):
        self.login(self.reader)

        response = self.client.post(reverse('like-post', args=[999999]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'not_found')

    def test_like_comment(self):
        comment = add_comment(self.post.id, self.author.id, 'hi')
        self.login(self.reader)
        url = reverse('like-comment', args=[comment.id])

        self.assertEqual(self.client.post(url).data['likes_count'], 1)
        self.assertEqual(self.client.delete(url).data['likes_count'], 0)
        self.assertEqual(self.client.delete(reverse('like-comment', args=[999999])).status_code, 404)

    # -- comments ---------------------------------------------------------

    def test_create_comment(self):
        self.login(self.reader)

        response = self.client.post(reverse('comment-create'), {
            'post_id': self.post.id,
            'content': 'First!',
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['content'], 'First!')
        self.assertEqual(response.data['likes_count'], 0)
        self.assertEqual(response.data['author']['id'], self.reader.id)
        self.assertIsNone(response.data['parent_id'])
        self.post.refresh_from_db()
        self.assertEqual(self.post.comments_count, 1)

    def test_create_reply(self):
        parent = add_comment(self.post.id, self.author.id, 'parent')
        self.login(self.reader)

        response = self.client.post(reverse('comment-create'), {
            'post_id': self.post.id,
            'content': 'reply',
            'parent_id': parent.id,
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['parent_id'], parent.id)
        self.assertEqual(response.data['depth'], 1)

    def test_create_comment_validation_error(self):
        self.login(self.reader)

        response = self.client.post(reverse('comment-create'), {
            'post_id': self.post.id,
            'content': '    ',
        })
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.data['error'], 'validation_error')

        response = self.client.post(reverse('comment-create'), {'content': 'no post'})
        self.assertEqual(response.status_code, 422)
        self.assertIn('post_id', response.data['details'])

        self.post.refresh_from_db()
        self.assertEqual(self.post.comments_count, 0)

    def test_create_comment_bad_post_or_parent(self):
        other = make_post(self.author, title='Other')
        foreign = add_comment(other.id, self.author.id, 'elsewhere')
        self.login(self.reader)

        response = self.client.post(reverse('comment-create'), {'post_id': 999999, 'content': 'x'})
        self.assertEqual(response.status_code, 404)

        response = self.client.post(reverse('comment-create'), {
            'post_id': self.post.id,
            'content': 'x',
            'parent_id': foreign.id,
        })
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'invalid_parent')
        self.assertEqual(Comment.objects.filter(post=self.post).count(), 0)

    def test_client_supplied_author_is_ignored(self):
        self.login(self.reader)

        response = self.client.post(reverse('comment-create'), {
            'post_id': self.post.id,
            'content': 'who am I',
            'author': self.author.id,
        })

        self.assertEqual(response.data['author']['id'], self.reader.id)

    def test_delete_comment_author_only(self):
        root = add_comment(self.post.id, self.author.id, 'root')
        add_comment(self.post.id, self.reader.id, 'reply', root.id)
        url = reverse('comment-detail', args=[root.id])

        self.login(self.reader)
        self.assertEqual(self.client.delete(url).status_code, 403)

        self.login(self.author)
        response = self.client.delete(url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {'deleted': 2, 'comments_count': 0})
        self.assertEqual(self.client.delete(url).status_code, 404)

    def test_edit_comment(self):
        comment = add_comment(self.post.id, self.reader.id, 'typo')
        url = reverse('comment-detail', args=[comment.id])

        self.login(self.author)
        self.assertEqual(self.client.put(url, {'content': 'hijack'}).status_code, 403)

        self.login(self.reader)
        response = self.client.patch(url, {'content': 'fixed'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['content'], 'fixed')

    def test_comments_for_post_are_paged_threads(self):
        roots = [add_comment(self.post.id, self.reader.id, f'root {i}') for i in range(3)]
        add_comment(self.post.id, self.author.id, 'reply', roots[0].id)

        response = self.client.get(reverse('post-comments', args=[self.post.id]), {'limit': 2})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(len(response.data['results']), 2)
        first = response.data['results'][0]
        self.assertEqual(first['comment']['id'], roots[0].id)
        self.assertEqual(first['replies'][0]['comment']['content'], 'reply')

    def test_comments_mark_caller_likes(self):
        comment = add_comment(self.post.id, self.author.id, 'likeable')
        like_comment(comment.id, self.reader.id)
        self.login(self.reader)

        response = self.client.get(reverse('post-comments', args=[self.post.id]))
        self.assertTrue(response.data['results'][0]['comment']['liked'])

    def test_comments_for_missing_post(self):
        response = self.client.get(reverse('post-comments', args=[999999]))
        self.assertEqual(response.status_code, 404)

    def test_replies_endpoint(self):
        root = add_comment(self.post.id, self.author.id, 'root')
        reply = add_comment(self.post.id, self.reader.id, 'reply', root.id)

        response = self.client.get(reverse('comment-replies', args=[root.id]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual([c['id'] for c in response.data], [reply.id])

    # -- posts ------------------------------------------------------------

    def test_create_post(self):
        self.login(self.author)

        response = self.client.post(reverse('post-list'), {
            'title': 'Hello',
            'body': 'World',
            'tags': ['Python', 'python', 'django'],
            'cover_image': 'https://example.com/cover.png',
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(sorted(response.data['tags']), ['django', 'python'])
        self.assertEqual(response.data['likes_count'], 0)
        self.assertEqual(response.data['comments_count'], 0)

    def test_create_post_requires_token(self):
        response = self.client.post(reverse('post-list'), {'title': 'Hello', 'body': 'World'})
        self.assertEqual(response.status_code, 401)

    def test_create_post_validation(self):
        self.login(self.author)

        response = self.client.post(reverse('post-list'), {'title': '  ', 'body': 'World'})
        self.assertEqual(response.status_code, 422)

    def test_list_posts_filters_by_tag(self):
        make_post(self.reader, title='Untagged')
        like_post(self.post.id, self.reader.id)
        self.login(self.reader)

        response = self.client.get(reverse('post-list'), {'tag': 'Python'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], self.post.id)
        self.assertTrue(response.data['results'][0]['liked'])

    def test_user_posts(self):
        make_post(self.reader, title='By reader')

        response = self.client.get(reverse('user-posts', args=[self.author.id]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual([p['id'] for p in response.data['results']], [self.post.id])

        self.assertEqual(self.client.get(reverse('user-posts', args=[999999])).status_code, 404)

    def test_post_detail(self):
        like_post(self.post.id, self.reader.id)
        self.login(self.reader)

        response = self.client.get(reverse('post-detail', args=[self.post.id]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['likes_count'], 1)
        self.assertTrue(response.data['liked'])
        self.assertEqual(self.client.get(reverse('post-detail', args=[999999])).status_code, 404)

    def test_edit_post_author_only(self):
        url = reverse('post-detail', args=[self.post.id])

        self.login(self.reader)
        self.assertEqual(self.client.patch(url, {'title': 'Mine'}).status_code, 403)

        self.login(self.author)
        response = self.client.patch(url, {'title': 'Renamed'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['title'], 'Renamed')
        self.assertEqual(response.data['tags'], ['python'])

    def test_invalid_edit_by_non_author_is_403(self):
        comment = add_comment(self.post.id, self.author.id, 'mine')
        self.login(self.reader)

        response = self.client.patch(reverse('post-detail', args=[self.post.id]), {'title': ''})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error'], 'forbidden')

        response = self.client.put(reverse('post-detail', args=[self.post.id]), {})
        self.assertEqual(response.status_code, 403)

        response = self.client.patch(reverse('comment-detail', args=[comment.id]), {'content': ''})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error'], 'forbidden')

    def test_delete_post_author_only(self):
        add_comment(self.post.id, self.reader.id, 'one')
        add_comment(self.post.id, self.reader.id, 'two')
        url = reverse('post-detail', args=[self.post.id])

        self.login(self.reader)
        self.assertEqual(self.client.delete(url).status_code, 403)

        self.login(self.author)
        response = self.client.delete(url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {'deleted_comments': 2})
        self.assertEqual(Comment.objects.count(), 0)
        self.assertEqual(self.client.delete(url).status_code, 404)
