"""
Management command to seed the database with sample data.

Usage: python manage.py seed_data

Everything goes through services.py so the seeded counters are consistent
with the seeded rows.
"""

import random
from django.core.management.base import BaseCommand
from django.contrib.auth.models import User

from blog import services
from blog.authentication import create_access_token
from blog.models import Post, Comment, Like, Tag


class Command(BaseCommand):
    help = 'Seed the database with sample data for testing'

    def add_arguments(self, parser):
        parser.add_argument(
            '--users',
            type=int,
            default=10,
            help='Number of users to create'
        )
        parser.add_argument(
            '--posts',
            type=int,
            default=20,
            help='Number of posts to create'
        )
        parser.add_argument(
            '--comments',
            type=int,
            default=100,
            help='Number of comments to create'
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding'
        )
        parser.add_argument(
            '--tokens',
            action='store_true',
            help='Print a bearer token for every seeded user'
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            Like.objects.all().delete()
            Comment.objects.all().delete()
            Post.objects.all().delete()
            Tag.objects.all().delete()
            User.objects.filter(is_superuser=False).delete()

        self.stdout.write('Creating users...')
        users = self._create_users(options['users'])

        self.stdout.write('Creating posts...')
        posts = self._create_posts(users, options['posts'])

        self.stdout.write('Creating comments...')
        comments = self._create_comments(users, posts, options['comments'])

        self.stdout.write('Creating likes...')
        like_count = self._create_likes(users, posts, comments)

        self.stdout.write(self.style.SUCCESS(
            f'Successfully created:\n'
            f'  - {len(users)} users\n'
            f'  - {len(posts)} posts\n'
            f'  - {len(comments)} comments\n'
            f'  - {like_count} likes'
        ))

        if options['tokens']:
            for user in users:
                self.stdout.write(f'{user.username}: {create_access_token(user)}')

    def _create_users(self, count):
        users = []
        for i in range(count):
            username = f'user{i+1}'
            user, created = User.objects.get_or_create(
                username=username,
                defaults={'email': f'{username}@example.com'}
            )
            if created:
                user.set_password('password123')
                user.save(update_fields=['password'])
            users.append(user)
        return users

    def _create_posts(self, users, count):
        posts = []
        titles = [
            "Getting started with",
            "What I learned building",
            "A gentle introduction to",
            "Notes on",
            "Why I switched to",
            "Five things about",
        ]
        subjects = ["Django", "PostgreSQL", "Python typing", "React", "Docker", "testing"]
        tags = ['python', 'web', 'databases', 'frontend', 'devops', 'career', 'tutorial']

        bodies = [
            "Lorem ipsum dolor sit amet, consectetur adipiscing elit. Sed do eiusmod tempor incididunt ut labore.",
            "I've been working on this for a while and wanted to share my notes.",
            "A short write-up of the approach, the trade-offs and what I'd do differently.",
        ]

        for i in range(count):
            post = services.create_post(
                random.choice(users).id,
                f"{random.choice(titles)} {random.choice(subjects)} #{i+1}",
                random.choice(bodies),
                tags=random.sample(tags, k=random.randint(0, 3)),
            )
            posts.append(post)
        return posts

    def _create_comments(self, users, posts, count):
        comments = []
        comment_texts = [
            "Great write-up, thanks!",
            "Hmm, I'm not sure about this...",
            "Can you elaborate on the second part?",
            "This is exactly what I was looking for.",
            "I have a different perspective on this.",
            "Well said!",
        ]

        for i in range(count):
            post = random.choice(posts)

            # 30% chance of being a reply to an existing comment on the post
            parent_id = None
            existing_comments = [c for c in comments if c.post_id == post.id]
            if existing_comments and random.random() < 0.3:
                parent_id = random.choice(existing_comments).id

            comment = services.add_comment(
                post.id,
                random.choice(users).id,
                random.choice(comment_texts),
                parent_id
            )
            comments.append(comment)

        return comments

    def _create_likes(self, users, posts, comments):
        total = 0
        for post in posts:
            for liker in random.sample(users, k=len(users) // 2):
                services.like_post(post.id, liker.id)
                total += 1

        for comment in comments:
            if random.random() < 0.3:
                for liker in random.sample(users, k=min(3, len(users))):
                    services.like_comment(comment.id, liker.id)
                    total += 1
        return total
