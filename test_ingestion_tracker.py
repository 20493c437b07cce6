"""
Unit tests for the Ingestion Tracker.
"""

import unittest
from datetime import datetime, timezone, timedelta

from ingestion_tracker import (
    DEFAULT_MAX_TRACKED_POSTS,
    IngestionTracker,
    Post,
    TrackedPost,
)


def make_posts(*ids: str):
    base = datetime(2026, 1, 17, 10, 0, 0, tzinfo=timezone.utc)
    return [
        Post(id=post_id, text=f"post {post_id}", created_at=base + timedelta(minutes=i))
        for i, post_id in enumerate(ids)
    ]


class TestPost(unittest.TestCase):

    def test_to_dict(self):
        post = make_posts("1")[0]
        data = post.to_dict()
        self.assertEqual(data["id"], "1")
        self.assertEqual(data["created_at"], "2026-01-17T10:00:00+00:00")

    def test_tracked_post_from_post(self):
        post = make_posts("9")[0]
        tracked = TrackedPost.from_post(post)
        self.assertEqual((tracked.id, tracked.text, tracked.created_at),
                         (post.id, post.text, post.created_at))


class TestIngestionTracker(unittest.TestCase):

    def setUp(self):
        self.tracker = IngestionTracker(max_tracked_posts=5)

    def tearDown(self):
        self.tracker.clear()

    def test_default_capacity(self):
        self.assertEqual(IngestionTracker().max_tracked_posts, DEFAULT_MAX_TRACKED_POSTS)

    def test_invalid_capacity(self):
        with self.assertRaises(ValueError):
            IngestionTracker(max_tracked_posts=0)

    def test_all_new_first_time(self):
        posts = make_posts("3", "2", "1")
        self.assertEqual(self.tracker.filter_new(posts), posts)
        self.assertEqual(len(self.tracker), 3)

    def test_preserves_feed_order(self):
        posts = make_posts("c", "b", "a")
        result = self.tracker.filter_new(posts)
        self.assertEqual([p.id for p in result], ["c", "b", "a"])

    def test_seen_post_excluded_next_cycle(self):
        self.tracker.filter_new(make_posts("1", "2"))
        result = self.tracker.filter_new(make_posts("3", "2", "1"))
        self.assertEqual([p.id for p in result], ["3"])

    def test_repeated_batch_returns_nothing(self):
        posts = make_posts("1", "2")
        self.tracker.filter_new(posts)
        self.assertEqual(self.tracker.filter_new(posts), [])

    def test_duplicate_in_batch_returned_once(self):
        posts = make_posts("1") + make_posts("1")
        result = self.tracker.filter_new(posts)
        self.assertEqual(len(result), 1)
        self.assertEqual(len(self.tracker), 1)

    def test_contains(self):
        self.tracker.filter_new(make_posts("42"))
        self.assertIn("42", self.tracker)
        self.assertNotIn("43", self.tracker)

    def test_capacity_never_exceeded(self):
        for batch in range(10):
            ids = [f"{batch}-{i}" for i in range(4)]
            self.tracker.filter_new(make_posts(*ids))
            self.assertLessEqual(len(self.tracker), 5)

    def test_large_batch_trimmed_after_insert(self):
        posts = make_posts(*[str(i) for i in range(8)])
        result = self.tracker.filter_new(posts)
        # Whole batch is reported; eviction happens afterwards
        self.assertEqual(len(result), 8)
        self.assertEqual(len(self.tracker), 5)
        self.assertEqual(self.tracker.evicted_count, 3)

    # Batches below are in feed order: most recent first

    def test_evicts_oldest_first(self):
        self.tracker.filter_new(make_posts("5", "4", "3", "2", "1"))
        self.tracker.filter_new(make_posts("7", "6"))

        tracked_ids = [p.id for p in self.tracker.tracked_posts()]
        self.assertEqual(tracked_ids, ["3", "4", "5", "6", "7"])
        self.assertNotIn("1", self.tracker)
        self.assertNotIn("2", self.tracker)

    def test_evicted_post_is_new_again(self):
        self.tracker.filter_new(make_posts("5", "4", "3", "2", "1"))
        self.tracker.filter_new(make_posts("6"))
        result = self.tracker.filter_new(make_posts("1"))
        self.assertEqual([p.id for p in result], ["1"])

    def test_overflowing_batch_keeps_newest(self):
        tracker = IngestionTracker(max_tracked_posts=3)
        batch = make_posts("5", "4", "3", "2", "1")

        first = tracker.filter_new(batch)
        self.assertEqual([p.id for p in first], ["5", "4", "3", "2", "1"])
        self.assertEqual([p.id for p in tracker.tracked_posts()], ["3", "4", "5"])

        # The newest posts must not come back as new on the next cycle
        second = tracker.filter_new(batch)
        for post_id in ("5", "4", "3"):
            self.assertNotIn(post_id, [p.id for p in second])

    def test_retained_ids_never_reported_twice(self):
        seen = set()
        for cycle in range(6):
            ids = [str(cycle + i) for i in reversed(range(3))]
            for post in self.tracker.filter_new(make_posts(*ids)):
                self.assertNotIn(post.id, seen)
                seen.add(post.id)

    def test_clear(self):
        self.tracker.filter_new(make_posts("1"))
        self.tracker.clear()
        self.assertEqual(len(self.tracker), 0)
        self.assertEqual(self.tracker.evicted_count, 0)


if __name__ == "__main__":
    unittest.main()
