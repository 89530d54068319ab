import unittest

from grove.db import EntryRecord, InMemoryDbClient
from grove.fingerprint import compute_content_hash, find_duplicate, normalize_text
from grove.types import EntryStatus


class ContentHashTests(unittest.TestCase):
    def test_hash_is_deterministic_sha256_hex(self):
        first = compute_content_hash("Grandma loved her garden.")
        second = compute_content_hash("Grandma loved her garden.")
        self.assertEqual(first, second)
        self.assertEqual(len(first), 64)
        int(first, 16)

    def test_casing_and_whitespace_are_normalized(self):
        h1 = compute_content_hash("Grandma loved her garden.")
        h1_variant = compute_content_hash("  GRANDMA loved\n her   Garden.   ")
        self.assertEqual(h1, h1_variant)

    def test_adding_media_changes_hash(self):
        h1 = compute_content_hash("Grandma loved her garden.")
        h2 = compute_content_hash(
            "Grandma loved her garden.", media_url="https://cdn.example/rose.jpg"
        )
        self.assertNotEqual(h1, h2)

    def test_single_character_change_changes_hash(self):
        self.assertNotEqual(
            compute_content_hash("Grandma loved her garden."),
            compute_content_hash("Grandma loved her gardens."),
        )

    def test_url_slots_are_distinct(self):
        url = "https://cdn.example/clip"
        hashes = {
            compute_content_hash("hi", media_url=url),
            compute_content_hash("hi", audio_url=url),
            compute_content_hash("hi", video_url=url),
        }
        self.assertEqual(len(hashes), 3)

    def test_urls_are_not_normalized(self):
        self.assertNotEqual(
            compute_content_hash("hi", media_url="https://cdn.example/A.jpg"),
            compute_content_hash("hi", media_url="https://cdn.example/a.jpg"),
        )

    def test_media_only_entry_fingerprints_with_empty_text(self):
        url = "https://cdn.example/photo.jpg"
        self.assertEqual(
            compute_content_hash("", media_url=url),
            compute_content_hash(None, media_url=url),
        )
        self.assertEqual(compute_content_hash("   ", media_url=url), compute_content_hash("", media_url=url))

    def test_delimiter_characters_cannot_shift_between_fields(self):
        self.assertNotEqual(
            compute_content_hash("a|b", media_url="c"),
            compute_content_hash("a", media_url="b|c"),
        )
        self.assertNotEqual(
            compute_content_hash('a","b'),
            compute_content_hash("a", media_url="b"),
        )
        self.assertNotEqual(
            compute_content_hash("hi", media_url="x|", audio_url="y"),
            compute_content_hash("hi", media_url="x", audio_url="|y"),
        )

    def test_normalize_text(self):
        self.assertEqual(normalize_text("  A\tB\n\nC "), "a b c")
        self.assertEqual(normalize_text(None), "")


class FindDuplicateTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.hash = compute_content_hash("Grandma loved her garden.")
        self.entry = self.db.save_entry(
            EntryRecord(
                branch_id="branch-1",
                author_id="author-1",
                text="Grandma loved her garden.",
                content_hash=self.hash,
                created_at=1000.0,
                updated_at=1000.0,
            )
        )

    def _find(self, **overrides):
        kwargs = {
            "author_id": "author-1",
            "branch_id": "branch-1",
            "content_hash": self.hash,
            "now": 1000.0 + 60,
        }
        kwargs.update(overrides)
        return find_duplicate(self.db, **kwargs)

    def test_flags_resubmission_inside_window(self):
        found = self._find()
        self.assertIsNotNone(found)
        self.assertEqual(found.entry_id, self.entry.entry_id)

    def test_window_edge_is_inclusive(self):
        self.assertIsNotNone(self._find(now=1000.0 + 5 * 60))

    def test_not_flagged_after_window(self):
        self.assertIsNone(self._find(now=1000.0 + 5 * 60 + 1))

    def test_custom_window(self):
        self.assertIsNotNone(self._find(now=1000.0 + 9 * 60, window_minutes=10))
        self.assertIsNone(self._find(window_minutes=0))

    def test_other_author_or_branch_not_flagged(self):
        self.assertIsNone(self._find(author_id="author-2"))
        self.assertIsNone(self._find(branch_id="branch-2"))

    def test_withdrawn_entries_are_ignored(self):
        self.entry.status = EntryStatus.WITHDRAWN
        self.db.save_entry(self.entry)
        self.assertIsNone(self._find())

    def test_returns_most_recent_match(self):
        newer = self.db.save_entry(
            EntryRecord(
                branch_id="branch-1",
                author_id="author-1",
                text="grandma loved her garden.",
                content_hash=self.hash,
                created_at=1030.0,
                updated_at=1030.0,
            )
        )
        self.assertEqual(self._find().entry_id, newer.entry_id)


if __name__ == "__main__":
    unittest.main()
