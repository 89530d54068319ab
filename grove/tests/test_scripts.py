import unittest

from grove.db import EntryRecord, InMemoryDbClient
from grove.fingerprint import compute_content_hash
from scripts.backfill_content_hashes import backfill


class BackfillContentHashesTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.fresh = self.db.save_entry(
            EntryRecord(
                branch_id="branch-1",
                author_id="author-1",
                text="Grandma loved her garden.",
                content_hash=compute_content_hash("Grandma loved her garden."),
                created_at=1000.0,
            )
        )
        self.stale = self.db.save_entry(
            EntryRecord(
                branch_id="branch-1",
                author_id="author-1",
                text="The lake house",
                media_url="https://cdn.example/lake.jpg",
                content_hash="",
                created_at=1001.0,
            )
        )

    def test_dry_run_changes_nothing(self):
        scanned, updated = backfill(self.db, dry_run=True, batch_size=1)
        self.assertEqual((scanned, updated), (2, 1))
        self.assertEqual(self.db.get_entry(self.stale.entry_id).content_hash, "")

    def test_backfill_rewrites_stale_hashes_once(self):
        scanned, updated = backfill(self.db, dry_run=False, batch_size=1)
        self.assertEqual((scanned, updated), (2, 1))
        self.assertEqual(
            self.db.get_entry(self.stale.entry_id).content_hash,
            compute_content_hash("The lake house", media_url="https://cdn.example/lake.jpg"),
        )
        self.assertEqual(backfill(self.db, dry_run=False), (2, 0))

    def test_limit(self):
        self.assertEqual(backfill(self.db, dry_run=True, limit=1), (1, 0))


if __name__ == "__main__":
    unittest.main()
