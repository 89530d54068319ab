import unittest
from unittest.mock import MagicMock

from grove.db import HeirRecord, InMemoryDbClient
from grove.queue import NOTICE_REVOKED, HeirNotice, InMemoryJobQueue
from grove.types import HeirStatus, ReleaseCondition
from grove.worker import MAX_ATTEMPTS, deliver_notice, process_next


class WorkerTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.queue = InMemoryJobQueue()
        self.notifier = MagicMock()

    def _released_heir(self, **overrides) -> HeirRecord:
        fields = {
            "branch_id": "branch-1",
            "heir_email": "heir@example.com",
            "release_condition": ReleaseCondition.MANUAL,
            "status": HeirStatus.RELEASED,
            "download_token": "token",
            "released_at": 1000.0,
        }
        fields.update(overrides)
        return self.db.save_heir(HeirRecord(**fields))

    def test_process_once_delivers_notice(self):
        heir = self._released_heir()
        self.queue.enqueue(HeirNotice(heir_id=heir.heir_id))

        processed = process_next(
            db=self.db, queue=self.queue, notifier=self.notifier, block=False
        )
        self.assertTrue(processed)
        self.notifier.send_release_notice.assert_called_once()
        self.assertIsNotNone(self.db.get_heir(heir.heir_id).notified_at)

    def test_process_once_no_jobs(self):
        processed = process_next(db=self.db, queue=self.queue, block=False)
        self.assertFalse(processed)

    def test_notice_is_sent_once(self):
        heir = self._released_heir()
        notice = HeirNotice(heir_id=heir.heir_id)
        self.assertTrue(deliver_notice(notice, self.db, self.notifier, now=1100.0))
        self.assertFalse(deliver_notice(notice, self.db, self.notifier, now=1200.0))
        self.assertEqual(self.notifier.send_release_notice.call_count, 1)
        self.assertEqual(self.db.get_heir(heir.heir_id).notified_at, 1100.0)

    def test_revoked_and_pending_heirs_are_skipped(self):
        revoked = self._released_heir(revoked_at=1050.0)
        pending = self._released_heir(status=HeirStatus.PENDING, download_token=None)
        for heir_id in (revoked.heir_id, pending.heir_id, "missing"):
            self.assertFalse(deliver_notice(HeirNotice(heir_id=heir_id), self.db, self.notifier))
        self.notifier.send_release_notice.assert_not_called()

    def test_revocation_notice(self):
        revoked = self._released_heir(revoked_at=1050.0, notified_at=1010.0)
        still_active = self._released_heir()
        self.assertTrue(
            deliver_notice(
                HeirNotice(heir_id=revoked.heir_id, kind=NOTICE_REVOKED), self.db, self.notifier
            )
        )
        self.assertFalse(
            deliver_notice(
                HeirNotice(heir_id=still_active.heir_id, kind=NOTICE_REVOKED),
                self.db,
                self.notifier,
            )
        )
        self.notifier.send_revocation_notice.assert_called_once()
        self.notifier.send_release_notice.assert_not_called()

    def test_failed_delivery_is_requeued_until_max_attempts(self):
        heir = self._released_heir()
        self.notifier.send_release_notice.side_effect = RuntimeError("smtp down")
        self.queue.enqueue(HeirNotice(heir_id=heir.heir_id))

        for attempt in range(1, MAX_ATTEMPTS):
            self.assertTrue(
                process_next(db=self.db, queue=self.queue, notifier=self.notifier, block=False)
            )
            self.assertEqual([n.attempts for n in self.queue.items], [attempt])

        process_next(db=self.db, queue=self.queue, notifier=self.notifier, block=False)
        self.assertEqual(self.queue.items, [])
        self.assertEqual(self.notifier.send_release_notice.call_count, MAX_ATTEMPTS)
        self.assertIsNone(self.db.get_heir(heir.heir_id).notified_at)


class HeirNoticeTests(unittest.TestCase):
    def test_json_payload(self):
        notice = HeirNotice(heir_id="h1", kind=NOTICE_REVOKED, attempts=2)
        self.assertEqual(
            notice.to_json(), '{"heirId": "h1", "kind": "REVOKED", "attempts": 2}'
        )
        self.assertEqual(HeirNotice.from_json(notice.to_json().encode("utf-8")), notice)

    def test_kind_defaults_to_release(self):
        notice = HeirNotice.from_json('{"heirId": "h1"}')
        self.assertEqual(notice.kind, "RELEASED")
        self.assertEqual(notice.attempts, 0)

    def test_malformed_payloads(self):
        for raw in ("not json", "[1, 2]", '{"kind": "RELEASED"}', '{"heirId": "h", "kind": "LOST"}'):
            with self.assertRaises(ValueError):
                HeirNotice.from_json(raw)


if __name__ == "__main__":
    unittest.main()
