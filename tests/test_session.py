"""Unit tests for the session coordinator."""
from __future__ import annotations

import threading
import unittest

from polycorrect.session import SessionCoordinator


class TestSessionCoordinator(unittest.TestCase):
    """Session counter and cancellation flags."""

    def setUp(self):
        self.coordinator = SessionCoordinator()

    def test_starts_at_zero(self):
        self.assertEqual(self.coordinator.current, 0)
        self.assertEqual(self.coordinator.slot_count, 4)

    def test_new_session_strictly_increasing(self):
        """A second session makes the first one stale."""
        first = self.coordinator.new_session()
        second = self.coordinator.new_session()
        self.assertEqual(first, 1)
        self.assertGreater(second, first)
        self.assertFalse(self.coordinator.is_current(first))
        self.assertTrue(self.coordinator.is_current(second))

    def test_begin_session_clears_flags(self):
        self.coordinator.cancel_all()
        session_id = self.coordinator.begin_session()
        self.assertTrue(self.coordinator.is_current(session_id))
        for index in range(4):
            self.assertFalse(self.coordinator.is_cancelled(index))
            self.assertTrue(self.coordinator.should_continue(session_id, index))

    def test_begin_session_supersedes_previous(self):
        first = self.coordinator.begin_session()
        second = self.coordinator.begin_session()
        self.assertFalse(self.coordinator.should_continue(first, 0))
        self.assertTrue(self.coordinator.should_continue(second, 0))

    def test_cancel_all_repeated(self):
        """Repeated cancel_all leaves every flag set; the next session resets them."""
        session_id = self.coordinator.begin_session()
        self.coordinator.cancel_all()
        self.coordinator.cancel_all()
        for index in range(4):
            self.assertTrue(self.coordinator.is_cancelled(index))
            self.assertFalse(self.coordinator.should_continue(session_id, index))

        next_id = self.coordinator.begin_session()
        self.assertTrue(all(not self.coordinator.is_cancelled(index) for index in range(4)))
        self.assertTrue(self.coordinator.should_continue(next_id, 2))

    def test_cancel_all_while_idle(self):
        self.coordinator.cancel_all()
        session_id = self.coordinator.begin_session()
        self.assertTrue(self.coordinator.should_continue(session_id, 0))

    def test_cancel_one_leaves_others(self):
        session_id = self.coordinator.begin_session()
        self.coordinator.cancel_one(2)
        self.assertTrue(self.coordinator.is_current(session_id))
        self.assertFalse(self.coordinator.should_continue(session_id, 2))
        for index in (0, 1, 3):
            self.assertTrue(self.coordinator.should_continue(session_id, index))

    def test_concurrent_new_session_unique(self):
        """Ids issued from many threads are unique."""
        issued = []
        lock = threading.Lock()

        def worker():
            for _ in range(200):
                session_id = self.coordinator.new_session()
                with lock:
                    issued.append(session_id)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(issued), 1600)
        self.assertEqual(len(set(issued)), 1600)
        self.assertEqual(self.coordinator.current, 1600)


if __name__ == "__main__":
    unittest.main()
