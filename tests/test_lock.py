"""
Tests for the exclusive store lock.
"""

import os
import shutil
import tempfile
import unittest
from pathlib import Path

from wacli.core.errors import StoreLockedError
from wacli.core.lock import StoreLock


class TestStoreLock(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store = Path(self.temp_dir) / "store"

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_acquire_creates_store_and_records_pid(self):
        with StoreLock(self.store) as lock:
            self.assertTrue(lock.held)
            self.assertEqual(lock.lock_path.read_text(), str(os.getpid()))
        self.assertFalse(lock.held)

    def test_second_holder_is_refused(self):
        with StoreLock(self.store):
            with self.assertRaises(StoreLockedError) as context:
                StoreLock(self.store).acquire()

        self.assertEqual(context.exception.holder_pid, os.getpid())
        self.assertIn("wacli sync", str(context.exception))

    def test_release_allows_reacquire(self):
        first = StoreLock(self.store)
        first.acquire()
        first.release()
        first.release()

        with StoreLock(self.store) as second:
            self.assertTrue(second.held)

    def test_acquire_is_idempotent(self):
        lock = StoreLock(self.store)
        lock.acquire()
        lock.acquire()
        lock.release()
        self.assertFalse(lock.held)


if __name__ == "__main__":
    unittest.main()
