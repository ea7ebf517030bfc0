"""
Tests for the App context and the daemon's AppHandler.
"""

import shutil
import sqlite3
import tempfile
import time
import unittest
from pathlib import Path

from fakes import FakeSession

from wacli.core.app import App, ChatAction, open_app
from wacli.core.errors import SessionError, StoreLockedError, ValidationError
from wacli.core.store import DB_NAME
from wacli.daemon.handler import AppHandler

ALICE = "4915112345678@s.whatsapp.net"


class AppTestCase(unittest.TestCase):
    def setUp(self):
        FakeSession.reset()
        self.temp_dir = tempfile.mkdtemp()
        self.store = Path(self.temp_dir)
        self.app = App(self.store, FakeSession)
        self.app.open()

    def tearDown(self):
        self.app.close()
        FakeSession.reset()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    @property
    def session(self) -> FakeSession:
        return self.app.session


class TestAppLifecycle(AppTestCase):
    def test_open_holds_store_lock(self):
        with self.assertRaises(StoreLockedError):
            App(self.store, FakeSession).open()

    def test_close_releases_everything(self):
        session = self.session
        self.app.close()

        self.assertTrue(session.closed)
        with self.assertRaises(SessionError):
            self.app.session
        with open_app(self.store, FakeSession) as other:
            self.assertIsNot(other.session, session)

    def test_failed_open_releases_lock(self):
        self.app.close()

        def broken_factory(store_dir):
            raise SessionError("cannot open credential store")

        with self.assertRaises(SessionError):
            App(self.store, broken_factory).open()

        with open_app(self.store, FakeSession) as other:
            self.assertIsNotNone(other.db)

    def test_ensure_authed(self):
        self.app.ensure_authed()
        FakeSession.authed = False
        with self.assertRaises(SessionError):
            self.app.ensure_authed()

    def test_require_connected(self):
        with self.assertRaises(SessionError) as context:
            self.app.require_connected()
        self.assertEqual(str(context.exception), "whatsapp not connected")

        self.app.connect()
        self.app.require_connected()


class TestAppOperations(AppTestCase):
    def setUp(self):
        super().setUp()
        self.app.connect()

    def test_send_text_normalises_and_caches(self):
        chat, msg_id = self.app.send_text("+49 151 1234-5678", "hello")

        self.assertEqual((chat, msg_id), (ALICE, "FAKE1"))
        self.assertEqual(self.session.calls, [("send_text", ALICE, "hello")])
        self.assertEqual(self.app.db.get_chat(ALICE).name, "Alice")
        conn = sqlite3.connect(str(self.store / DB_NAME))
        try:
            row = conn.execute(
                "SELECT text, from_me FROM messages WHERE chat_jid = ? AND msg_id = ?", (ALICE, "FAKE1")
            ).fetchone()
        finally:
            conn.close()
        self.assertEqual(row, ("hello", 1))

    def test_send_text_invalid_recipient(self):
        with self.assertRaises(ValidationError):
            self.app.send_text("not a number", "hello")
        self.assertEqual(self.session.calls, [])

    def test_send_failure_leaves_cache_untouched(self):
        self.session.fail_with = SessionError("send failed")

        with self.assertRaises(SessionError):
            self.app.send_text(ALICE, "hello")
        self.assertIsNone(self.app.db.get_chat(ALICE))

    def test_backend_failure_becomes_session_error(self):
        cases = [
            ("send", lambda: self.app.send_text(ALICE, "hello")),
            ("revoke", lambda: self.app.delete_message(ALICE, "M1", True)),
            ("archive", lambda: self.app.apply_chat_state(ALICE, "archive")),
            ("pin", lambda: self.app.apply_chat_state(ALICE, "pin")),
            ("mute", lambda: self.app.apply_chat_state(ALICE, "mute", "8h")),
            ("mark read", lambda: self.app.apply_chat_state(ALICE, "mark-read")),
        ]
        self.session.fail_with = ConnectionError("remote rejected")

        for operation, call in cases:
            with self.subTest(operation=operation):
                with self.assertRaises(SessionError) as context:
                    call()
                self.assertEqual(str(context.exception), f"{operation}: remote rejected")
                self.assertIsInstance(context.exception.__cause__, ConnectionError)

        self.assertIsNone(self.app.db.get_chat(ALICE))

    def test_delete_message(self):
        chat = self.app.delete_message("4915112345678", "M1", True)

        self.assertEqual(chat, ALICE)
        self.assertEqual(self.session.calls, [("revoke_message", ALICE, "M1", True)])

    def test_chat_state_actions_update_cache(self):
        jid = "123@g.us"

        self.app.apply_chat_state(jid, ChatAction.ARCHIVE.value)
        self.app.apply_chat_state(jid, ChatAction.PIN.value)
        self.app.apply_chat_state(jid, ChatAction.MARK_UNREAD.value)
        chat = self.app.db.get_chat(jid)
        self.assertEqual(chat.kind, "group")
        self.assertTrue(chat.archived and chat.pinned and chat.unread)

        self.app.apply_chat_state(jid, "unarchive")
        self.app.apply_chat_state(jid, "unpin")
        self.app.apply_chat_state(jid, "mark-read")
        chat = self.app.db.get_chat(jid)
        self.assertFalse(chat.archived or chat.pinned or chat.unread)

        self.assertEqual(
            self.session.calls,
            [
                ("archive_chat", jid, True),
                ("pin_chat", jid, True),
                ("mark_chat_read", jid, False),
                ("archive_chat", jid, False),
                ("pin_chat", jid, False),
                ("mark_chat_read", jid, True),
            ],
        )

    def test_mute_with_duration(self):
        before = time.time()

        self.app.apply_chat_state(ALICE, "mute", "8h")

        self.assertEqual(self.session.calls, [("mute_chat", ALICE, True, 8 * 3600.0)])
        muted_until = self.app.db.get_chat(ALICE).muted_until
        self.assertGreaterEqual(muted_until, int(before + 8 * 3600))

    def test_mute_forever_and_unmute(self):
        self.app.apply_chat_state(ALICE, "mute")
        self.assertEqual(self.app.db.get_chat(ALICE).muted_until, -1)

        self.app.apply_chat_state(ALICE, "unmute")
        self.assertEqual(self.app.db.get_chat(ALICE).muted_until, 0)

    def test_invalid_duration_never_reaches_session(self):
        with self.assertRaises(ValidationError):
            self.app.apply_chat_state(ALICE, "mute", "eight hours")
        self.assertEqual(self.session.calls, [])

    def test_unknown_action(self):
        with self.assertRaises(ValidationError) as context:
            self.app.apply_chat_state(ALICE, "explode")
        self.assertIn("explode", str(context.exception))


class TestAppHandler(AppTestCase):
    def setUp(self):
        super().setUp()
        self.handler = AppHandler(self.app)

    def test_requires_connected_session(self):
        with self.assertRaises(SessionError) as context:
            self.handler.send_text(ALICE, "hi")
        self.assertEqual(str(context.exception), "whatsapp not connected")
        self.assertEqual(self.session.calls, [])

    def test_operations_delegate_to_app(self):
        self.app.connect()

        msg_id = self.handler.send_text("4915112345678", "hi")
        self.handler.delete_message(ALICE, msg_id, False)
        self.handler.chat_state(ALICE, "pin")

        self.assertEqual(msg_id, "FAKE1")
        self.assertEqual(
            self.session.calls,
            [
                ("send_text", ALICE, "hi"),
                ("revoke_message", ALICE, "FAKE1", False),
                ("pin_chat", ALICE, True),
            ],
        )
        self.assertTrue(self.app.db.get_chat(ALICE).pinned)


if __name__ == "__main__":
    unittest.main()
