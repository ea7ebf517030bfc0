"""
Tests for JID parsing helpers.
"""

import unittest

from wacli.core.errors import ValidationError
from wacli.core.jid import chat_kind_from_jid, parse_user_or_jid


class TestParseUserOrJid(unittest.TestCase):
    def test_phone_numbers(self):
        cases = {
            "4915112345678": "4915112345678@s.whatsapp.net",
            "+49 151 1234-5678": "4915112345678@s.whatsapp.net",
            " (49) 151.12345678 ": "4915112345678@s.whatsapp.net",
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                self.assertEqual(parse_user_or_jid(value), expected)

    def test_jids_pass_through(self):
        for jid in ("123456789-1600000000@g.us", "status@broadcast", "4915112345678@s.whatsapp.net"):
            with self.subTest(jid=jid):
                self.assertEqual(parse_user_or_jid(jid), jid)

    def test_invalid(self):
        for value in ("", "   ", "alice", "@s.whatsapp.net", "a@", "a@b@c", "+"):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    parse_user_or_jid(value)


class TestChatKind(unittest.TestCase):
    def test_kinds(self):
        self.assertEqual(chat_kind_from_jid("4915112345678@s.whatsapp.net"), "dm")
        self.assertEqual(chat_kind_from_jid("12345@lid"), "dm")
        self.assertEqual(chat_kind_from_jid("123-456@g.us"), "group")
        self.assertEqual(chat_kind_from_jid("status@broadcast"), "broadcast")
        self.assertEqual(chat_kind_from_jid("x@newsletter"), "unknown")


if __name__ == "__main__":
    unittest.main()
