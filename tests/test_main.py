import datetime
import unittest

# src/dynamic_parse/__init__.py
from dynamic_parse import (
	ParseError, SyntaxFailure, get_grammar, get_parse_function, parse, parse_exact,
)


class TestParse(unittest.TestCase):

	def test_iso_round_trip(self):
		for dt in (
			datetime.datetime(2004, 7, 1, 22, 30),
			datetime.datetime(1999, 12, 31, 23, 59, 59),
			datetime.datetime(2020, 2, 29, 0, 0, 1),
			datetime.datetime(1, 1, 1),
			datetime.datetime(2004, 7, 1, 22, 30, 0, 500000),
			datetime.datetime(2004, 7, 1, 22, 30, 5, 1),
		):
			with self.subTest(dt=dt):
				self.assertEqual(parse(dt.isoformat()), dt)

	def test_examples(self):
		self.assertEqual(parse("2004-07-01T22:30:00"), datetime.datetime(2004, 7, 1, 22, 30))
		self.assertEqual(parse("July 8th, 2004, 10:30 PM"), datetime.datetime(2004, 7, 8, 22, 30))

	def test_garbage(self):
		for s in ("hello world", "not a date", "xyz", "!!!", "July 8th, 2004 banana", "99:99"):
			with self.subTest(s=s):
				self.assertIsNone(parse(s))

	def test_empty(self):
		self.assertIsNone(parse(""))
		self.assertIsNone(parse("   "))
		self.assertIsNone(parse(None))

	def test_input_normalisation(self):
		self.assertEqual(parse(b"2004-07-01T22:30:00"), datetime.datetime(2004, 7, 1, 22, 30))
		self.assertEqual(parse("  2004-07-01T22:30:00\n"), datetime.datetime(2004, 7, 1, 22, 30))
		dt = datetime.datetime(2004, 7, 1)
		self.assertIs(parse(dt), dt)

	def test_today(self):
		today = datetime.datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
		self.assertEqual(parse("today"), today)

	def test_now(self):
		before = datetime.datetime.now()
		dt = parse("now")
		after = datetime.datetime.now()
		self.assertLessEqual(before, dt)
		self.assertLessEqual(dt, after)

	def test_strict(self):
		with self.assertRaises(ParseError) as cm:
			parse("not a date", strict=True)
		self.assertIsInstance(cm.exception, ValueError)
		self.assertIsInstance(cm.exception.failure, SyntaxFailure)
		with self.assertRaises(ParseError):
			parse("", strict=True)


class TestParseExact(unittest.TestCase):

	def test_parse_exact(self):
		self.assertEqual(parse_exact("10/15/2004", "M/d/yyyy"), datetime.datetime(2004, 10, 15))
		self.assertIsNone(parse_exact("10/15/2004", "d/M/yyyy"))

	def test_format_cache_is_shared(self):
		self.assertIs(get_grammar().compile("dd MMM yyyy"), get_grammar().compile("dd MMM yyyy"))
		self.assertIs(get_grammar(), get_grammar())

	def test_get_parse_function(self):
		parse_date = get_parse_function(["yyyy-MM-dd", "dd.MM.yyyy"])
		self.assertEqual(parse_date("2004-07-01"), datetime.datetime(2004, 7, 1))
		self.assertEqual(parse_date("01.07.2004"), datetime.datetime(2004, 7, 1))
		self.assertIsNone(parse_date("07/01/2004"))


if __name__ == "__main__":
	unittest.main()
