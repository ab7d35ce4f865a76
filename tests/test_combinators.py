import unittest
from unittest import mock

from dynamic_parse.combinators import (
	MAX_SET_RULES, Match, SemanticFailure, SyntaxFailure,
	all_, any_, between, cache, each, fail, forward, ignore, many, min_, not_, optional,
	process, regex_token, replace, sequence, set_, string_token, token, until,
)

digits = regex_token(r"\d+")
letters = regex_token(r"[a-z]+")


class TestTokens(unittest.TestCase):

	def test_regex_token(self):
		self.assertEqual(digits("123abc"), Match("123", "abc"))
		r = digits("abc")
		self.assertIsInstance(r, SyntaxFailure)
		self.assertFalse(r)
		self.assertEqual(r.remainder, "abc")

	def test_regex_token_ignores_case(self):
		self.assertEqual(regex_token("july")("JULY 4"), Match("JULY", " 4"))

	def test_string_token(self):
		self.assertEqual(string_token("T")("T10"), Match("T", "10"))
		self.assertFalse(string_token("T")("t10").ok)
		self.assertEqual(string_token("a.b")("a.bc"), Match("a.b", "c"))
		self.assertFalse(string_token("a.b")("axb").ok)

	def test_token_eats_whitespace(self):
		self.assertEqual(token("ab")("  ab  c"), Match("  ab  ", "c"))

	def test_fail(self):
		r = fail(SemanticFailure(reason="nope"))("abc")
		self.assertIsInstance(r, SemanticFailure)
		self.assertEqual(r.remainder, "abc")
		self.assertEqual(r.reason, "nope")

	def test_failure_offset(self):
		f = SyntaxFailure("def")
		self.assertEqual(f.offset("abcdef"), 3)
		self.assertIn("offset 3", f.describe("abcdef"))


class TestOperators(unittest.TestCase):

	def test_optional(self):
		self.assertEqual(optional(digits)("12"), Match("12", ""))
		self.assertEqual(optional(digits)("ab"), Match(None, "ab"))

	def test_not(self):
		self.assertEqual(not_(digits)("ab"), Match(None, "ab"))
		self.assertFalse(not_(digits)("12").ok)

	def test_ignore(self):
		self.assertEqual(ignore(digits)("12ab"), Match(None, "ab"))
		self.assertFalse(ignore(digits)("ab").ok)

	def test_many(self):
		self.assertEqual(many(regex_token("a"))("aaab"), Match(["a", "a", "a"], "b"))
		self.assertEqual(many(regex_token("a"))("b"), Match([], "b"))

	def test_many_stops_without_progress(self):
		self.assertEqual(many(regex_token("a*"))("b"), Match([""], "b"))

	def test_until(self):
		self.assertEqual(until(string_token(";"))("ab;c"), Match(["a", "b"], ";c"))
		self.assertEqual(until(string_token(";"))("abc"), Match(["a", "b", "c"], ""))

	def test_until_with_step(self):
		r = until(string_token(";"), each(letters, optional(regex_token(r"\s+"))))("ab cd;")
		self.assertEqual(r.remainder, ";")
		self.assertEqual([v[0] for v in r.value], ["ab", "cd"])

	def test_until_never_fails(self):
		self.assertEqual(until(string_token(";"))(";x"), Match([], ";x"))

	def test_cache(self):
		calls = []

		def counted(s):
			calls.append(s)
			return digits(s)
		table = {}
		rule = cache(counted, table)
		self.assertEqual(rule("12a"), Match("12", "a"))
		self.assertEqual(rule("12a"), Match("12", "a"))
		self.assertEqual(calls, ["12a"])
		self.assertIn("12a", table)

	def test_min(self):
		self.assertEqual(min_(2, many(regex_token("a")))("aab"), Match(["a", "a"], "b"))
		self.assertFalse(min_(2, many(regex_token("a")))("ab").ok)

	def test_forward(self):
		table = {}
		ref = forward(table, "number")
		table["number"] = digits
		self.assertEqual(ref("42"), Match("42", ""))

	def test_replace(self):
		self.assertEqual(replace(digits, 7)("12a"), Match(7, "a"))

	def test_process(self):
		self.assertEqual(process(digits, int)("12a"), Match(12, "a"))

	def test_process_failure(self):
		check = lambda v: SemanticFailure(reason="too big") if int(v) > 31 else int(v)
		rule = process(digits, check)
		self.assertEqual(rule("31"), Match(31, ""))
		r = rule("32x")
		self.assertIsInstance(r, SemanticFailure)
		self.assertEqual(r.remainder, "32x")


class TestVectorOperators(unittest.TestCase):

	def test_any(self):
		rule = any_(digits, letters)
		self.assertEqual(rule("ab1"), Match("ab", "1"))
		self.assertFalse(rule("!").ok)

	def test_any_first_success_wins(self):
		rule = any_(replace(regex_token("a"), 1), replace(regex_token("ab"), 2))
		self.assertEqual(rule("ab"), Match(1, "b"))

	def test_each(self):
		self.assertEqual(each(digits, letters)("1a!"), Match(["1", "a"], "!"))
		r = each(digits, letters)("1!")
		self.assertFalse(r.ok)
		self.assertEqual(r.remainder, "1!")

	def test_all(self):
		self.assertEqual(all_(digits, letters)("ab"), Match([None, "ab"], ""))

	def test_sequence(self):
		hms = sequence([digits, digits, digits], string_token(":"))
		self.assertEqual(hms("22:30:15"), Match(["22", "30", "15"], ""))
		self.assertEqual(hms("22:30 pm"), Match(["22", "30"], " pm"))
		self.assertFalse(hms("22:").ok)

	def test_sequence_closer(self):
		rule = sequence([digits, digits], string_token(","), string_token(";"))
		self.assertEqual(rule("1,2;x"), Match(["1", "2"], "x"))
		self.assertFalse(rule("1,2").ok)

	def test_between(self):
		self.assertEqual(between(string_token('"'), letters)('"abc"x'), Match("abc", "x"))
		self.assertFalse(between(string_token("("), letters, string_token(")"))("(abc").ok)


class TestSet(unittest.TestCase):

	def test_any_order(self):
		rule = set_([regex_token("a"), regex_token("b")])
		self.assertEqual(rule("a b"), Match(["a", "b"], ""))
		self.assertEqual(rule("b a"), Match(["b", "a"], ""))

	def test_longest_match_wins(self):
		rule = set_([regex_token("a"), regex_token("ab")])
		self.assertEqual(rule("ab"), Match(["ab"], ""))

	def test_tie_goes_to_earlier_rule(self):
		first = replace(regex_token("ab"), "first")
		second = replace(regex_token("ab"), "second")
		self.assertEqual(set_([first, second])("ab"), Match(["first"], ""))
		self.assertEqual(set_([second, first])("ab"), Match(["second"], ""))

	def test_never_fails_without_match(self):
		r = set_([digits, letters])("!!")
		self.assertTrue(r.ok)
		self.assertEqual(r, Match([], "!!"))

	def test_delimiter(self):
		rule = set_([digits, letters], string_token("/"))
		self.assertEqual(rule("ab/12"), Match(["ab", "12"], ""))
		self.assertEqual(rule("ab 12"), Match(["ab"], " 12"))

	def test_closer(self):
		rule = set_([digits, letters], string_token(" "), string_token("."))
		self.assertEqual(rule("12 ab."), Match(["12", "ab"], ""))
		self.assertFalse(rule("12 ab").ok)

	def test_step_budget(self):
		rule = set_([regex_token("a"), regex_token("b"), regex_token("c")])
		with mock.patch("dynamic_parse.combinators.MAX_SET_STEPS", 2):
			with self.assertLogs("dynamic_parse.combinators", "WARNING"):
				r = rule("a b c")
		self.assertTrue(r.ok)
		self.assertEqual(r, Match(["a", "b"], " c"))

	def test_rule_limit(self):
		with self.assertRaises(ValueError):
			set_([digits] * (MAX_SET_RULES + 1))


if __name__ == "__main__":
	unittest.main()
