import datetime
import logging
import re
import threading

from . import resolver
from .combinators import (
	ParseError, SemanticFailure, SyntaxFailure,
	any_, cache, each, fail, forward, ignore, many, not_, optional, process,
	regex_token, replace, sequence, set_, string_token, WHITESPACE,
)
from .culture import Culture
from .util import cast_str

logger = logging.getLogger(__name__)

DATE_PART_DELIMITER = regex_token(r"[\s\-.,،/']+", "date part delimiter")
TIME_PART_DELIMITER = string_token(":")
GENERAL_DELIMITER = regex_token(r"([\s,]|at|@|on)+", "general delimiter")
NUMBER_WORDS = r"(one|two|three|four|five|six|seven|eight|nine|ten|eleven|twelve)(?![a-z])"
FORMAT_SPECIFIER = regex_token(re.compile(r"dd?d?d?|MM?M?M?|yy?y?y?|hh?|HH?|mm?|ss?|tt?|zz?z?|f{1,6}"), "format specifier")
FORMAT_SEPARATOR = regex_token(re.compile(r"[^dMyhHmstzf]+"), "format separator")

# Checked in order before the general grammar; the first to consume all input wins
CANONICAL_FORMATS = (
	"\"yyyy-MM-ddTHH:mm:ssZ\"",
	"yyyy-MM-ddTHH:mm:ssZ",
	"yyyy-MM-ddTHH:mm:ssz",
	"yyyy-MM-ddTHH:mm:ss.ffffffz",
	"yyyy-MM-ddTHH:mm:ss.ffffff",
	"yyyy-MM-ddTHH:mm:ss.fff",
	"yyyy-MM-ddTHH:mm:ss",
	"yyyy-MM-ddTHH:mmZ",
	"yyyy-MM-ddTHH:mmz",
	"yyyy-MM-ddTHH:mm",
	"ddd, MMM dd, yyyy H:mm:ss tt",
	"ddd MMM d yyyy HH:mm:ss zzz",
	"MMddyyyy",
	"ddMMyyyy",
	"Mddyyyy",
	"ddMyyyy",
	"Mdyyyy",
	"dMyyyy",
	"yyyy",
	"Mdyy",
	"dMyy",
	"d",
)


class Grammar:
	"""
	Date/time grammar built from parser combinators.

	Rules live in an explicit table (self.rules) addressed by key. Composite rules refer
	to each other through forward() handles into that table, so construction happens in two
	phases: the handles first, then the bodies they point to. Memo tables for cached token
	rules, and compiled format rules, are owned by the grammar instance and live as long
	as it does.

	Args:
		culture (Culture, optional): Locale bundle. Defaults to en-US with month-day-year order.
		clock (callable, optional): Returns the current datetime; defaults to datetime.datetime.now.
	"""

	def __init__(self, culture=None, clock=None):
		self.culture = culture or Culture()
		self.clock = clock or datetime.datetime.now
		self.rules = {}
		self.memo = {}
		self._formats = {}
		self._lock = threading.Lock()
		self._build()

	def __repr__(self):
		return f"{self.__class__.__name__}({self.culture!r})"

	def _cache(self, name, rule):
		return cache(rule, self.memo.setdefault(name, {}))

	def culture_token(self, keys):
		"Alternation over named culture patterns; each yields its own key."
		return any_([replace(regex_token(self.culture.pattern(k), k), k) for k in keys.split()])

	def _build(self):
		g = self.rules
		c = self.culture
		ref = lambda name: forward(g, name)

		# Phase one: handles for the composite rules used before they are defined
		date, time, expression = ref("date"), ref("time"), ref("expression")
		self.start_rule = process(set_([date, time, expression], GENERAL_DELIMITER, WHITESPACE), self._finish)
		self.formats_rule = ref("canonical")

		# Phase two: bodies, leaves first
		time_context = regex_token(c.pattern("timeContext"), "time context")

		# hour, minute, second
		g["h"] = self._cache("h", process(regex_token(r"0[0-9]|1[0-2]|[1-9]", "h"), resolver.hour))
		g["hh"] = self._cache("hh", process(regex_token(r"0[0-9]|1[0-2]", "hh"), resolver.hour))
		g["H"] = self._cache("H", process(regex_token(r"[0-1][0-9]|2[0-3]|[0-9]", "H"), resolver.hour))
		g["HH"] = self._cache("HH", process(regex_token(r"[0-1][0-9]|2[0-3]", "HH"), resolver.hour))
		g["m"] = self._cache("m", process(regex_token(r"[0-5][0-9]|[0-9]", "m"), resolver.minute))
		g["mm"] = self._cache("mm", process(regex_token(r"[0-5][0-9]", "mm"), resolver.minute))
		g["s"] = self._cache("s", process(regex_token(r"[0-5][0-9]|[0-9]", "s"), resolver.second))
		g["ss"] = self._cache("ss", process(regex_token(r"[0-5][0-9]", "ss"), resolver.second))
		for n in range(1, 7):
			g["f" * n] = process(regex_token(r"\d{%d}" % n, "f" * n), resolver.fraction)
		g["hms"] = self._cache("hms", sequence([g["H"], g["m"], g["s"]], TIME_PART_DELIMITER))

		# meridian and timezone
		g["t"] = self._cache("t", process(regex_token(c.pattern("shortMeridian"), "t"), resolver.meridian))
		g["tt"] = self._cache("tt", process(regex_token(c.pattern("longMeridian"), "tt"), resolver.meridian))
		g["z"] = g["zz"] = self._cache("z", process(regex_token(c.pattern("timezoneOffset"), "z"), resolver.timezone))
		g["zzz"] = self._cache("zzz", any_(g["z"], process(regex_token(c.pattern("timezoneName"), "zzz"), self._timezone_name)))
		g["time_suffix"] = each(ignore(WHITESPACE), set_([g["tt"], g["zzz"]]))
		g["time"] = each(optional(ignore(string_token("T"))), g["hms"], g["time_suffix"])

		# days, months, years
		ordinal = optional(regex_token(c.pattern("ordinalSuffix"), "ordinal"))
		g["d"] = self._cache("d", process(each(regex_token(r"[0-2]\d|3[0-1]|\d", "d"), ordinal), resolver.day))
		g["dd"] = self._cache("dd", process(each(regex_token(r"[0-2]\d|3[0-1]", "dd"), ordinal), resolver.day))
		g["ddd"] = g["dddd"] = self._cache("ddd", process(self.culture_token("sun mon tue wed thu fri sat"), resolver.weekday(c)))
		g["M"] = self._cache("M", process(regex_token(r"1[0-2]|0\d|\d", "M"), resolver.month))
		g["MM"] = self._cache("MM", process(regex_token(r"1[0-2]|0\d", "MM"), resolver.month))
		g["MMM"] = g["MMMM"] = self._cache("MMM", process(self.culture_token("jan feb mar apr may jun jul aug sep oct nov dec"), resolver.month_name(c)))
		g["y"] = self._cache("y", process(regex_token(r"\d\d?", "y"), resolver.year))
		g["yy"] = self._cache("yy", process(regex_token(r"\d\d", "yy"), resolver.year))
		g["yyy"] = self._cache("yyy", process(regex_token(r"\d\d?\d?\d?", "yyy"), resolver.year))
		g["yyyy"] = self._cache("yyyy", process(regex_token(r"\d\d\d\d", "yyyy"), resolver.year))

		# a date part must not be the start of a time ("10:30", "10pm")
		g["day"] = each(any_(g["d"], g["dd"]), not_(time_context))
		g["month"] = each(any_(g["M"], g["MMM"]), not_(time_context))
		g["year"] = each(any_(g["yyyy"], g["yy"]), not_(time_context))

		# relative expressions
		g["orientation"] = process(self.culture_token("past future"), resolver.orientation)
		g["operator"] = process(self.culture_token("add subtract"), resolver.operator)
		g["rday"] = process(self.culture_token("yesterday tomorrow today now"), resolver.relative_day)
		g["unit"] = process(self.culture_token(" ".join(resolver.UNITS)), resolver.unit)
		# "3" in "next friday 3:30pm" is an hour, not a value
		g["value"] = each(any_(
			process(regex_token(r"\d\d?(st|nd|rd|th)?", "value"), resolver.value),
			process(regex_token(NUMBER_WORDS, "worded value"), resolver.worded_value),
		), not_(time_context))
		g["expression"] = set_([g["rday"], g["operator"], g["value"], g["unit"], g["orientation"], g["ddd"], g["MMM"]])

		# one rule per date element order; the culture picks which one "date" means
		g["mdy"] = set_([g["ddd"], g["month"], g["day"], g["year"]], DATE_PART_DELIMITER)
		g["ymd"] = set_([g["ddd"], g["year"], g["month"], g["day"]], DATE_PART_DELIMITER)
		g["dmy"] = set_([g["ddd"], g["day"], g["month"], g["year"]], DATE_PART_DELIMITER)
		g["date"] = ref(c.date_element_order)

		# format strings, e.g. "M/d/yyyy", compile to each(field, ignore(separator), ...)
		g["format"] = process(
			many(any_(
				process(FORMAT_SPECIFIER, self._specifier),
				process(FORMAT_SEPARATOR, lambda s: ignore(string_token(s))),
			)),
			lambda rules: process(each(rules), self._finish_exact),
		)
		g["canonical"] = self.formats(CANONICAL_FORMATS)

	def _specifier(self, fmt):
		try:
			return self.rules[fmt]
		except KeyError:
			return SemanticFailure(reason=f"Unknown format specifier {fmt!r}")

	def _timezone_name(self, s):
		if self.culture.timezone(s) is None:
			return SemanticFailure(reason=f"Unknown timezone {s!r}")
		return resolver.timezone(s)

	def _finish_exact(self, values):
		return resolver.resolve_exact(resolver.ParseContext(self.culture, self.clock()), values)

	def _finish(self, values):
		return resolver.resolve(resolver.ParseContext(self.culture, self.clock()), values)

	def compile(self, fmt):
		"""
		Compiles one format string into a rule, caching it by its text.
		Repeated calls with the same format return the identical rule object.
		"""
		try:
			return self._formats[fmt]
		except KeyError:
			pass
		r = self.rules["format"](fmt)
		if not r.ok:
			rule = fail(r if isinstance(r, SemanticFailure) else SemanticFailure(reason=f"Invalid format {fmt!r}"))
		elif r.remainder:
			rule = fail(SemanticFailure(reason=f"Invalid format {fmt!r} at {r.remainder!r}"))
		else:
			rule = r.value
		logger.debug("Compiled format %r", fmt)
		with self._lock:
			return self._formats.setdefault(fmt, rule)

	def formats(self, fx):
		"A rule for one format string, or the ordered alternation of several."
		if isinstance(fx, str):
			return self.compile(fx)
		return any_([self.compile(f) for f in fx])

	def start(self, s):
		"Canonical formats first; the general grammar only if none of them consumes everything."
		r = self.formats_rule(s)
		if r.ok and not r.remainder:
			logger.debug("Parsed %r via canonical format", s)
			return r
		logger.debug("Falling back to general grammar for %r", s)
		return self.start_rule(s)

	def parse_result(self, s):
		"""
		Parses text and returns the raw Match or Failure, for callers that want to know
		where parsing stopped. A match that leaves input unconsumed is a failure.
		"""
		r = self.start(s)
		if r.ok and r.remainder:
			return SyntaxFailure(r.remainder, "Unexpected trailing input")
		return r

	def parse(self, s, strict=False):
		"""
		Converts free-form date/time text into a datetime.

		Args:
			s (str): Text such as "July 8th, 2004, 10:30 PM", "next thursday", "t+3m" or an ISO-8601 string.
			strict (bool, optional): Raise ParseError instead of returning None. Defaults to False.
		Returns:
			datetime.datetime | None: The parsed instant, or None if the whole input could not be parsed.
		Examples:
			>>> Grammar().parse("2004-07-01T22:30:00")
			datetime.datetime(2004, 7, 1, 22, 30)
			>>> Grammar().parse("not a date") is None
			True
		"""
		if isinstance(s, datetime.datetime):
			return s
		if s is None:
			return self._reject("", SyntaxFailure("", "Empty input"), strict)
		text = cast_str(s).strip()
		if not text:
			return self._reject(text, SyntaxFailure("", "Empty input"), strict)
		r = self.parse_result(text)
		if not r.ok:
			return self._reject(text, r, strict)
		return r.value

	def parse_exact(self, s, fx, strict=False):
		"""
		Parses text that must match one of the given format specifiers exactly.

		Format vocabulary: y/yy/yyy/yyyy, M/MM/MMM/MMMM, d/dd/ddd/dddd, h/hh/H/HH, m/mm,
		s/ss, f..ffffff (fractions of a second), t/tt, z/zz/zzz; any other characters are
		literal separators.

		>>> Grammar().parse_exact("10/15/2004", "M/d/yyyy")
		datetime.datetime(2004, 10, 15, 0, 0)
		>>> Grammar().parse_exact("10/15/2004", "d/M/yyyy") is None
		True
		"""
		text = cast_str(s)
		r = self.formats(fx)(text)
		if r.ok and r.remainder:
			r = SyntaxFailure(r.remainder, "Unexpected trailing input")
		if not r.ok:
			return self._reject(text, r, strict)
		return r.value

	def get_parse_function(self, fx):
		"Returns a reusable callable parsing text against the given format(s)."
		rule = self.formats(fx)

		def parse(s):
			r = rule(cast_str(s))
			if not r.ok or r.remainder:
				return None
			return r.value
		return parse

	def _reject(self, text, failure, strict):
		logger.debug("Rejected %r: %s", text, failure.describe(text))
		if strict:
			raise ParseError(text, failure)
		return None
