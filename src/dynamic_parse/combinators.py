"""
Parser combinators over plain strings.

A rule is a callable taking the remaining input and returning either a Match (value,
remainder) or a Failure. Failures are ordinary return values: alternation, optional,
not, many and until inspect them, nothing here raises to signal "no match".
"""

import logging
import re
import typing

logger = logging.getLogger(__name__)

MAX_SET_RULES = 8
MAX_SET_STEPS = 10000
CACHE_LIMIT = 4096


class Match(typing.NamedTuple):
	value: typing.Any
	remainder: str
	ok = True


class Failure:
	"A rule did not match; carries the offending suffix of the input."

	__slots__ = ("remainder", "reason")
	ok = False

	def __init__(self, remainder=None, reason=None):
		self.remainder = remainder
		self.reason = reason

	def __bool__(self):
		return False

	def __repr__(self):
		return self.__class__.__name__ + f"({self.remainder!r}, {self.reason!r})"

	def at(self, remainder):
		"Returns a copy of this failure positioned at the given remainder."
		return self.__class__(remainder, self.reason)

	def offset(self, text) -> int:
		"Index into text where the failure occurred."
		if self.remainder is None:
			return 0
		return len(text) - len(self.remainder)

	def describe(self, text) -> str:
		s = self.remainder or ""
		message = f"Parse error at {s[:10]!r} (offset {self.offset(text)})"
		if self.reason:
			message += f": {self.reason}"
		return message


class SyntaxFailure(Failure):
	"No rule matched at some input position."
	__slots__ = ()


class SemanticFailure(Failure):
	"Input was well formed but a value was out of range, or a format specifier was unknown."
	__slots__ = ()


class ParseError(ValueError):
	"Raised by strict parsing entry points when a failure reaches the caller."

	def __init__(self, text, failure):
		super().__init__(failure.describe(text))
		self.text = text
		self.failure = failure


class Rule:
	"A named parsing function."

	__slots__ = ("func", "name")

	def __init__(self, func, name=None):
		self.func = func
		self.name = name or getattr(func, "__name__", "rule")

	def __call__(self, s):
		return self.func(s)

	def __repr__(self):
		return f"<Rule {self.name}>"


def _vector(rules):
	"Accepts either varargs or a single list of rules."
	if len(rules) == 1 and isinstance(rules[0], (list, tuple)):
		rules = rules[0]
	return tuple(r for r in rules if r is not None)

def _compile(pattern):
	if isinstance(pattern, re.Pattern):
		return pattern
	return re.compile(pattern, re.IGNORECASE)


# Tokenizers

def regex_token(pattern, name=None):
	"Matches the pattern at the start of the input and consumes it."
	rx = _compile(pattern)

	def parse(s):
		m = rx.match(s)
		if m:
			return Match(m.group(), s[m.end():])
		return SyntaxFailure(s)
	return Rule(parse, name or rx.pattern)

def token(pattern, name=None):
	"Whitespace-eating token."
	rx = _compile(pattern)
	return regex_token(re.compile(r"\s*(?:" + rx.pattern + r")\s*", rx.flags), name)

def string_token(literal, name=None):
	"Matches a literal string exactly (case-sensitive)."
	return regex_token(re.compile(re.escape(literal)), name or repr(literal))

def fail(failure):
	"A rule that always fails with the given failure."
	return Rule(lambda s: failure.at(s), "fail")


# Atomic operators

def until(terminator, step=None):
	"""
	Collects `step` matches (default: single characters) until `terminator` would match.
	The terminator itself is never consumed. Never fails.
	"""
	step = step or regex_token(re.compile(r".", re.DOTALL), "char")

	def parse(s):
		collected = []
		while s:
			if terminator(s).ok:
				break
			r = step(s)
			if not r.ok or r.remainder == s:
				break
			collected.append(r.value)
			s = r.remainder
		return Match(collected, s)
	return Rule(parse, "until")

def many(rule):
	"Zero or more greedy repetitions."
	def parse(s):
		values = []
		while s:
			r = rule(s)
			if not r.ok:
				break
			values.append(r.value)
			if r.remainder == s:
				break
			s = r.remainder
		return Match(values, s)
	return Rule(parse, f"many({rule.name})")

def optional(rule):
	def parse(s):
		r = rule(s)
		if r.ok:
			return r
		return Match(None, s)
	return Rule(parse, f"optional({rule.name})")

def not_(rule):
	"Succeeds without consuming anything iff the rule fails."
	def parse(s):
		if rule(s).ok:
			return SyntaxFailure(s)
		return Match(None, s)
	return Rule(parse, f"not({rule.name})")

def ignore(rule):
	"Matches the rule but throws away its value."
	def parse(s):
		r = rule(s)
		if not r.ok:
			return r
		return Match(None, r.remainder)
	return Rule(parse, f"ignore({rule.name})")

def cache(rule, table=None):
	"""
	Memoizes a rule by the exact input it is given.

	The table belongs to whoever builds the rule (normally a Grammar) and lives as long
	as it does. Entries are immutable once written; concurrent writers for the same key
	compute the same result, so whichever lands first is kept.
	"""
	table = {} if table is None else table

	def parse(s):
		try:
			return table[s]
		except KeyError:
			pass
		r = rule(s)
		if len(table) < CACHE_LIMIT:
			r = table.setdefault(s, r)
		return r
	return Rule(parse, getattr(rule, "name", getattr(rule, "__name__", "cache")))


# Vector operators

def any_(*rules):
	"Ordered alternation; the first rule to succeed wins."
	rules = _vector(rules)

	def parse(s):
		for rule in rules:
			r = rule(s)
			if r.ok:
				return r
		return SyntaxFailure(s)
	return Rule(parse, "any(" + ", ".join(r.name for r in rules) + ")")

def each(*rules):
	"Ordered concatenation; fails as a whole if any member fails."
	rules = _vector(rules)

	def parse(s):
		values = []
		rest = s
		for rule in rules:
			r = rule(rest)
			if not r.ok:
				return SyntaxFailure(s)
			values.append(r.value)
			rest = r.remainder
		return Match(values, rest)
	return Rule(parse, "each(" + ", ".join(r.name for r in rules) + ")")

def all_(*rules):
	"Concatenation where every member is optional."
	return each(*(optional(r) for r in _vector(rules)))


# Delimited operators

WHITESPACE = regex_token(r"\s*", "whitespace")

def sequence(rules, delimiter=None, closer=None):
	"""
	Like each, with a delimiter between members and an optional closer after the last.

	The first member is required. Later members may be left off the end, but a delimiter
	that was consumed must be followed by its member: "22:30" satisfies an hour:minute:second
	sequence while "22:" does not.
	"""
	rules = _vector(rules)
	delimiter = delimiter or WHITESPACE
	if len(rules) == 1:
		return rules[0]

	def parse(s):
		values = []
		rest = s
		for i, rule in enumerate(rules):
			if i:
				q = delimiter(rest)
				if not q.ok:
					break
				r = rule(q.remainder)
				if not r.ok:
					return SyntaxFailure(q.remainder)
			else:
				r = rule(rest)
				if not r.ok:
					return SyntaxFailure(rest)
			values.append(r.value)
			rest = r.remainder
		if closer:
			q = closer(rest)
			if not q.ok:
				return SyntaxFailure(rest)
			rest = q.remainder
		return Match(values, rest)
	return Rule(parse, "sequence(" + ", ".join(r.name for r in rules) + ")")

def between(opener, rule, closer=None):
	"Matches rule surrounded by opener and closer, keeping only the inner value."
	closer = closer or opener
	inner = each(ignore(opener), rule, ignore(closer))

	def parse(s):
		r = inner(s)
		if not r.ok:
			return r
		return Match(r.value[1], r.remainder)
	return Rule(parse, f"between({rule.name})")

def set_(rules, delimiter=None, closer=None):
	"""
	Order-independent match over a set of rules, resolving ambiguity by best match.

	Every rule is tried as the first element; the rest of the input is then matched
	recursively against the remaining rules. The candidate that leaves the shortest
	remainder wins, and on a tie the earlier rule wins. A set never fails for lack of
	a match: it returns an empty value list and the untouched input. Only a missing
	closer after a non-empty match is a failure.

	The search is combinatorial in len(rules), so it is bounded twice: at most
	MAX_SET_RULES rules per set, and MAX_SET_STEPS rule attempts per invocation. When the
	step budget runs out the best candidate found so far is returned.
	"""
	rules = _vector(rules)
	if len(rules) > MAX_SET_RULES:
		raise ValueError(f"set_ accepts at most {MAX_SET_RULES} rules, got {len(rules)}")
	delimiter = delimiter or WHITESPACE

	def parse(s):
		budget = [MAX_SET_STEPS]
		best = _set_search(rules, delimiter, s, budget)
		if budget[0] <= 0:
			logger.warning("set search budget exhausted on %r; keeping best partial match", s[:40])
		if not best.value:
			return best
		if closer:
			q = closer(best.remainder)
			if not q.ok:
				return SyntaxFailure(best.remainder)
			best = Match(best.value, q.remainder)
		return best
	return Rule(parse, "set(" + ", ".join(r.name for r in rules) + ")")

def _set_search(rules, delimiter, s, budget):
	best = Match([], s)
	for i, rule in enumerate(rules):
		if budget[0] <= 0:
			break
		budget[0] -= 1
		r = rule(s)
		if not r.ok:
			continue
		values, rest = [r.value], r.remainder
		# A single remaining rule, no input left, no delimiter, or a delimiter that eats
		# the rest of the input all mean this element is the last one.
		last = len(rules) == 1 or not rest
		if not last:
			q = delimiter(rest)
			last = not q.ok or not q.remainder
		if not last:
			others = rules[:i] + rules[i + 1:]
			p = _set_search(others, delimiter, q.remainder, budget)
			if p.value:
				values += p.value
				rest = p.remainder
		if len(rest) < len(best.remainder):
			best = Match(values, rest)
		if not best.remainder:
			break
	return best

def forward(table, name):
	"Late-bound reference to table[name], so rules can refer to rules defined after them."
	def parse(s):
		return table[name](s)
	return Rule(parse, name)


# Translation operators

def replace(rule, value):
	def parse(s):
		r = rule(s)
		if not r.ok:
			return r
		return Match(value, r.remainder)
	return Rule(parse, rule.name)

def process(rule, func):
	"""
	Maps a matched value through func. If func returns a Failure (e.g. a value outside
	its range), the whole rule fails at this position.
	"""
	def parse(s):
		r = rule(s)
		if not r.ok:
			return r
		value = func(r.value)
		if isinstance(value, Failure):
			return value.at(s)
		return Match(value, r.remainder)
	return Rule(parse, rule.name)

def min_(count, rule):
	"Fails unless the rule produced at least `count` values."
	def parse(s):
		r = rule(s)
		if r.ok and len(r.value) < count:
			return SyntaxFailure(s)
		return r
	return Rule(parse, f"min({count}, {rule.name})")
