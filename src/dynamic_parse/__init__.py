"""
Flexible date/time parsing.

>>> parse("July 8th, 2004, 10:30 PM")
datetime.datetime(2004, 7, 8, 22, 30)
>>> parse_exact("10/15/2004", "M/d/yyyy")
datetime.datetime(2004, 10, 15, 0, 0)
"""

import threading

from .combinators import Failure, Match, ParseError, SemanticFailure, SyntaxFailure
from .culture import TIMEZONES, Culture, get_timezone, retrieve_tz
from .grammar import CANONICAL_FORMATS, Grammar
from .resolver import ParseContext
from .util import cast_str, month_days, time_parse

__all__ = [
	"parse", "parse_exact", "get_parse_function", "get_grammar",
	"Grammar", "Culture", "ParseContext",
	"Match", "Failure", "SyntaxFailure", "SemanticFailure", "ParseError",
	"TIMEZONES", "get_timezone", "retrieve_tz", "month_days", "cast_str", "time_parse",
	"CANONICAL_FORMATS",
]

_grammar = None
_grammar_lock = threading.Lock()

def get_grammar() -> Grammar:
	"Returns the process-wide default grammar, building it on first use."
	global _grammar
	if _grammar is None:
		with _grammar_lock:
			if _grammar is None:
				_grammar = Grammar()
	return _grammar

def parse(s, strict=False):
	"Parses free-form date/time text; returns None if the whole input is not understood."
	return get_grammar().parse(s, strict=strict)

def parse_exact(s, formats, strict=False):
	"Parses text that must match one of the given format specifiers exactly."
	return get_grammar().parse_exact(s, formats, strict=strict)

def get_parse_function(formats):
	return get_grammar().get_parse_function(formats)
