"""
Turns the field-setter actions produced by the grammar into a concrete datetime.

Each grammar token yields an action: a closure that writes one field of a ParseContext.
A terminal rule collects them and hands them to resolve_exact (format-driven parsing) or
resolve (the general grammar).
"""

import datetime
import logging
import re

from dateutil.relativedelta import relativedelta

from .combinators import SemanticFailure
from .culture import offset_minutes
from .util import flatten, month_days, remainder, start_of_day, weekday_index

logger = logging.getLogger(__name__)

UNITS = ("millisecond", "second", "minute", "hour", "day", "week", "month", "year")
# Order in which accumulated deltas are applied
ADD_ORDER = ("millisecond", "second", "minute", "hour", "week", "month", "year", "day")
TIME_UNITS = ("hour", "minute", "second")
RELATIVE_DAYS = dict(yesterday=-1, today=0, tomorrow=1, now=0)

ADDERS = dict(
	millisecond=lambda dt, n: dt + datetime.timedelta(milliseconds=n),
	second=lambda dt, n: dt + datetime.timedelta(seconds=n),
	minute=lambda dt, n: dt + datetime.timedelta(minutes=n),
	hour=lambda dt, n: dt + datetime.timedelta(hours=n),
	day=lambda dt, n: dt + datetime.timedelta(days=n),
	week=lambda dt, n: dt + datetime.timedelta(weeks=n),
	month=lambda dt, n: dt + relativedelta(months=n),
	year=lambda dt, n: dt + relativedelta(years=n),
)


class ParseContext:
	"""Mutable accumulator for one resolution. Never shared between calls."""

	__slots__ = (
		"culture", "current",
		"hour", "minute", "second", "microsecond", "meridian", "timezone", "timezone_offset",
		"day", "month", "year", "weekday",
		"unit", "value", "operator", "orient", "now", "deltas",
	)

	def __init__(self, culture, current):
		self.culture = culture
		self.current = current
		for k in self.__slots__[2:]:
			setattr(self, k, None)
		self.now = False
		self.deltas = {}

	def __repr__(self):
		fields = ", ".join(f"{k}={getattr(self, k)!r}" for k in self.__slots__[2:] if getattr(self, k) not in (None, False, {}))
		return f"{self.__class__.__name__}({fields})"

	@property
	def relative_day(self):
		"The day delta; a relative-day keyword and the day unit share it."
		return self.deltas.get("day")

	def apply(self, actions):
		for action in actions:
			action(self)
		return self


# Field-setter actions, one factory per token kind

def hour(s):
	def action(ctx):
		ctx.hour = int(s)
	return action

def minute(s):
	def action(ctx):
		ctx.minute = int(s)
	return action

def second(s):
	def action(ctx):
		ctx.second = int(s)
	return action

def fraction(s):
	"Fractional seconds, any precision up to microseconds."
	n = int(s.ljust(6, "0")[:6])
	def action(ctx):
		ctx.microsecond = n
	return action

def meridian(s):
	def action(ctx):
		ctx.meridian = s[0].lower()
	return action

def timezone(s):
	"Numeric offsets become timezone_offset (minutes); anything else is a name."
	if re.search(r"\d", s):
		minutes = offset_minutes(s)
		if abs(minutes) >= 1440:
			return SemanticFailure(reason=f"{s!r} is not a valid UTC offset")

		def action(ctx):
			ctx.timezone_offset = minutes
	else:
		name = s.strip().casefold()

		def action(ctx):
			ctx.timezone = name
	return action

def day(x):
	digits, _suffix = x
	def action(ctx):
		ctx.day = int(digits)
	return action

def weekday(culture):
	def translate(key):
		index = culture.weekday(key)
		def action(ctx):
			ctx.weekday = index
		return action
	return translate

def month(s):
	def action(ctx):
		ctx.month = int(s)
	return action

def month_name(culture):
	def translate(key):
		index = culture.month(key)
		def action(ctx):
			ctx.month = index
		return action
	return translate

def year(s):
	n = int(s)
	def action(ctx):
		ctx.year = n if len(s) > 2 else ctx.culture.full_year(n)
	return action

def relative_day(key):
	def action(ctx):
		ctx.deltas["day"] = RELATIVE_DAYS[key]
		if key == "now":
			ctx.now = True
	return action

def orientation(key):
	def action(ctx):
		ctx.orient = key
	return action

def operator(key):
	def action(ctx):
		ctx.operator = key
	return action

def unit(key):
	def action(ctx):
		ctx.unit = key
	return action

def value(s):
	n = int(re.sub(r"\D", "", s))
	def action(ctx):
		ctx.value = n
	return action

def worded_value(s):
	import number_parser
	n = int(number_parser.parse(s.casefold()))
	def action(ctx):
		ctx.value = n
	return action


# Shared helpers

def _meridian(ctx):
	if ctx.meridian and ctx.hour:
		if ctx.meridian == "p" and ctx.hour < 12:
			ctx.hour += 12
		elif ctx.meridian == "a" and ctx.hour == 12:
			ctx.hour = 0

def _out_of_range(ctx):
	"Returns a SemanticFailure for the first field outside its range, else None."
	checks = (
		("second", ctx.second, 0, 59),
		("minute", ctx.minute, 0, 59),
		("hour", ctx.hour, 0, 23),
		("month", ctx.month, 1, 12),
		("year", ctx.year, datetime.MINYEAR, datetime.MAXYEAR),
	)
	for name, n, low, high in checks:
		if n is not None and not low <= n <= high:
			return SemanticFailure(reason=f"{n} is not a valid value for {name}")

def _localize(dt, ctx):
	if ctx.timezone:
		tzinfo = ctx.culture.timezone(ctx.timezone)
		if tzinfo is None:
			return SemanticFailure(reason=f"Unknown timezone {ctx.timezone!r}")
	elif ctx.timezone_offset is not None:
		tzinfo = ctx.culture.timezone_offset(ctx.timezone_offset)
	else:
		return dt
	if hasattr(tzinfo, "localize"):
		return tzinfo.localize(dt)
	return dt.replace(tzinfo=tzinfo)

def weekday_in_week(base, index, first_day_of_week=0):
	"The given weekday (Sunday = 0) within the week containing base."
	current = weekday_index(base)
	shift = index - current
	if first_day_of_week == 1 and index == 0 and current != 0:
		shift += 7
	return base + datetime.timedelta(days=shift)

def set_week(base, week):
	"Moves base to the same ISO weekday in the given ISO week of its ISO year."
	iso_year, _week, iso_weekday = base.isocalendar()
	target = datetime.date.fromisocalendar(iso_year, week, iso_weekday)
	return base.replace(year=target.year, month=target.month, day=target.day)

def _advance(base, ctx):
	dt = base
	for u in ADD_ORDER:
		n = ctx.deltas.get(u)
		if n:
			dt = ADDERS[u](dt, n)
	# An explicit time of day still applies to a relative date ("tomorrow at 10pm")
	if ctx.hour is not None:
		dt = dt.replace(hour=ctx.hour, minute=ctx.minute or 0, second=ctx.second or 0, microsecond=0)
	return dt

def _override(base, ctx):
	dt = base
	if ctx.second is not None:
		dt = dt.replace(second=ctx.second)
	if ctx.minute is not None:
		dt = dt.replace(minute=ctx.minute)
	if ctx.hour is not None:
		dt = dt.replace(hour=ctx.hour)
	if ctx.month is not None:
		dt += relativedelta(months=ctx.month - dt.month)
	if ctx.year is not None:
		dt += relativedelta(years=ctx.year - dt.year)
	if ctx.day is not None:
		if not 1 <= ctx.day <= month_days(dt.year, dt.month):
			return SemanticFailure(reason=f"{ctx.day} is not a valid value for day")
		dt = dt.replace(day=ctx.day)
	return dt


# Terminal algorithms

def resolve_exact(ctx, values):
	"""
	Resolution for format-driven parsing: every field comes straight from the input, with
	missing year/month taken from the current date, missing day as 1 and missing time
	fields as 0. An impossible day (e.g. 30 February) fails instead of rolling over.
	"""
	ctx.apply(a for a in flatten(values) if callable(a))
	now = ctx.current
	if (ctx.hour or ctx.minute) and ctx.month is None and not ctx.year and not ctx.day:
		ctx.day = now.day
	if not ctx.year:
		ctx.year = now.year
	if ctx.month is None:
		ctx.month = now.month
	if not ctx.day:
		ctx.day = 1
	ctx.hour = ctx.hour or 0
	ctx.minute = ctx.minute or 0
	ctx.second = ctx.second or 0
	ctx.microsecond = ctx.microsecond or 0
	_meridian(ctx)
	failure = _out_of_range(ctx)
	if failure is not None:
		return failure
	if ctx.day > month_days(ctx.year, ctx.month):
		return SemanticFailure(reason=f"{ctx.day} is not a valid value for days")
	dt = datetime.datetime(ctx.year, ctx.month, ctx.day, ctx.hour, ctx.minute, ctx.second, ctx.microsecond)
	return _localize(dt, ctx)

def resolve(ctx, values):
	"""
	Resolution for the general grammar.

	The steps below run in a fixed order and later steps read what earlier ones wrote,
	so they must not be reordered. Months are 1-based and weekdays count from Sunday = 0.

	Returns:
		datetime.datetime, or a Failure when nothing was recognised or a value is out of
		range.
	"""
	actions = [a for a in flatten(values) if callable(a)]
	if not actions:
		return SemanticFailure(reason="No date or time recognised")
	ctx.apply(actions)
	culture = ctx.culture

	if ctx.now and not ctx.unit and not ctx.operator:
		return _localize(ctx.current, ctx)
	today = ctx.current if ctx.now else start_of_day(ctx.current)

	expression = bool(ctx.relative_day or ctx.orient or ctx.operator)
	orient = -1 if ctx.orient == "past" or ctx.operator == "subtract" else 1

	if not ctx.now and ctx.unit in TIME_UNITS:
		today = today.replace(hour=ctx.current.hour, minute=ctx.current.minute, second=ctx.current.second, microsecond=ctx.current.microsecond)

	# A number taken as a month ("3 days ago" parses "3" as March) is really the value
	if ctx.month is not None and ctx.unit in ("year", "day", "hour", "minute", "second"):
		ctx.value = ctx.month
		ctx.month = None
		expression = True

	# Likewise a number taken as a day of month ("15 days ago")
	if ctx.day is not None and ctx.value is None and ctx.unit and ctx.month is None and ctx.year is None and ctx.weekday is None:
		ctx.value = ctx.day
		ctx.day = None
		expression = True

	if not expression and ctx.weekday is not None and not ctx.day and not ctx.relative_day:
		temp = weekday_in_week(today, ctx.weekday, culture.first_day_of_week)
		ctx.day = temp.day
		if ctx.month is None:
			ctx.month = temp.month
		ctx.year = temp.year

	if expression and ctx.weekday is not None and ctx.unit != "month":
		ctx.unit = "day"
		gap = ctx.weekday - weekday_index(today)
		ctx.deltas["day"] = remainder(gap + orient * 7, 7) if gap else orient * 7

	if ctx.month is not None and ctx.unit == "day" and ctx.operator:
		ctx.value = ctx.month
		ctx.month = None

	if ctx.value is not None and ctx.month is not None and ctx.year is not None:
		ctx.day = ctx.value

	if ctx.month is not None and not ctx.day and ctx.value:
		if not 1 <= ctx.value <= month_days(today.year, today.month):
			return SemanticFailure(reason=f"{ctx.value} is not a valid value for day")
		today = today.replace(day=ctx.value)
		if not expression:
			ctx.day = ctx.value

	# A month name next to an operator or orientation ("next march") is a month delta
	if expression and ctx.month is not None and ctx.unit != "year":
		ctx.unit = "month"
		gap = ctx.month - today.month
		ctx.deltas["month"] = remainder(gap + orient * 12, 12) if gap else orient * 12
		ctx.month = None

	if not ctx.unit:
		ctx.unit = "day"

	delta = ctx.deltas.get(ctx.unit)
	if not ctx.value and ctx.operator and delta:
		ctx.deltas[ctx.unit] = delta + (1 if ctx.operator == "add" else -1)
	elif delta is None or ctx.operator:
		ctx.deltas[ctx.unit] = (ctx.value or 1) * orient

	_meridian(ctx)

	if ctx.weekday is not None and not ctx.day and not ctx.relative_day:
		temp = weekday_in_week(today, ctx.weekday, culture.first_day_of_week)
		ctx.day = temp.day
		if temp.month != today.month:
			ctx.month = temp.month

	if ctx.month is not None and not ctx.day:
		ctx.day = 1

	failure = _out_of_range(ctx)
	if failure is not None:
		return failure

	try:
		if not ctx.orient and not ctx.operator and ctx.unit == "week" and ctx.value and not ctx.day and ctx.month is None:
			return set_week(today, ctx.value)
		if expression:
			dt = _advance(today, ctx)
		else:
			dt = _override(today, ctx)
	except (ValueError, OverflowError) as ex:
		logger.debug("Resolution of %r out of range: %s", ctx, ex)
		return SemanticFailure(reason=str(ex))
	if isinstance(dt, SemanticFailure):
		return dt
	return _localize(dt, ctx)
