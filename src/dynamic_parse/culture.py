import datetime
import re

import pytz

from .util import time_parse

TIMEZONES = {}
# Olson names, their last path component, and every abbreviation pytz knows for them
for tz in pytz.all_timezones:
	tzinfo = pytz.timezone(tz)
	TIMEZONES[tz.casefold()] = tzinfo
	if "/" in tz and not tz.startswith("Etc/"):
		TIMEZONES[tz.rsplit("/", 1)[-1].casefold()] = tzinfo
	if hasattr(tzinfo, "_tzinfos"):
		temp = {}
		for k, v in tzinfo._tzinfos.items():
			if isinstance(k, tuple):
				base, offset, name = k
				if name != "LMT" and re.search(r"[A-Za-z]", name):
					temp[name.casefold()] = pytz.FixedOffset(round(base.total_seconds() / 60))
		for tz in temp:
			# "est"/"edt" pairs also answer to the generic "et"
			if "st" in tz and tz.replace("st", "dt") in temp:
				TIMEZONES.setdefault(tz.replace("st", "t"), tzinfo)
		for k, v in temp.items():
			TIMEZONES.setdefault(k, v)
TIMEZONES["utc"] = TIMEZONES["gmt"] = TIMEZONES["z"] = pytz.utc

def retrieve_tz(tz):
	"Gets a timezone from a string, retrying with the last part of the string if the first attempt fails."
	tz = tz.casefold()
	try:
		return TIMEZONES[tz]
	except KeyError:
		if "/" in tz:
			return TIMEZONES.get(tz.rsplit("/", 1)[-1])

def get_offset(tzinfo, dt=None):
	"Gets the total offset of a timezone from UTC, in seconds."
	if dt:
		return tzinfo.utcoffset(dt).total_seconds()
	return datetime.datetime.now(tz=tzinfo).utcoffset().total_seconds()

def get_timezone(tz) -> datetime.tzinfo | None:
	"Gets a timezone from a string or a number of minutes, accepting ± syntax to indicate hours/minutes offsets."
	if isinstance(tz, (int, float)):
		return pytz.FixedOffset(round(tz))
	found = retrieve_tz(tz)
	if found:
		return found
	a = tz
	m = 0
	for op in "+-":
		i = a.find(op)
		if i < 0:
			continue
		try:
			m = time_parse(a[i + 1:], default="h") * (-1 if op == "-" else 1)
		except ValueError:
			return None
		a = a[:i]
		break
	else:
		return None
	base = retrieve_tz(a.strip()) if a.strip() else pytz.utc
	if not base:
		return None
	offset = (get_offset(base) + m) / 60
	return pytz.FixedOffset(round(offset))


class Culture:
	"""
	Locale bundle consulted by the grammar and the resolver: day and month names, meridian
	markers, the token pattern table, timezone abbreviations and ordering preferences.
	Subclass and override the class attributes to support another language.

	:param date_element_order:
		Order of the numeric date parts, one of "mdy", "dmy" or "ymd". Fixed, never
		guessed from the input.
	:param two_digit_year_max:
		Latest year a two-digit year may stand for; "29" is 2029 when this is 2029, and
		"30" is 1930.
	:param first_day_of_week:
		0 for Sunday, 1 for Monday. Decides which week a bare weekday name falls in.
	"""

	NAME = "en-US"
	DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
	ABBREVIATED_DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
	SHORTEST_DAY_NAMES = ("Su", "Mo", "Tu", "We", "Th", "Fr", "Sa")
	MONTH_NAMES = ("January", "February", "March", "April", "May", "June", "July", "August", "September", "October", "November", "December")
	ABBREVIATED_MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
	AM_DESIGNATOR = "AM"
	PM_DESIGNATOR = "PM"
	DATE_ELEMENT_ORDERS = ("mdy", "dmy", "ymd")

	PATTERNS = dict(
		jan=r"jan(uary)?",
		feb=r"feb(ruary)?",
		mar=r"mar(ch)?",
		apr=r"apr(il)?",
		may=r"may",
		jun=r"jun(e)?",
		jul=r"jul(y)?",
		aug=r"aug(ust)?",
		sep=r"sep(t(ember)?)?",
		oct=r"oct(ober)?",
		nov=r"nov(ember)?",
		dec=r"dec(ember)?",

		sun=r"su(n(day)?)?",
		mon=r"mo(n(day)?)?",
		tue=r"tu(e(s(day)?)?)?",
		wed=r"we(d(nesday)?)?",
		thu=r"th(u(r(s(day)?)?)?)?",
		fri=r"fr(i(day)?)?",
		sat=r"sa(t(urday)?)?",

		future=r"next",
		past=r"last|past|prev(ious)?",
		add=r"\+|aft(er)?|from|hence",
		subtract=r"-|bef(ore)?|ago",

		yesterday=r"yes(terday)?",
		today=r"t(od(ay)?)?",
		tomorrow=r"tom(orrow)?",
		now=r"n(ow)?",

		millisecond=r"ms|milli(second)?s?",
		second=r"sec(ond)?s?",
		minute=r"mn|min(ute)?s?",
		hour=r"h(ou)?rs?|h(our)?s?",
		week=r"w(ee)?ks?|w(eek)?s?",
		month=r"m(o(nth)?s?)?",
		day=r"d(ay)?s?",
		year=r"y(ea)?rs?|y(ear)?s?",

		shortMeridian=r"(a|p)(?![a-z])",
		longMeridian=r"(a\.?m?\.?|p\.?m?\.?)(?![a-z])",
		timezoneOffset=r"(gmt|utc)?\s*[+-]\s*(\d\d:?\d\d|\d\d\d?)(?!\d)",
		timezoneName=r"[a-z]{1,5}(?![a-z])",
		ordinalSuffix=r"\s*(st|nd|rd|th)",
		timeContext=r"\s*(:|a(?!u|p)|p)",
	)

	# Offsets in minutes; consulted before the pytz table
	TIMEZONE_TABLE = dict(
		utc=0,
		gmt=0,
		z=0,
		est=-300,
		edt=-240,
		cst=-360,
		cdt=-300,
		mst=-420,
		mdt=-360,
		pst=-480,
		pdt=-420,
	)

	def __init__(self, date_element_order="mdy", two_digit_year_max=2029, first_day_of_week=0):
		if date_element_order not in self.DATE_ELEMENT_ORDERS:
			raise ValueError(f"Unknown date element order {date_element_order!r}; expected one of {self.DATE_ELEMENT_ORDERS}")
		if first_day_of_week not in (0, 1):
			raise ValueError(f"first_day_of_week must be 0 (Sunday) or 1 (Monday), got {first_day_of_week!r}")
		self.date_element_order = date_element_order
		self.two_digit_year_max = two_digit_year_max
		self.first_day_of_week = first_day_of_week
		self._patterns = {k: re.compile(v, re.IGNORECASE) for k, v in self.PATTERNS.items()}
		self._weekdays = self._convert(zip(self.DAY_NAMES, self.ABBREVIATED_DAY_NAMES, self.SHORTEST_DAY_NAMES))
		self._months = self._convert(zip(self.MONTH_NAMES, self.ABBREVIATED_MONTH_NAMES))

	def __repr__(self):
		return f"{self.__class__.__name__}({self.date_element_order!r}, two_digit_year_max={self.two_digit_year_max}, first_day_of_week={self.first_day_of_week})"

	def _convert(self, names):
		dct = {}
		for i, v in enumerate(names):
			for name in v:
				dct[name.casefold()] = i
		return dct

	def pattern(self, key) -> re.Pattern:
		return self._patterns[key]

	def weekday(self, name):
		"Day number (Sunday = 0) for a full, abbreviated or two-letter day name; None if unknown."
		return self._weekdays.get(name.casefold())

	def month(self, name):
		"Month number (January = 1) for a full or abbreviated month name; None if unknown."
		i = self._months.get(name.casefold())
		return None if i is None else i + 1

	def full_year(self, yy) -> int:
		"Expands a two-digit year around two_digit_year_max."
		return yy + (2000 if yy + 2000 <= self.two_digit_year_max else 1900)

	def timezone(self, name) -> datetime.tzinfo | None:
		"Resolves a timezone abbreviation or name; the culture's own table wins over pytz."
		name = name.strip().casefold()
		try:
			minutes = self.TIMEZONE_TABLE[name]
		except KeyError:
			return get_timezone(name) if name else None
		return pytz.utc if not minutes else pytz.FixedOffset(minutes)

	def timezone_offset(self, minutes) -> datetime.tzinfo:
		return pytz.utc if not minutes else pytz.FixedOffset(minutes)


def offset_minutes(s) -> int:
	"Converts '+0500', '-05:00', '-400' or '+05' into a signed number of minutes."
	sign = -1 if "-" in s else 1
	digits = "".join(c for c in s if c.isdigit())
	if len(digits) <= 2:
		hours, minutes = int(digits), 0
	else:
		hours, minutes = int(digits[:-2]), int(digits[-2:])
	return sign * (hours * 60 + minutes)
