import datetime
import math


def cast_str(s) -> str:
	if isinstance(s, memoryview):
		s = bytes(s)
	if isinstance(s, bytes):
		s = s.decode("utf-8", "replace")
	return str(s)

def time_parse(ts, default="s"):
	"Converts a time interval represented using days:hours:minutes:seconds, to a value in seconds."
	data = ts.split(":")
	if len(data) >= 5:
		raise TypeError("Too many time arguments.")
	if len(data) >= 4:
		mults = (1, 60, 3600, 86400)
	elif len(data) == 3:
		mults = (1, 60, 3600) if default != "d" else (60, 3600, 86400)
	elif len(data) == 2:
		mults = (1, 60) if default == "s" else (60, 3600) if default in "mh" else (3600, 86400)
	else:
		mults = (1,) if default == "s" else (60,) if default == "m" else (3600,) if default == "h" else (86400,)
	total = sum(float(count) * mult for count, mult in zip(data, reversed(mults[:len(data)])))
	return int(total) if total.is_integer() else total

def month_days(year, month) -> int:
	"Gets the amount of days in a particular Gregorian calendar month."
	if month in (4, 6, 9, 11):
		return 30
	elif month == 2:
		if not year % 400:
			return 29
		elif not year % 100:
			return 28
		elif not year % 4:
			return 29
		return 28
	return 31

def flatten(values):
	"Flattens nested lists of rule values, dropping empty entries."
	out = []
	for v in values:
		if isinstance(v, (list, tuple)):
			out.extend(flatten(v))
		elif v:
			out.append(v)
	return out

def remainder(a, b) -> int:
	"Truncated remainder; the sign follows the dividend (unlike the % operator)."
	return int(math.fmod(a, b))

def start_of_day(dt) -> datetime.datetime:
	return dt.replace(hour=0, minute=0, second=0, microsecond=0)

def weekday_index(dt) -> int:
	"Day of week counted from Sunday = 0."
	return (dt.weekday() + 1) % 7
