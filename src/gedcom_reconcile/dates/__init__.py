from gedcom_reconcile.dates.normalizer import DateInfo, DateModifier, DatePrecision, parse_date

__all__ = ["DateInfo", "DateModifier", "DatePrecision", "parse_date"]
