from gedcom_reconcile.matching.fuzzy_matcher import FuzzyMatcher, MatchingOptions

__all__ = ["FuzzyMatcher", "MatchingOptions"]
