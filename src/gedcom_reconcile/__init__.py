"""
gedcom_reconcile: reconcile a source genealogy tree against a destination tree.
"""

__version__ = "0.4.0"
