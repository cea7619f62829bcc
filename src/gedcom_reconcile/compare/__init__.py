"""
Reconciliation engine: individual and family comparison, mapping
validation and the fixed-point orchestrator.

Import from the submodules (``gedcom_reconcile.compare.orchestrator`` etc.).
"""
