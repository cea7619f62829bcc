from gedcom_reconcile.registry.entities import FamilyRecord, Gender, PersonRecord, TreeRegistry
from gedcom_reconcile.registry.link_entities import link_entities

__all__ = ["FamilyRecord", "Gender", "PersonRecord", "TreeRegistry", "link_entities"]
