from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from gedcom_reconcile.dates.normalizer import DateInfo
from gedcom_reconcile.registry.entities import PersonRecord


# -----------------------------
# Match methods and confidence
# -----------------------------

class MatchMethod(str, Enum):
    RFN = "RFN"
    FUZZY = "Fuzzy"
    FAMILY_SINGLE_CHILD = "Family_SingleChild"
    FAMILY_FUZZY_CHILD = "Family_FuzzyChild"
    FAMILY_SPOUSE = "Family_Spouse"
    SIBLING_TRANSITIVE = "Sibling_Transitive"
    EXISTING_MAPPING = "ExistingMapping"
    AMBIGUOUS_RESOLVED_BY_FAMILY = "AmbiguousResolvedByFamily"


_FIXED_CONFIDENCE: Dict[MatchMethod, float] = {
    MatchMethod.RFN: 1.0,
    MatchMethod.EXISTING_MAPPING: 1.0,
    MatchMethod.FAMILY_SINGLE_CHILD: 0.85,
    MatchMethod.FAMILY_FUZZY_CHILD: 0.70,
    MatchMethod.SIBLING_TRANSITIVE: 0.65,
    MatchMethod.FAMILY_SPOUSE: 0.50,
    MatchMethod.AMBIGUOUS_RESOLVED_BY_FAMILY: 0.50,
}


def calculate_confidence(score: float, method: MatchMethod) -> float:
    """Advisory trust in [0, 1] for an automatic mapping."""
    if method is MatchMethod.FUZZY:
        return max(0.0, min(score / 100.0, 1.0))
    return _FIXED_CONFIDENCE[method]


# -----------------------------
# Pairwise comparison output
# -----------------------------

@dataclass(slots=True)
class MatchReason:
    field: str
    points: float
    details: str


@dataclass(slots=True)
class MatchResult:
    source_id: str
    target_id: str
    score: float
    reasons: List[MatchReason] = field(default_factory=list)
    method: MatchMethod = MatchMethod.FUZZY
    is_ambiguous: bool = False
    tied_candidates: List["MatchCandidate"] = field(default_factory=list)


@dataclass(slots=True)
class MatchCandidate:
    destination_id: str
    score: float
    summary: str = ""
    reasons: List[MatchReason] = field(default_factory=list)


# -----------------------------
# Field diffs
# -----------------------------

class FieldAction(str, Enum):
    ADD = "add"
    UPDATE = "update"
    ADD_PHOTO = "add_photo"
    UPDATE_PHOTO = "update_photo"


@dataclass(slots=True)
class FieldDiff:
    field_name: str
    source_value: Optional[str]
    destination_value: Optional[str]
    action: FieldAction
    photo_url: Optional[str] = None
    photo_similarity: Optional[float] = None


# -----------------------------
# Person mapping
# -----------------------------

@dataclass(slots=True)
class MappingEntry:
    source_id: str
    destination_id: str
    method: MatchMethod
    score: float = 100.0
    iteration: int = 0

    @property
    def confidence(self) -> float:
        return calculate_confidence(self.score, self.method)


class PersonMapping:
    """
    Partial injective map source id -> destination id, with provenance.

    ``add`` refuses an entry whose source or destination is already taken.
    Validation code that must see non-injective input works on plain dicts.
    """

    def __init__(self, entries: Iterable[MappingEntry] = ()):
        self._entries: Dict[str, MappingEntry] = {}
        self._reverse: Dict[str, str] = {}
        for entry in entries:
            self.add(entry)

    @classmethod
    def from_dict(
        cls,
        mapping: Mapping[str, str],
        method: MatchMethod = MatchMethod.EXISTING_MAPPING,
    ) -> "PersonMapping":
        return cls(MappingEntry(s, d, method) for s, d in mapping.items())

    def can_add(self, source_id: str, destination_id: str) -> bool:
        return source_id not in self._entries and destination_id not in self._reverse

    def add(self, entry: MappingEntry) -> bool:
        if not self.can_add(entry.source_id, entry.destination_id):
            return False
        self._entries[entry.source_id] = entry
        self._reverse[entry.destination_id] = entry.source_id
        return True

    def get(self, source_id: str) -> Optional[str]:
        entry = self._entries.get(source_id)
        return entry.destination_id if entry else None

    def entry(self, source_id: str) -> Optional[MappingEntry]:
        return self._entries.get(source_id)

    def is_destination_claimed(self, destination_id: str) -> bool:
        return destination_id in self._reverse

    def entries(self) -> List[MappingEntry]:
        return list(self._entries.values())

    def as_dict(self) -> Dict[str, str]:
        return {s: e.destination_id for s, e in self._entries.items()}

    def copy(self) -> "PersonMapping":
        clone = PersonMapping()
        clone._entries = dict(self._entries)
        clone._reverse = dict(self._reverse)
        return clone

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"PersonMapping({self.as_dict()!r})"


# -----------------------------
# Individual comparison
# -----------------------------

@dataclass(slots=True)
class MatchedNode:
    source_id: str
    destination_id: str
    score: float
    method: MatchMethod
    summary: str = ""

    @property
    def confidence(self) -> float:
        return calculate_confidence(self.score, self.method)


@dataclass(slots=True)
class NodeToUpdate:
    source_id: str
    destination_id: str
    score: float
    method: MatchMethod
    field_diffs: List[FieldDiff] = field(default_factory=list)
    summary: str = ""

    @property
    def confidence(self) -> float:
        return calculate_confidence(self.score, self.method)


@dataclass(slots=True)
class NodeToAdd:
    source_id: str
    person: PersonRecord
    summary: str = ""
    # Filled by compare.placement; None until placed
    related_to_node_id: Optional[str] = None
    relation_type: Optional[str] = None
    depth_from_existing: Optional[int] = None


@dataclass(slots=True)
class NodeToDelete:
    destination_id: str
    summary: str = ""


@dataclass(slots=True)
class AmbiguousMatch:
    source_id: str
    candidates: List[MatchCandidate]
    summary: str = ""


@dataclass(slots=True)
class IndividualCompareResult:
    matched_nodes: List[MatchedNode] = field(default_factory=list)
    nodes_to_update: List[NodeToUpdate] = field(default_factory=list)
    nodes_to_add: List[NodeToAdd] = field(default_factory=list)
    nodes_to_delete: List[NodeToDelete] = field(default_factory=list)
    ambiguous_matches: List[AmbiguousMatch] = field(default_factory=list)

    def resolved_entries(self, iteration: int = 0) -> List[MappingEntry]:
        out = [MappingEntry(n.source_id, n.destination_id, n.method, n.score, iteration)
               for n in self.matched_nodes]
        out.extend(MappingEntry(n.source_id, n.destination_id, n.method, n.score, iteration)
                   for n in self.nodes_to_update)
        return out

    def mapping(self) -> Dict[str, str]:
        return {e.source_id: e.destination_id for e in self.resolved_entries()}


# -----------------------------
# Family comparison
# -----------------------------

@dataclass(slots=True)
class FamilyMemberRef:
    source_id: str
    destination_id: Optional[str] = None


@dataclass(slots=True)
class MatchedFamily:
    source_family_id: str
    destination_family_id: str
    match_pass: str = "exact"


@dataclass(slots=True)
class FamilyToUpdate:
    source_family_id: str
    destination_family_id: str
    missing_children: List[FamilyMemberRef] = field(default_factory=list)
    field_diffs: List[FieldDiff] = field(default_factory=list)
    match_pass: str = "exact"


@dataclass(slots=True)
class FamilyToAdd:
    source_family_id: str
    husband: Optional[FamilyMemberRef] = None
    wife: Optional[FamilyMemberRef] = None
    children: List[FamilyMemberRef] = field(default_factory=list)
    marriage_date: Optional[DateInfo] = None
    marriage_place: Optional[str] = None


@dataclass(slots=True)
class FamilyToDelete:
    destination_family_id: str


@dataclass(slots=True)
class FamilyCompareResult:
    matched_families: List[MatchedFamily] = field(default_factory=list)
    families_to_update: List[FamilyToUpdate] = field(default_factory=list)
    families_to_add: List[FamilyToAdd] = field(default_factory=list)
    families_to_delete: List[FamilyToDelete] = field(default_factory=list)
    new_person_mappings: Dict[str, MappingEntry] = field(default_factory=dict)


# -----------------------------
# Validation
# -----------------------------

class IssueType(str, Enum):
    DUPLICATE_MAPPING = "DuplicateMapping"
    GENDER_MISMATCH = "GenderMismatch"
    DATE_CONTRADICTION = "DateContradiction"
    GENERATIONAL_INCONSISTENCY = "GenerationalInconsistency"


class Severity(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


@dataclass(slots=True)
class MappingIssue:
    source_id: str
    destination_id: str
    issue_type: IssueType
    severity: Severity
    description: str


@dataclass(slots=True)
class ValidationResult:
    issues: List[MappingIssue] = field(default_factory=list)

    def _count(self, severity: Severity) -> int:
        return sum(1 for i in self.issues if i.severity is severity)

    @property
    def high_severity_count(self) -> int:
        return self._count(Severity.HIGH)

    @property
    def medium_severity_count(self) -> int:
        return self._count(Severity.MEDIUM)

    @property
    def low_severity_count(self) -> int:
        return self._count(Severity.LOW)

    @property
    def is_valid(self) -> bool:
        return self.high_severity_count == 0

    @property
    def high_severity_source_ids(self) -> List[str]:
        seen: List[str] = []
        for issue in self.issues:
            if issue.severity is Severity.HIGH and issue.source_id not in seen:
                seen.append(issue.source_id)
        return seen


# -----------------------------
# Orchestration
# -----------------------------

@dataclass(slots=True)
class CompareOptions:
    anchor_source_id: str
    anchor_destination_id: str
    match_threshold: float = 70
    new_node_depth: int = 5
    include_delete_suggestions: bool = False
    require_unique_match: bool = True
    validate_mappings: bool = False

    @classmethod
    def from_config(cls, cfg: Any, anchor_source_id: str, anchor_destination_id: str, **overrides: Any) -> "CompareOptions":
        section = dict(getattr(cfg, "compare", {}) or {})
        values = {
            "match_threshold": section.get("match_threshold", 70),
            "new_node_depth": section.get("new_node_depth", 5),
            "include_delete_suggestions": section.get("include_delete_suggestions", False),
            "require_unique_match": section.get("require_unique_match", True),
            "validate_mappings": section.get("validate_mappings", False),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(anchor_source_id=anchor_source_id, anchor_destination_id=anchor_destination_id, **values)


@dataclass(slots=True)
class AnchorInfo:
    source_id: str
    destination_id: str
    source_summary: str = ""
    destination_summary: str = ""


@dataclass(slots=True)
class CompareStatistics:
    source_persons: int = 0
    destination_persons: int = 0
    matched: int = 0
    to_update: int = 0
    to_add: int = 0
    to_delete: int = 0
    ambiguous: int = 0
    source_families: int = 0
    destination_families: int = 0
    families_matched: int = 0
    families_to_update: int = 0
    families_to_add: int = 0
    families_to_delete: int = 0
    mapped_persons: int = 0


@dataclass(slots=True)
class IterationResult:
    iteration: int
    individuals: IndividualCompareResult
    families: FamilyCompareResult
    statistics: CompareStatistics
    new_mappings_count: int


@dataclass(slots=True)
class CompareResult:
    anchors: AnchorInfo
    options: CompareOptions
    iterations: List[IterationResult]
    individuals: IndividualCompareResult
    families: FamilyCompareResult
    statistics: CompareStatistics
    mapping: List[MappingEntry] = field(default_factory=list)
    converged: bool = True
    validation: Optional[ValidationResult] = None
    rolled_back: List[str] = field(default_factory=list)
