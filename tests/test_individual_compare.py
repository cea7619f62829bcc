from factories import family, person, tree

from gedcom_reconcile.compare.field_differ import FieldDiffer
from gedcom_reconcile.compare.individual_compare import IndividualComparator, build_rfn_index, mark_ambiguous
from gedcom_reconcile.compare.models import CompareOptions, MappingEntry, MatchMethod, MatchResult, PersonMapping
from gedcom_reconcile.matching.fuzzy_matcher import FuzzyMatcher


def _comparator():
    return IndividualComparator(FuzzyMatcher(), FieldDiffer())


def _persons(*records):
    return {p.id: p for p in records}


def _options(**kw):
    return CompareOptions("S0", "D0", **kw)


def test_rfn_match_wins_regardless_of_names():
    src = _persons(person("S1", "Ivan", "Petrov", profile_id="geni:6000000012345"))
    dst = _persons(
        person("D1", "John", "Smith", profile_id="https://www.geni.com/people/John-Smith/6000000012345"),
    )

    result = _comparator().compare_individuals(src, dst, _options())

    node = result.matched_nodes[0]
    assert (node.source_id, node.destination_id) == ("S1", "D1")
    assert node.method is MatchMethod.RFN
    assert node.score == 100.0
    assert node.confidence == 1.0


def test_rfn_matches_destination_record_id():
    index = build_rfn_index(_persons(person("@I6000000012345@", "Ivan")))
    assert index == {"6000000012345": "@I6000000012345@"}


def test_existing_mapping_short_circuits_and_keeps_method():
    src = _persons(person("S1", "Ivan", "Petrov"))
    dst = _persons(person("D1", "Olga", "Smirnova"), person("D2", "Ivan", "Petrov"))
    existing = PersonMapping([MappingEntry("S1", "D1", MatchMethod.FAMILY_SPOUSE, 40.0)])

    result = _comparator().compare_individuals(src, dst, _options(), existing)

    resolved = result.resolved_entries()
    assert len(resolved) == 1
    assert resolved[0].destination_id == "D1"
    assert resolved[0].method is MatchMethod.FAMILY_SPOUSE


def test_plain_dict_existing_matches():
    src = _persons(person("S1", "Ivan"))
    dst = _persons(person("D1", "Olga"))

    result = _comparator().compare_individuals(src, dst, _options(), {"S1": "D1"})

    assert result.mapping() == {"S1": "D1"}
    assert result.matched_nodes[0].method is MatchMethod.EXISTING_MAPPING


def test_fuzzy_match_with_field_diffs_is_an_update():
    src = _persons(person("S1", "Ivan", "Petrov", birth="1 JAN 1885", place="Tver"))
    dst = _persons(person("D1", "Ivan", "Petrov", birth="1885", place="Tver"))

    result = _comparator().compare_individuals(src, dst, _options())

    assert not result.matched_nodes
    node = result.nodes_to_update[0]
    assert node.method is MatchMethod.FUZZY
    assert node.score == 90.0
    assert node.confidence == 0.9
    assert [d.field_name for d in node.field_diffs] == ["BirthDate"]


def test_below_threshold_becomes_add():
    src = _persons(person("S1", "Ivan", "Petrov", birth="1885"))
    dst = _persons(person("D1", "Ivan", "Petrov", birth="1885"))

    result = _comparator().compare_individuals(src, dst, _options(match_threshold=80))

    assert [n.source_id for n in result.nodes_to_add] == ["S1"]
    assert result.nodes_to_add[0].related_to_node_id is None


def test_gender_mismatch_never_matches():
    src = _persons(person("S1", "Ivan", "Petrov", gender="M", birth="1885"))
    dst = _persons(person("D1", "Ivan", "Petrov", gender="F", birth="1885"))

    result = _comparator().compare_individuals(src, dst, _options(match_threshold=60))

    assert result.mapping() == {}
    assert len(result.nodes_to_add) == 1


def test_destination_claimed_once_by_best_score():
    src = _persons(
        person("S2", "Ivan", "Petrov", birth="1886"),
        person("S1", "Ivan", "Petrov", birth="1885", place="Tver"),
    )
    dst = _persons(person("D1", "Ivan", "Petrov", birth="1885", place="Tver"))

    result = _comparator().compare_individuals(src, dst, _options())

    assert result.mapping() == {"S1": "D1"}
    assert [n.source_id for n in result.nodes_to_add] == ["S2"]


def test_loser_takes_its_next_candidate():
    src = _persons(
        person("S1", "Ivan", "Petrov", birth="1885", place="Tver"),
        person("S2", "Ivan", "Petrov", birth="1886", place="Tver"),
    )
    dst = _persons(
        person("D1", "Ivan", "Petrov", birth="1885", place="Tver"),
        person("D2", "Ivan", "Petrov", birth="1887", place="Tver"),
    )

    result = _comparator().compare_individuals(src, dst, _options())

    assert result.mapping() == {"S1": "D1", "S2": "D2"}


def test_tie_is_ambiguous():
    src = _persons(person("S1", "Ivan", "Petrov", birth="1885"))
    dst = _persons(
        person("D1", "Ivan", "Petrov", birth="1885"),
        person("D2", "Ivan", "Petrov", birth="1885"),
    )

    result = _comparator().compare_individuals(src, dst, _options())

    assert result.mapping() == {}
    assert not result.nodes_to_add
    amb = result.ambiguous_matches[0]
    assert amb.source_id == "S1"
    assert [c.destination_id for c in amb.candidates] == ["D1", "D2"]
    assert all(c.score == 75.0 for c in amb.candidates)


def test_tie_accepted_when_unique_match_not_required():
    src = _persons(person("S1", "Ivan", "Petrov", birth="1885"))
    dst = _persons(
        person("D1", "Ivan", "Petrov", birth="1885"),
        person("D2", "Ivan", "Petrov", birth="1885"),
    )

    result = _comparator().compare_individuals(src, dst, _options(require_unique_match=False))

    assert result.mapping() == {"S1": "D1"}
    assert not result.ambiguous_matches


def test_tie_resolved_by_family_context():
    source = tree(
        [person("SF", "Pyotr", "Petrov", gender="M"), person("S1", "Ivan", "Petrov", birth="1885")],
        [family("F1", husband="SF", children=["S1"])],
    )
    dest = tree(
        [
            person("DF", "Pyotr", "Petrov", gender="M"),
            person("D1", "Ivan", "Petrov", birth="1885"),
            person("D2", "Ivan", "Petrov", birth="1885"),
        ],
        [family("G1", husband="DF", children=["D2"])],
    )

    result = _comparator().compare_individuals(
        source.persons, dest.persons, _options(), {"SF": "DF"}
    )

    entry = next(e for e in result.resolved_entries() if e.source_id == "S1")
    assert entry.destination_id == "D2"
    assert entry.method is MatchMethod.AMBIGUOUS_RESOLVED_BY_FAMILY
    assert entry.confidence == 0.5


def test_delete_suggestions_skip_claimed_and_ambiguous():
    src = _persons(
        person("S1", "Ivan", "Petrov", birth="1885"),
        person("S2", "Anna", "Smirnova", birth="1890", place="Tver"),
    )
    dst = _persons(
        person("D1", "Ivan", "Petrov", birth="1885"),
        person("D2", "Ivan", "Petrov", birth="1885"),
        person("D3", "Anna", "Smirnova", birth="1890", place="Tver"),
        person("D4", "Olga", "Ivanova", birth="1700"),
    )

    with_deletes = _comparator().compare_individuals(src, dst, _options(include_delete_suggestions=True))
    without = _comparator().compare_individuals(src, dst, _options())

    assert [n.destination_id for n in with_deletes.nodes_to_delete] == ["D4"]
    assert without.nodes_to_delete == []


def test_records_are_not_mutated():
    src = _persons(person("S1", "Ivan", "Petrov", birth="1 JAN 1885"))
    dst = _persons(person("D1", "Ivan", "Petrov", birth="1885"))
    before = dict(dst)

    _comparator().compare_individuals(src, dst, _options())

    assert dst == before
    assert dst["D1"].birth_date.day is None


def test_report_only_pass_makes_no_new_matches():
    src = _persons(person("S1", "Ivan", "Petrov", birth="1885"), person("S2", "Maria", "Petrova", birth="1887"))
    dst = _persons(person("D1", "Ivan", "Petrov", birth="1885"), person("D2", "Maria", "Petrova", birth="1887"))

    result = _comparator().compare_individuals(src, dst, _options(), {"S1": "D1"}, match_unmapped=False)

    assert result.mapping() == {"S1": "D1"}
    assert [n.source_id for n in result.nodes_to_add] == ["S2"]
    assert result.ambiguous_matches == []


def test_mark_ambiguous_keeps_the_tied_set():
    dst = _persons(person("D1", "Ivan", "Petrov", birth="1885"), person("D2", "Ivan", "Petrov", birth="1885"))
    tied = [MatchResult("S1", "D1", 75.0), MatchResult("S1", "D2", 75.0)]

    top = mark_ambiguous(tied[0], tied, dst)

    assert top.is_ambiguous
    assert top.target_id == "D1"
    assert [c.destination_id for c in top.tied_candidates] == ["D1", "D2"]
    assert top.tied_candidates[1].summary == "Ivan Petrov (b. 1885)"
    assert not tied[0].is_ambiguous
