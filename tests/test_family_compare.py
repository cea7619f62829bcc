from factories import family, person

from gedcom_reconcile.compare.family_compare import FamilyComparator, build_signature
from gedcom_reconcile.compare.models import (
    CompareOptions,
    FieldAction,
    IndividualCompareResult,
    MatchedNode,
    MatchMethod,
)
from gedcom_reconcile.matching.fuzzy_matcher import FuzzyMatcher


def _individuals(mapping):
    result = IndividualCompareResult()
    for source_id, dest_id in mapping.items():
        result.matched_nodes.append(MatchedNode(source_id, dest_id, 100.0, MatchMethod.EXISTING_MAPPING))
    return result


def _families(*records):
    return {f.id: f for f in records}


def _persons(*records):
    return {p.id: p for p in records}


def _options(**kw):
    return CompareOptions("S0", "D0", **kw)


def test_children_matched_with_strict_threshold_when_counts_differ():
    src_persons = _persons(
        person("SH", "Pyotr", "Petrov", gender="M"),
        person("SW", "Maria", "Petrova", gender="F"),
        person("SC1", "Anna", "Petrova", gender="F", birth="1910", place="Tver"),
        person("SC2", "Boris", "Petrov", gender="M", birth="1912", place="Tver"),
    )
    dst_persons = _persons(
        person("DH", "Pyotr", "Petrov", gender="M"),
        person("DW", "Maria", "Petrova", gender="F"),
        person("DC1", "Anna", "Petrova", gender="F", birth="1910", place="Tver"),
        person("DC2", "Boris", "Petrov", gender="M", birth="1912", place="Tver"),
        person("DC3", "Olga", "Petrova", gender="F", birth="1915", place="Moscow"),
    )
    src_fams = _families(family("F1", "SH", "SW", ["SC1", "SC2"]))
    dst_fams = _families(family("G1", "DH", "DW", ["DC1", "DC2", "DC3"]))

    result = FamilyComparator(FuzzyMatcher()).compare_families(
        src_fams, dst_fams, _individuals({"SH": "DH", "SW": "DW"}), _options(), src_persons, dst_persons
    )

    new = result.new_person_mappings
    assert {s: e.destination_id for s, e in new.items()} == {"SC1": "DC1", "SC2": "DC2"}
    assert all(e.method is MatchMethod.FAMILY_FUZZY_CHILD for e in new.values())
    assert [(m.source_family_id, m.destination_family_id) for m in result.matched_families] == [("F1", "G1")]


def test_single_child_uses_lenient_threshold():
    src_persons = _persons(
        person("SH", "Pyotr", "Petrov", gender="M"),
        person("SC", "Ivan", "Petrov", gender="M", birth="1885"),
    )
    dst_persons = _persons(
        person("DH", "Pyotr", "Petrov", gender="M"),
        person("DC", "Ivan", "Petrov", gender="M", birth="1885"),
    )
    result = FamilyComparator(FuzzyMatcher()).compare_families(
        _families(family("F1", "SH", None, ["SC"])),
        _families(family("G1", "DH", None, ["DC"])),
        _individuals({"SH": "DH"}),
        _options(),
        src_persons,
        dst_persons,
    )

    entry = result.new_person_mappings["SC"]
    assert entry.destination_id == "DC"
    assert entry.method is MatchMethod.FAMILY_SINGLE_CHILD
    assert entry.confidence == 0.85


def test_spouse_captured_once_children_are_mapped():
    src_persons = _persons(
        person("SH", "Pyotr", "Petrov", gender="M"),
        person("SW", "Mariya", "Petrova", gender="F"),
        person("SC", "Ivan", "Petrov", gender="M"),
    )
    dst_persons = _persons(
        person("DH", "Pyotr", "Petrov", gender="M"),
        person("DW", "Maria", "Ivanova", gender="F"),
        person("DC", "Ivan", "Petrov", gender="M"),
    )

    result = FamilyComparator(FuzzyMatcher()).compare_families(
        _families(family("F1", "SH", "SW", ["SC"])),
        _families(family("G1", "DH", "DW", ["DC"])),
        _individuals({"SH": "DH", "SC": "DC"}),
        _options(),
        src_persons,
        dst_persons,
    )

    entry = result.new_person_mappings["SW"]
    assert entry.destination_id == "DW"
    assert entry.method is MatchMethod.FAMILY_SPOUSE
    assert entry.confidence == 0.5
    assert result.matched_families[0].match_pass == "loose"


def test_spouse_not_captured_when_gender_differs():
    src_persons = _persons(person("SH", gender="M"), person("SW", gender="F"), person("SC"))
    dst_persons = _persons(person("DH", gender="M"), person("DW", gender="M"), person("DC"))

    result = FamilyComparator(FuzzyMatcher()).compare_families(
        _families(family("F1", "SH", "SW", ["SC"])),
        _families(family("G1", "DH", "DW", ["DC"])),
        _individuals({"SH": "DH", "SC": "DC"}),
        _options(),
        src_persons,
        dst_persons,
    )

    assert "SW" not in result.new_person_mappings


def test_declared_partner_blocks_exact_match_without_mapped_children():
    result = FamilyComparator().compare_families(
        _families(family("F1", "SH", "SW")),
        _families(family("G1", "DH", "DW")),
        _individuals({"SH": "DH"}),
        _options(),
    )

    assert result.matched_families == []
    assert [f.source_family_id for f in result.families_to_add] == ["F1"]


def test_equally_good_destination_families_are_not_matched():
    result = FamilyComparator().compare_families(
        _families(family("F1", "SH")),
        _families(family("G1", "DH"), family("G2", "DH")),
        _individuals({"SH": "DH"}),
        _options(),
    )

    assert result.matched_families == []
    assert len(result.families_to_add) == 1


def test_more_specific_destination_family_wins():
    result = FamilyComparator().compare_families(
        _families(family("F1", "SH", None, ["SC"])),
        _families(family("G1", "DH"), family("G2", "DH", None, ["DC"])),
        _individuals({"SH": "DH", "SC": "DC"}),
        _options(),
    )

    assert [m.destination_family_id for m in result.matched_families] == ["G2"]


def test_family_update_lists_missing_children_and_facts():
    result = FamilyComparator().compare_families(
        _families(family("F1", "SH", "SW", ["SC"], marriage="1905", marriage_place="Tver")),
        _families(family("G1", "DH", "DW")),
        _individuals({"SH": "DH", "SW": "DW"}),
        _options(),
    )

    update = result.families_to_update[0]
    assert (update.source_family_id, update.destination_family_id) == ("F1", "G1")
    assert [(c.source_id, c.destination_id) for c in update.missing_children] == [("SC", None)]
    diffs = {d.field_name: d for d in update.field_diffs}
    assert diffs["MarriageDate"].action is FieldAction.ADD
    assert diffs["MarriagePlace"].source_value == "Tver"


def test_missing_partner_is_reported_as_update():
    result = FamilyComparator().compare_families(
        _families(family("F1", "SH", "SW", ["SC"])),
        _families(family("G1", "DH", None, ["DC"])),
        _individuals({"SH": "DH", "SC": "DC"}),
        _options(),
    )

    update = result.families_to_update[0]
    assert [(d.field_name, d.source_value) for d in update.field_diffs] == [("Wife", "SW")]


def test_unmatched_families_are_added_and_deletes_suggested():
    result = FamilyComparator().compare_families(
        _families(family("F1", "SH", "SW", ["SC"])),
        _families(family("G1", "DH", "DW")),
        _individuals({"SH": "DH"}),
        _options(include_delete_suggestions=True),
    )

    added = result.families_to_add[0]
    assert added.husband.destination_id == "DH"
    assert added.wife.destination_id is None
    assert [c.source_id for c in added.children] == ["SC"]
    assert [f.destination_family_id for f in result.families_to_delete] == ["G1"]


def test_matches_found_in_one_pass_feed_later_families():
    # F2's only link is SH, which is only mapped once F1 is matched
    src_persons = _persons(
        person("SH", "Pyotr", "Petrov", gender="M"),
        person("SC", "Ivan", "Petrov", gender="M"),
        person("SGF", "Semyon", "Petrov", gender="M"),
    )
    dst_persons = _persons(
        person("DH", "Pyotr", "Petrov", gender="M"),
        person("DC", "Ivan", "Petrov", gender="M"),
        person("DGF", "Semyon", "Petrov", gender="M"),
    )
    result = FamilyComparator(FuzzyMatcher()).compare_families(
        _families(family("F2", "SGF", None, ["SH"]), family("F1", "SH", None, ["SC"])),
        _families(family("G2", "DGF", None, ["DH"]), family("G1", "DH", None, ["DC"])),
        _individuals({"SC": "DC"}),
        _options(),
        src_persons,
        dst_persons,
    )

    assert {s: e.destination_id for s, e in result.new_person_mappings.items()} == {"SH": "DH", "SGF": "DGF"}
    assert len(result.matched_families) == 2


def test_signature_priority():
    mapping = {"SH": "DH", "SW": "DW", "SC": "DC"}
    sig = build_signature(family("F1", "SH", "SW", ["SC", "SX"]), mapping.get)

    assert sig.mapped_count == 3
    assert sig.priority == 5
    assert sig.unmapped_children == ("SX",)
    assert not sig.all_children_mapped
