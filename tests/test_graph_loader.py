import json

import pytest

from gedcom_reconcile.core.exceptions import GraphLoadError
from gedcom_reconcile.dates.normalizer import DatePrecision
from gedcom_reconcile.loader.graph_loader import load_mapping, load_tree, person_from_dict, tree_from_dict
from gedcom_reconcile.registry.entities import Gender

TREE = {
    "name": "petrov family",
    "persons": [
        {
            "id": "@I1@",
            "name": "Pyotr /Petrov/",
            "sex": "M",
            "birth": {"date": "ABT 1860", "place": "Tver"},
            "rfn": "geni:6000000000001",
        },
        {
            "id": "@I2@",
            "first_name": "Maria",
            "last_name": "Petrova",
            "maiden_name": "Ivanova",
            "gender": "female",
            "birth_date": "3 MAR 1862",
            "death_date": "1930",
            "photos": ["http://example.org/maria.jpg"],
        },
        {"id": "@I3@", "first_name": "Ivan", "last_name": "Petrov"},
    ],
    "families": [
        {"id": "@F1@", "husband": "@I1@", "wife": "@I2@", "children": ["@I3@"], "marriage": {"date": "1884"}},
    ],
}


def test_tree_from_dict_parses_persons():
    reg = tree_from_dict(TREE)

    assert reg.name == "petrov family"
    p1 = reg.persons["@I1@"]
    assert (p1.first_name, p1.last_name) == ("Pyotr", "Petrov")
    assert p1.gender is Gender.MALE
    assert p1.birth_date.year == 1860
    assert p1.birth_place == "Tver"
    assert p1.profile_id == "geni:6000000000001"

    p2 = reg.persons["@I2@"]
    assert p2.birth_date.precision is DatePrecision.DAY
    assert p2.death_year == 1930
    assert p2.photo_urls == ("http://example.org/maria.jpg",)
    assert p2.normalized_maiden_name == "ivanova"


def test_tree_from_dict_links_families():
    reg = tree_from_dict(TREE)

    child = reg.persons["@I3@"]
    assert child.father_id == "@I1@"
    assert child.mother_id == "@I2@"
    assert reg.families["@F1@"].marriage_date.year == 1884


def test_unparseable_date_is_dropped():
    p = person_from_dict({"id": "X", "birth_date": "sometime"})
    assert p.birth_date is None


def test_person_without_id_is_rejected():
    with pytest.raises(GraphLoadError):
        person_from_dict({"first_name": "Ivan"})


def test_tree_must_be_an_object():
    with pytest.raises(GraphLoadError):
        tree_from_dict([1, 2, 3])


def test_load_tree(tmp_path):
    path = tmp_path / "source.json"
    path.write_text(json.dumps(TREE), encoding="utf-8")

    reg = load_tree(path)

    assert len(reg.persons) == 3
    assert len(reg.families) == 1


def test_load_tree_errors(tmp_path):
    with pytest.raises(GraphLoadError):
        load_tree(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(GraphLoadError):
        load_tree(broken)


def test_load_mapping_formats(tmp_path):
    plain = tmp_path / "plain.json"
    plain.write_text(json.dumps({"S1": "D1"}), encoding="utf-8")
    exported = tmp_path / "exported.json"
    exported.write_text(
        json.dumps({"mapping": [{"source_id": "S1", "destination_id": "D1", "method": "RFN"}]}),
        encoding="utf-8",
    )

    assert load_mapping(plain) == {"S1": "D1"}
    assert load_mapping(exported) == {"S1": "D1"}


def test_load_mapping_rejects_lists(tmp_path):
    path = tmp_path / "mapping.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(GraphLoadError):
        load_mapping(path)
