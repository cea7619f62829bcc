from gedcom_reconcile.normalization.name_normalization import (
    name_tokens,
    normalize_name,
    normalize_place,
    split_gedcom_name,
)


def test_cyrillic_is_transliterated():
    assert normalize_name("Иван") == "ivan"
    assert normalize_name("Петров") == "petrov"


def test_diacritics_and_punctuation_removed():
    assert normalize_name("José-María") == "jose maria"
    assert normalize_name(" O'Brien ") == "obrien"


def test_empty_values():
    assert normalize_name(None) == ""
    assert normalize_name("") == ""


def test_whitespace_collapsed():
    assert normalize_name("  Anna    Maria ") == "anna maria"


def test_deterministic():
    assert normalize_name("Владимир") == normalize_name("Владимир")


def test_places_normalize_like_names():
    assert normalize_place("Moscow, Russia") == "moscow russia"


def test_name_tokens():
    assert name_tokens("Anna Maria") == ["anna", "maria"]
    assert name_tokens("Jo Ann Lee", min_length=3) == ["ann", "lee"]


def test_split_gedcom_name():
    assert split_gedcom_name("Ivan /Petrov/") == ("Ivan", "Petrov")
    assert split_gedcom_name("Mary Ann") == ("Mary Ann", None)
    assert split_gedcom_name(None) == (None, None)
