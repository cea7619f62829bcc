import pytest

from gedcom_reconcile.identity.profile_id import is_same_profile, normalize_pointer, normalize_profile_id


@pytest.mark.parametrize(
    "raw",
    [
        "@I6000000012345@",
        "geni:6000000012345",
        "profile-6000000012345",
        "https://www.geni.com/people/Ivan-Petrov/6000000012345",
        "https://www.geni.com/people/Ivan-Petrov-6000000012345?through=1",
        "6000000012345",
        " 06000000012345 ",
    ],
)
def test_encodings_reduce_to_the_same_id(raw):
    assert normalize_profile_id(raw) == "6000000012345"


@pytest.mark.parametrize("raw", [None, "", "abc", "@F@"])
def test_unrecognized_ids(raw):
    assert normalize_profile_id(raw) is None


def test_is_same_profile():
    assert is_same_profile("geni:0123", "https://www.geni.com/people/x/123")
    assert not is_same_profile("123", "124")
    assert not is_same_profile(None, None)


def test_normalize_pointer():
    assert normalize_pointer(" @i12@ ") == "I12"
    assert normalize_pointer("@@") is None
    assert normalize_pointer(None) is None
