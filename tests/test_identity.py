import pytest

from commgraph.graph.identity import build_identity_map, normalize_identifier


@pytest.mark.parametrize(
    "raw_id, expected",
    [
        ("Alex.FamilyPines", "alexfamilypines"),
        ("AlexFamilyPines", "alexfamilypines"),
        ("Dr. Smith", "smith"),
        ("DrSmith", "smith"),
        ("mrs Jones", "jones"),
        ("Mr.Jones", "jones"),
        ("  Ms  Ada   Lovelace ", "ada lovelace"),
        ("Drake", "drake"),
        ("Msomething", "msomething"),
        ("", ""),
    ],
)
def test_normalize_identifier(raw_id, expected):
    assert normalize_identifier(raw_id) == expected


def test_shortest_original_id_becomes_canonical():
    identity = build_identity_map(["Alex.FamilyPines", "AlexFamilyPines", "Bob"])
    assert identity("Alex.FamilyPines") == "AlexFamilyPines"
    assert identity("AlexFamilyPines") == "AlexFamilyPines"
    assert identity("Bob") == "Bob"


def test_equal_length_ties_break_lexically():
    identity = build_identity_map(["b.a", "ba.", "B.A"])
    assert {identity(raw_id) for raw_id in ["b.a", "ba.", "B.A"]} == {"B.A"}


def test_canonical_choice_is_order_independent():
    ids = ["Mr. Jones", "Jones", "jones", "Mr Jones"]
    forward = build_identity_map(ids)
    backward = build_identity_map(list(reversed(ids)))
    assert dict(forward) == dict(backward)
    assert forward("Mr. Jones") == "Jones"


def test_normalization_is_idempotent():
    ids = ["Alex.FamilyPines", "AlexFamilyPines", "Dr. Who", "Who", "carol"]
    identity = build_identity_map(ids)
    for raw_id in ids + ["stranger", ""]:
        assert identity(identity(raw_id)) == identity(raw_id)


def test_unknown_and_empty_ids_map_to_themselves():
    identity = build_identity_map(["alice", None, ""])
    assert identity("nobody") == "nobody"
    assert identity("") == ""
    assert len(identity) == 1


def test_merged_groups_and_aliases():
    identity = build_identity_map(["A.B", "AB", "C"])
    assert identity.merged_groups() == {"AB": ["A.B", "AB"]}
    assert identity.aliases("AB") == ["A.B", "AB"]
    assert identity.aliases("C") == ["C"]


def test_run_on_lowercase_honorific_is_kept():
    # Without a separator or a capital the prefix may be part of the name.
    assert normalize_identifier("drsmith") == "drsmith"
    assert normalize_identifier("mrjones") == "mrjones"
    identity = build_identity_map(["drsmith", "smith", "DrSmith"])
    assert identity("drsmith") == "drsmith"
    assert identity("DrSmith") == "smith"
