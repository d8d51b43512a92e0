from gedcom_import.loader import GEDCOMNode
from gedcom_import.records import build_family


def make_node(tag, value="", pointer=None, children=None, level=0, lineno=1):
    return GEDCOMNode(
        tag=tag,
        value=value,
        pointer=pointer,
        children=children or [],
        lineno=lineno,
        level=level,
    )


def test_build_family_basic():
    fam = make_node(
        "FAM",
        pointer="@F1@",
        lineno=20,
        children=[
            make_node("HUSB", "@I1@", level=1),
            make_node("WIFE", "@I2@", level=1),
            make_node("CHIL", "@I3@", level=1),
            make_node("CHIL", "@I4@", level=1),
            make_node("CHIL", "@I3@", level=1),
            make_node("NOTE", "Married in town hall", level=1),
        ],
    )

    family, errors = build_family(fam)

    assert errors == []
    assert family.pointer == "@F1@"
    assert family.lineno == 20
    assert family.husband == "@I1@"
    assert family.wife == "@I2@"
    assert family.children == ["@I3@", "@I4@"]


def test_linkage_without_pointer_is_reported_and_skipped():
    fam = make_node(
        "FAM",
        pointer="@F2@",
        children=[
            make_node("HUSB", "", level=1, lineno=2),
            make_node("CHIL", "I5", level=1, lineno=3),
            make_node("WIFE", "@I6@", level=1, lineno=4),
        ],
    )

    family, errors = build_family(fam)

    assert family.husband is None
    assert family.wife == "@I6@"
    assert family.children == []
    assert [e.lineno for e in errors] == [2, 3]
    assert "requires an individual pointer" in errors[0].reason


def test_family_without_pointer_is_dropped():
    family, errors = build_family(make_node("FAM", lineno=9))
    assert family is None
    assert errors[0].lineno == 9
