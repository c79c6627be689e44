# tests/test_directory.py
from models.assignee import AssigneeRef, SourceKind
from utils.directory import AssigneeDirectory, build_directory, split_label


def test_build_directory_sorted_and_scoped_to_client(staff, freelancers, clients):
    entries = build_directory(staff, freelancers, clients[0])
    assert [e.display_name for e in entries] == ["A. Lee", "Bo Chen", "Dana Ruiz", "Pat Kim", "Sam Roe"]
    assert [e.role_label for e in entries] == ["(rubi)", "(rubi)", "(freelancer)", "(staff)", "(staff)"]
    assert entries[3].token == "staff:pat@acme.com"
    assert all(e.display_name != "Lou Park" for e in entries)


def test_resolve_known_references(directory):
    assert directory.resolve("rubi:s1") == "A. Lee (rubi)"
    assert directory.resolve("freelancer:f1") == "Dana Ruiz (freelancer)"
    assert directory.resolve("staff:pat@acme.com") == "Pat Kim (staff)"


def test_resolve_missing_references_returns_raw_token(directory):
    assert directory.resolve("rubi:gone") == "rubi:gone"
    assert directory.resolve("staff:nobody@acme.com") == "staff:nobody@acme.com"
    assert directory.resolve("Old Name") == "Old Name"
    assert directory.resolve("") == ""


def test_contact_resolves_through_the_tasks_own_client(directory):
    assert directory.resolve("staff:lou@globex.com", client_id="c2") == "Lou Park (staff)"
    # any loaded client is searched as a fallback
    assert directory.resolve("staff:lou@globex.com") == "Lou Park (staff)"


def test_deleted_staff_member_falls_back_to_token(staff, freelancers, clients):
    before = AssigneeDirectory(staff, freelancers, clients, "c1")
    after = AssigneeDirectory([s for s in staff if s.name != "A. Lee"], freelancers, clients, "c1")
    assert before.resolve("rubi:s1") == "A. Lee (rubi)"
    assert after.resolve("rubi:s1") == "rubi:s1"


def test_encode_inverts_resolve(directory):
    for token in ("rubi:s1", "freelancer:f1", "staff:sam@acme.com"):
        assert directory.encode(directory.resolve(token), "c1") == token
    assert directory.encode("a. lee (rubi)") == "rubi:s1"


def test_encode_unmatched_label_is_best_effort_and_reported(directory):
    unmatched = []
    assert directory.encode("Nobody (rubi)", "c1", unmatched) == "rubi:Nobody"
    # contacts of another client do not match
    assert directory.encode("Lou Park (staff)", "c1", unmatched) == "staff:Lou Park"
    assert unmatched == ["Nobody (rubi)", "Lou Park (staff)"]
    assert directory.encode("rubi:gone") == "rubi:gone"
    assert directory.encode("Just A Name") == "Just A Name"


def test_split_label():
    assert split_label("A. Lee (rubi)") == ("A. Lee", SourceKind.INTERNAL_STAFF)
    assert split_label("Ann (other)") == ("Ann (other)", None)


def test_search_matches_name_or_role_and_excludes_assigned(directory):
    assert [e.display_name for e in directory.search("lee")] == ["A. Lee"]
    assert [e.display_name for e in directory.search("FREELANCER")] == ["Dana Ruiz"]
    assert [e.display_name for e in directory.search("(staff)", exclude=["staff:pat@acme.com"])] == ["Sam Roe"]
    assert len(directory.search("")) == 5


def test_ref_parse():
    assert AssigneeRef.parse("staff:a:b@c.com") == AssigneeRef(SourceKind.CLIENT_CONTACT, "a:b@c.com")
    assert AssigneeRef.parse("plain") is None
    assert AssigneeRef.parse("unknown:x") is None
