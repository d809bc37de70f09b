from infrastructure.realtime.membership_cache import MembershipCache


def test_upsert_and_remove_user():
    cache = MembershipCache()
    cache.upsert_user("alice", "Alice Liddell")
    assert cache.get_user("alice").display_name == "Alice Liddell"

    # reconnect overwrites the display name
    cache.upsert_user("alice", "Alice")
    assert cache.get_user("alice").display_name == "Alice"

    cache.remove_user("alice")
    cache.remove_user("alice")
    assert cache.get_user("alice") is None


def test_replace_members_takes_a_snapshot():
    cache = MembershipCache()
    members = ["alice", "bob"]
    cache.replace_members("g1", members)
    members.append("carol")

    assert cache.members("g1") == frozenset({"alice", "bob"})


def test_remove_member_and_unknown_group():
    cache = MembershipCache()
    cache.replace_members("g1", ["alice", "bob"])
    cache.remove_member("g1", "alice")
    cache.remove_member("g-missing", "alice")

    assert cache.members("g1") == frozenset({"bob"})
    assert cache.members("g-missing") == frozenset()
