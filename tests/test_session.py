from chatrelay.core.session import SessionStore, make_identity


def test_identity_keys():
    assert make_identity("wxid_a") == "user:wxid_a"
    assert make_identity("wxid_a", "room1") == "group:room1:wxid_a"
    assert make_identity("wxid_a", "room1") != make_identity("wxid_a", "room2")


def test_unknown_identity_has_no_context():
    assert SessionStore().get("user:nobody") == ""


def test_context_is_last_request_and_reply():
    store = SessionStore()
    store.put("user:a", "q1？", "a1")
    assert store.get("user:a") == "q1？\na1"
    store.put("user:a", "q1？\na1\nq2？", "a2")
    assert store.get("user:a") == "q1？\na1\nq2？\na2"
    assert len(store) == 1


def test_identities_do_not_share_context():
    store = SessionStore()
    store.put("user:a", "qa？", "aa")
    store.put("group:g:a", "qg？", "ag")
    assert store.get("user:a") == "qa？\naa"
    assert store.get("group:g:a") == "qg？\nag"


def test_bounded_store_evicts_least_recently_used():
    store = SessionStore(max_entries=2)
    store.put("user:a", "qa", "aa")
    store.put("user:b", "qb", "ab")
    store.get("user:a")
    store.put("user:c", "qc", "ac")
    assert "user:a" in store
    assert "user:b" not in store
    assert "user:c" in store
    assert len(store) == 2
