from quotes.history import History


def snap(n):
    return [{"key": "a", "title": f"v{n}"}]


def test_initialize_seeds_one_entry_without_undo():
    h = History()
    h.initialize(snap(0))
    assert h.index == 0
    assert not h.can_undo
    assert not h.can_redo


def test_undo_redo_walks_the_stack():
    h = History()
    h.initialize(snap(0))
    h.push(snap(1))
    h.push(snap(2))

    assert h.undo() == snap(1)
    assert h.undo() == snap(0)
    assert h.undo() is None
    assert h.redo() == snap(1)
    assert h.can_redo


def test_push_after_undo_drops_redo_tail():
    h = History()
    h.initialize(snap(0))
    h.push(snap(1))
    h.push(snap(2))
    h.undo()
    h.push(snap(3))

    assert not h.can_redo
    assert h.entries == [snap(0), snap(1), snap(3)]


def test_limit_discards_oldest_entries():
    h = History(limit=3)
    h.initialize(snap(0))
    for n in range(1, 6):
        h.push(snap(n))

    assert len(h.entries) == 3
    assert h.entries[0] == snap(3)
    assert h.index == 2
    assert h.entries[h.index] == snap(5)


def test_snapshots_are_copied():
    h = History()
    data = snap(0)
    h.initialize(data)
    data[0]["title"] = "mutated"
    assert h.entries[0][0]["title"] == "v0"

    h.push(snap(1))
    restored = h.undo()
    restored[0]["title"] = "mutated"
    assert h.entries[0][0]["title"] == "v0"


def test_clear():
    h = History()
    h.initialize(snap(0))
    h.push(snap(1))
    h.clear()
    assert h.entries == []
    assert not h.can_undo and not h.can_redo
