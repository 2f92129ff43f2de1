from tabletop.decks.store import DeckStore


class TestDeckStore:
    def test_create_assigns_id_and_timestamp(self):
        store = DeckStore()

        deck = store.create("Conspiracy", [{"name": "a"}, {"name": "b"}], "two cards")

        assert deck.id
        assert deck.saved_at is not None
        assert deck.card_count == 2
        assert store.get(deck.id) == deck

    def test_list_in_insertion_order(self):
        store = DeckStore()
        first = store.create("one", [{}])
        second = store.create("two", [{}])

        assert [d.id for d in store.all_decks()] == [first.id, second.id]
        assert first.id != second.id

    def test_delete(self):
        store = DeckStore()
        deck = store.create("one", [{}])

        assert store.delete(deck.id) is True
        assert store.delete(deck.id) is False
        assert len(store) == 0
