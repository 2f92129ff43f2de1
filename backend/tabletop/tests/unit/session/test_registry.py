from tabletop.session.models import Phase, Player
from tabletop.session.registry import SessionRegistry


class TestResolveOrCreate:
    def test_creates_session_on_first_use(self):
        registry = SessionRegistry()
        session = registry.resolve_or_create("abc")

        assert session.room_id == "abc"
        assert session.max_players == 2
        assert session.phase == Phase.SETUP
        assert session.turn_number == 1
        assert "abc" in registry
        assert len(registry) == 1

    def test_returns_existing_session(self):
        registry = SessionRegistry()
        first = registry.resolve_or_create("abc", 4)
        second = registry.resolve_or_create("abc", 6)

        assert second is first
        assert second.max_players == 4

    def test_requested_capacity_used_on_creation(self):
        registry = SessionRegistry()
        assert registry.resolve_or_create("abc", 5).max_players == 5

    def test_default_capacity_configurable(self):
        registry = SessionRegistry(default_capacity=3)
        assert registry.resolve_or_create("abc").max_players == 3


class TestDestroyIfEmpty:
    def test_destroys_empty_session(self):
        registry = SessionRegistry()
        registry.resolve_or_create("abc")

        assert registry.destroy_if_empty("abc") is True
        assert registry.get("abc") is None

    def test_keeps_occupied_session(self):
        registry = SessionRegistry()
        session = registry.resolve_or_create("abc")
        session.players.append(Player(connection_id="c1", display_name="Alice"))

        assert registry.destroy_if_empty("abc") is False
        assert registry.get("abc") is session

    def test_unknown_room_is_noop(self):
        assert SessionRegistry().destroy_if_empty("nope") is False

    def test_recreated_room_starts_fresh(self):
        """A room id reused after teardown gets a brand new Setup session."""
        registry = SessionRegistry()
        old = registry.resolve_or_create("abc", 4)
        old.phase = Phase.PLAYING
        old.turn_number = 9
        registry.destroy_if_empty("abc")

        new = registry.resolve_or_create("abc")

        assert new is not old
        assert new.phase == Phase.SETUP
        assert new.turn_number == 1
        assert new.max_players == 2
        assert new.table == []


class TestLookup:
    def test_sessions_for_connection(self):
        registry = SessionRegistry()
        a = registry.resolve_or_create("a")
        registry.resolve_or_create("b")
        a.players.append(Player(connection_id="c1", display_name="Alice"))

        assert registry.sessions_for("c1") == [a]
        assert registry.sessions_for("c2") == []

    def test_iteration_tolerates_removal(self):
        registry = SessionRegistry()
        registry.resolve_or_create("a")
        registry.resolve_or_create("b")

        for session in registry:
            registry.destroy_if_empty(session.room_id)

        assert len(registry) == 0

    def test_clear(self):
        registry = SessionRegistry()
        registry.resolve_or_create("a")
        registry.clear()
        assert len(registry) == 0
