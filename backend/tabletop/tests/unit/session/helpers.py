from tabletop.session.models import CardInstance, Phase, Player, Position, Session


def make_session(
    names: list[str] | None = None,
    *,
    room_id: str = "room1",
    max_players: int = 2,
    phase: Phase = Phase.SETUP,
) -> Session:
    """Build a session whose players use their names as connection ids."""
    session = Session(room_id=room_id, max_players=max_players, phase=phase)
    for name in names or []:
        session.players.append(Player(connection_id=name, display_name=name))
    if phase == Phase.PLAYING and session.players:
        session.current_turn_player_id = session.players[0].connection_id
    return session


def add_cards(session: Session, count: int, owner: str = "A") -> list[CardInstance]:
    cards = [
        CardInstance(card={"name": f"card-{i}"}, position=Position(x=i * 10, y=0), owner_connection_id=owner)
        for i in range(count)
    ]
    session.table.extend(cards)
    return cards
