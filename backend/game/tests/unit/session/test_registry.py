from itertools import repeat

import pytest

from game.messaging.types import RoomDestroyedReason, SessionErrorCode
from game.session.errors import RoomError
from game.session.models import BoardConfig
from game.session.registry import ROOM_ID_ALPHABET, RoomRegistry, generate_room_id


def _error_code(excinfo) -> SessionErrorCode:
    return excinfo.value.code


@pytest.fixture
def registry():
    return RoomRegistry()


def _seeded(registry: RoomRegistry, num_players: int = 1, max_players: int = 4, password: str | None = None) -> str:
    room = registry.create_room(max_players=max_players, creator_id="c0", password=password)
    for i in range(1, num_players):
        registry.join_room(room.room_id, f"c{i}", password=password)
    return room.room_id


class TestRoomIds:
    def test_generated_ids_use_uppercase_alphanumerics(self):
        room_id = generate_room_id(6)

        assert len(room_id) == 6
        assert set(room_id) <= set(ROOM_ID_ALPHABET)

    def test_collision_is_regenerated(self):
        ids = iter(["SAME01", "SAME01", "OTHER1"])
        registry = RoomRegistry(room_id_factory=lambda _length: next(ids))

        first = registry.create_room(max_players=2, creator_id="a")
        second = registry.create_room(max_players=2, creator_id="b")

        assert (first.room_id, second.room_id) == ("SAME01", "OTHER1")

    def test_gives_up_when_ids_are_exhausted(self):
        ids = repeat("STUCK1")
        registry = RoomRegistry(room_id_factory=lambda _length: next(ids))
        registry.create_room(max_players=2, creator_id="a")

        with pytest.raises(RoomError) as excinfo:
            registry.create_room(max_players=2, creator_id="b")
        assert _error_code(excinfo) == SessionErrorCode.SERVER_FULL
        assert registry.room_count == 1
        assert registry.rooms_of("b") == []

    def test_configured_length_is_passed_to_factory(self):
        lengths = []

        def factory(length: int) -> str:
            lengths.append(length)
            return "X" * length

        RoomRegistry(room_id_length=9, room_id_factory=factory).create_room(max_players=2, creator_id="a")

        assert lengths == [9]


class TestCreateRoom:
    @pytest.mark.parametrize("max_players", [2, 3, 4])
    def test_valid_sizes_seat_creator_first(self, registry, max_players):
        room = registry.create_room(max_players=max_players, creator_id="c0", creator_name="Ann")

        assert room.max_players == max_players
        assert room.started is False
        assert [(p.connection_id, p.name, p.pos) for p in room.players] == [("c0", "Ann", 0)]
        assert registry.rooms_of("c0") == [room.room_id]

    @pytest.mark.parametrize("max_players", [-1, 0, 1, 5, 100])
    def test_invalid_sizes_create_nothing(self, registry, max_players):
        with pytest.raises(RoomError) as excinfo:
            registry.create_room(max_players=max_players, creator_id="c0")

        assert _error_code(excinfo) == SessionErrorCode.INVALID_PLAYER_COUNT
        assert registry.room_count == 0
        assert registry.rooms_of("c0") == []

    def test_blank_names_fall_back_to_defaults(self, registry):
        room = registry.create_room(max_players=2, creator_id="c0", room_name="   ", creator_name="")

        assert room.room_name == "Room"
        assert room.players[0].name == "Player"

    def test_empty_password_means_open_room(self, registry):
        room = registry.create_room(max_players=2, creator_id="c0", password="")

        assert room.has_password is False

    def test_board_config_is_kept(self, registry):
        room = registry.create_room(max_players=2, creator_id="c0", board=BoardConfig(level="hard", board_index=2))

        assert room.board == BoardConfig(level="hard", board_index=2)

    def test_room_cap_enforced(self):
        registry = RoomRegistry(max_rooms=1)
        registry.create_room(max_players=2, creator_id="a")

        with pytest.raises(RoomError) as excinfo:
            registry.create_room(max_players=2, creator_id="b")

        assert _error_code(excinfo) == SessionErrorCode.SERVER_FULL

    def test_every_room_gets_a_lock(self, registry):
        room = registry.create_room(max_players=2, creator_id="c0")

        assert registry.lock_for(room.room_id) is not None
        assert registry.lock_for("missing") is None


class TestJoinRoom:
    def test_join_returns_index_in_turn_order(self, registry):
        room_id = _seeded(registry, num_players=2)

        assert registry.join_room(room_id, "c2", joiner_name="Cat") == 2
        assert registry.get_room(room_id).players[2].name == "Cat"

    def test_unknown_room(self, registry):
        with pytest.raises(RoomError) as excinfo:
            registry.join_room("NOPE", "x")

        assert _error_code(excinfo) == SessionErrorCode.ROOM_NOT_FOUND

    def test_creator_never_seated_twice(self, registry):
        room_id = _seeded(registry)

        with pytest.raises(RoomError) as excinfo:
            registry.join_room(room_id, "c0")

        assert _error_code(excinfo) == SessionErrorCode.IS_CREATOR
        assert registry.get_room(room_id).member_ids == ["c0"]

    def test_member_cannot_join_twice(self, registry):
        room_id = _seeded(registry, num_players=2)

        with pytest.raises(RoomError) as excinfo:
            registry.join_room(room_id, "c1")

        assert _error_code(excinfo) == SessionErrorCode.ALREADY_IN_ROOM

    @pytest.mark.parametrize("password", [None, "", "wrong", "pw"])
    def test_full_room_rejects_whatever_the_password(self, registry, password):
        room_id = _seeded(registry, num_players=2, max_players=2, password="pw")

        with pytest.raises(RoomError) as excinfo:
            registry.join_room(room_id, "late", password=password)

        assert _error_code(excinfo) == SessionErrorCode.ROOM_FULL

    @pytest.mark.parametrize("password", [None, "", "PW"])
    def test_wrong_password_rejected(self, registry, password):
        room_id = _seeded(registry, password="pw")

        with pytest.raises(RoomError) as excinfo:
            registry.join_room(room_id, "x", password=password)

        assert _error_code(excinfo) == SessionErrorCode.WRONG_PASSWORD
        assert registry.get_room(room_id).player_count == 1
        assert registry.rooms_of("x") == []

    def test_password_ignored_for_open_room(self, registry):
        room_id = _seeded(registry)

        assert registry.join_room(room_id, "x", password="anything") == 1

    def test_started_room_with_free_seat_accepts_joiner_at_end_of_turn_order(self, registry):
        room_id = _seeded(registry, num_players=2)
        room = registry.start_game(room_id, "c0")
        room.turn_index = 1

        assert registry.join_room(room_id, "x", joiner_name="Late") == 2
        assert room.member_ids[-1] == "x"
        assert room.players[-1].pos == 0
        assert room.turn_index == 1
        assert registry.rooms_of("x") == [room_id]

    def test_started_full_room_reports_room_full(self, registry):
        room_id = _seeded(registry, num_players=2, max_players=2)
        registry.start_game(room_id, "c0")

        with pytest.raises(RoomError) as excinfo:
            registry.join_room(room_id, "x")

        assert _error_code(excinfo) == SessionErrorCode.ROOM_FULL


class TestStartGame:
    def test_non_creator_never_starts(self, registry):
        room_id = _seeded(registry, num_players=3)

        with pytest.raises(RoomError) as excinfo:
            registry.start_game(room_id, "c1")

        assert _error_code(excinfo) == SessionErrorCode.NOT_CREATOR
        assert registry.get_room(room_id).started is False

    def test_too_few_players(self, registry):
        room_id = _seeded(registry)

        with pytest.raises(RoomError) as excinfo:
            registry.start_game(room_id, "c0")

        assert _error_code(excinfo) == SessionErrorCode.TOO_FEW_PLAYERS

    def test_start_sets_started_and_turn_zero(self, registry):
        room_id = _seeded(registry, num_players=2)

        room = registry.start_game(room_id, "c0")

        assert room.started is True
        assert room.turn_index == 0

    def test_configured_minimum(self):
        registry = RoomRegistry(min_players_to_start=3)
        room_id = _seeded(registry, num_players=2)

        with pytest.raises(RoomError) as excinfo:
            registry.start_game(room_id, "c0")

        assert _error_code(excinfo) == SessionErrorCode.TOO_FEW_PLAYERS
        assert "At least 3" in excinfo.value.message

    def test_unknown_room(self, registry):
        with pytest.raises(RoomError) as excinfo:
            registry.start_game("NOPE", "c0")

        assert _error_code(excinfo) == SessionErrorCode.ROOM_NOT_FOUND


class TestRemoval:
    def test_creator_removal_destroys_room(self, registry):
        room_id = _seeded(registry, num_players=3)

        result = registry.remove_player(room_id, "c0")

        assert result.removed is True
        assert result.destroyed.reason == RoomDestroyedReason.CREATOR_LEFT
        assert result.destroyed.member_ids == ("c0", "c1", "c2")
        assert registry.get_room(room_id) is None
        assert registry.lock_for(room_id) is None
        for member in ("c0", "c1", "c2"):
            assert registry.rooms_of(member) == []

    def test_member_removal_keeps_room(self, registry):
        room_id = _seeded(registry, num_players=3)

        result = registry.remove_player(room_id, "c1")

        assert result.removed is True
        assert result.destroyed is None
        assert registry.get_room(room_id).member_ids == ["c0", "c2"]
        assert registry.rooms_of("c1") == []

    def test_removing_non_member_is_noop(self, registry):
        room_id = _seeded(registry, num_players=2)

        assert registry.remove_player(room_id, "ghost").removed is False
        assert registry.remove_player("NOPE", "c1").removed is False

    def test_leave_as_creator_only_for_creator(self, registry):
        room_id = _seeded(registry, num_players=2)

        assert registry.leave_as_creator(room_id, "c1") is None
        destroyed = registry.leave_as_creator(room_id, "c0")

        assert destroyed.reason == RoomDestroyedReason.CREATOR_LEFT
        assert registry.room_count == 0

    def test_destroy_twice_is_harmless(self, registry):
        room_id = _seeded(registry)

        assert registry.destroy_room(room_id, RoomDestroyedReason.GAME_FINISHED) is not None
        assert registry.destroy_room(room_id, RoomDestroyedReason.GAME_FINISHED) is None

    def test_index_survives_other_rooms(self, registry):
        first = _seeded(registry, num_players=2)
        second = registry.create_room(max_players=2, creator_id="c1").room_id

        registry.destroy_room(first, RoomDestroyedReason.CREATOR_LEFT)

        assert registry.rooms_of("c1") == [second]


class TestVisibility:
    def test_creator_never_sees_own_rooms(self, registry):
        mine = registry.create_room(max_players=2, creator_id="me").room_id
        theirs = registry.create_room(max_players=3, creator_id="them").room_id
        registry.join_room(mine, "them")

        assert [s.room_id for s in registry.list_visible_rooms("me")] == [theirs]
        assert [s.room_id for s in registry.list_visible_rooms("them")] == [mine]
        assert [s.room_id for s in registry.list_visible_rooms("nobody")] == [mine, theirs]

    def test_summary_fields(self, registry):
        room_id = registry.create_room(max_players=3, creator_id="a", room_name="Den", password="x").room_id
        registry.join_room(room_id, "b", password="x")

        (summary,) = registry.list_visible_rooms("viewer")

        assert summary.model_dump() == {
            "room_id": room_id,
            "room_name": "Den",
            "current_players": 2,
            "max_players": 3,
            "has_password": True,
            "started": False,
        }
