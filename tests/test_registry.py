import itertools

import pytest

from errors import AlreadyInRoom, RegistryFull, RoomNotFound
from registry import ROOM_CODE_SPACE, RoomRegistry, generate_room_code


def test_generated_codes_are_four_digits():
    for _ in range(200):
        code = generate_room_code()
        assert len(code) == 4
        assert code.isdigit()
        assert 1000 <= int(code) <= 9999


def test_create_room_makes_host_the_only_member(registry, connect):
    host = connect("A")
    code = registry.create_room(host)

    room = registry.get_room(code)
    assert room.host is host
    assert room.members == [host]
    assert room.video is None
    assert registry.find_room_by_connection(host) is room


def test_codes_are_unique_among_live_rooms(registry, connect):
    codes = [registry.create_room(connect()) for _ in range(300)]
    assert len(set(codes)) == len(codes)
    assert len(registry) == 300


def test_code_collision_draws_again(connect):
    draws = iter(["1234", "1234", "1234", "5678"])
    registry = RoomRegistry(code_factory=lambda: next(draws))

    assert registry.create_room(connect()) == "1234"
    assert registry.create_room(connect()) == "5678"


def test_freed_code_can_be_reused(connect):
    registry = RoomRegistry(code_factory=itertools.repeat("4821").__next__)
    code = registry.create_room(connect())
    registry.destroy_room(code)

    assert registry.create_room(connect()) == "4821"


def test_create_while_in_room_raises(registry, connect):
    host = connect()
    registry.create_room(host)

    with pytest.raises(AlreadyInRoom):
        registry.create_room(host)
    assert len(registry) == 1


def test_registry_full_raises(monkeypatch, connect):
    registry = RoomRegistry()
    monkeypatch.setattr(registry, "_rooms", {str(n): None for n in range(ROOM_CODE_SPACE)})

    with pytest.raises(RegistryFull):
        registry.create_room(connect())


def test_add_member_is_idempotent(registry, connect):
    code = registry.create_room(connect())
    viewer = connect()

    registry.add_member(code, viewer)
    registry.add_member(code, viewer)

    room = registry.get_room(code)
    assert room.members.count(viewer) == 1
    assert len(room.members) == 2


def test_add_member_unknown_room(registry, connect):
    with pytest.raises(RoomNotFound):
        registry.add_member("0000", connect())
    with pytest.raises(RoomNotFound):
        registry.add_member(None, connect())
    assert len(registry) == 0


def test_add_member_of_other_room_raises(registry, connect):
    first = registry.create_room(connect())
    second = registry.create_room(connect())
    viewer = connect()
    registry.add_member(first, viewer)

    with pytest.raises(AlreadyInRoom):
        registry.add_member(second, viewer)
    assert not registry.get_room(second).has_member(viewer)
    assert registry.find_room_by_connection(viewer).code == first


def test_remove_member_clears_association(registry, connect):
    code = registry.create_room(connect())
    viewer = connect()
    registry.add_member(code, viewer)

    room = registry.remove_member(viewer)

    assert room.code == code
    assert not room.has_member(viewer)
    assert registry.find_room_by_connection(viewer) is None
    assert registry.remove_member(viewer) is None


def test_destroy_room_evicts_members(registry, connect):
    host, viewer = connect(), connect()
    code = registry.create_room(host)
    registry.add_member(code, viewer)

    registry.destroy_room(code)

    assert code not in registry
    assert registry.find_room_by_connection(host) is None
    assert registry.find_room_by_connection(viewer) is None
    # evicted viewer may start over
    assert registry.create_room(viewer)


def test_publish_skips_closed_and_excluded(registry, connect):
    host, open_viewer, closed_viewer = connect(), connect(), connect()
    code = registry.create_room(host)
    registry.add_member(code, open_viewer)
    registry.add_member(code, closed_viewer)
    closed_viewer.close()

    delivered = registry.publish(code, {"type": "ping"}, exclude=host)

    assert delivered == 1
    assert open_viewer.sent == [{"type": "ping"}]
    assert host.sent == []
    assert closed_viewer.sent == []


def test_publish_unknown_room(registry):
    assert registry.publish("9999", {"type": "ping"}) == 0


def test_record_sync_needs_a_video(registry, connect):
    room = registry.get_room(registry.create_room(connect()))

    room.record_sync("play", 1.0)
    assert room.video is None

    room.load_video("http://example.com/a.mp4")
    room.record_sync("play", 1.0)
    assert room.video.last_sync.action == "play"

    room.load_video("http://example.com/b.mp4")
    assert room.video.last_sync is None
