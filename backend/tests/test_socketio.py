def names(received):
    return [pkt["name"] for pkt in received]


def last_state(received):
    states = [pkt for pkt in received if pkt["name"] == "game_state_update"]
    assert states, names(received)
    return states[-1]["args"][0]


def open_room(sio_client, namespace="/concept", host="u1"):
    host_client = sio_client(namespace)
    ack = host_client.emit("create_room", {"hostId": host, "nickname": "Ana"}, namespace=namespace, callback=True)
    assert ack["ok"], ack
    return host_client, ack["roomCode"]


def test_create_room_acks_with_the_code(sio_client):
    host, code = open_room(sio_client)

    assert code == "AB12CD"
    received = host.get_received("/concept")
    assert "room_created" in names(received)
    state = last_state(received)
    assert state["gameState"]["code"] == code
    assert state["gameState"]["gameType"] == "concept"
    assert [p["id"] for p in state["players"]] == ["u1"]


def test_create_room_rejects_a_bad_nickname(sio_client):
    c = sio_client("/rabisco")
    ack = c.emit("create_room", {"hostId": "u1", "nickname": ""}, namespace="/rabisco", callback=True)

    assert ack == {"ok": False, "error": "invalid_payload"}
    errors = [pkt for pkt in c.get_received("/rabisco") if pkt["name"] == "error"]
    assert errors[0]["args"][0]["error"] == "invalid_payload"


def test_join_broadcasts_state_to_every_player(sio_client):
    host, code = open_room(sio_client)
    host.get_received("/concept")
    guest = sio_client("/concept")

    ack = guest.emit(
        "join_room",
        {"roomCode": code.lower(), "userId": "u2", "nickname": "Bia"},
        namespace="/concept",
        callback=True,
    )

    assert ack == {"ok": True}
    assert [p["id"] for p in last_state(host.get_received("/concept"))["players"]] == ["u1", "u2"]
    guest_received = guest.get_received("/concept")
    assert "joined_room" in names(guest_received)
    assert last_state(guest_received)["gameState"]["hostId"] == "u1"


def test_each_player_gets_their_own_view(sio_client, service):
    host, code = open_room(sio_client)
    guest = sio_client("/concept")
    guest.emit("join_room", {"roomCode": code, "userId": "u2", "nickname": "Bia"}, namespace="/concept")
    host.get_received("/concept")
    guest.get_received("/concept")

    # The connection remembers who we are; no ids needed after joining.
    assert host.emit("start_game", {}, namespace="/concept", callback=True) == {"ok": True}

    room = service.get_room(code)
    (master,) = room.current_team
    views = {
        "u1": last_state(host.get_received("/concept"))["gameState"],
        "u2": last_state(guest.get_received("/concept"))["gameState"],
    }
    rival = "u2" if master == "u1" else "u1"
    assert views[master]["isMaster"] is True
    assert views[master]["wordOptions"]
    assert views[rival]["wordOptions"] == []
    assert "sid" not in views[rival]["players"][0]


def test_unknown_room_is_rejected_with_a_notice(sio_client):
    c = sio_client("/knowme")
    ack = c.emit(
        "join_room",
        {"roomCode": "ZZZZZZ", "userId": "u9", "nickname": "Caio"},
        namespace="/knowme",
        callback=True,
    )

    assert ack == {"ok": False, "error": "room_not_found"}
    errors = [pkt["args"][0] for pkt in c.get_received("/knowme") if pkt["name"] == "error"]
    assert errors == [{"error": "room_not_found", "message": "Sala não encontrada."}]


def test_rooms_are_scoped_to_their_namespace(sio_client):
    _, code = open_room(sio_client, namespace="/concept")
    other = sio_client("/rabisco")

    ack = other.emit("join_room", {"roomCode": code, "userId": "u2", "nickname": "Bia"}, namespace="/rabisco", callback=True)

    assert ack["error"] == "room_not_found"


def test_commands_out_of_phase_get_an_error(sio_client):
    host, _ = open_room(sio_client, namespace="/rabisco")
    host.get_received("/rabisco")

    ack = host.emit("give_hint", {}, namespace="/rabisco", callback=True)

    assert ack == {"ok": False, "error": "wrong_phase"}
    assert "error" in names(host.get_received("/rabisco"))


def test_disconnect_keeps_the_seat(sio_client, service):
    host, code = open_room(sio_client)
    guest = sio_client("/concept")
    guest.emit("join_room", {"roomCode": code, "userId": "u2", "nickname": "Bia"}, namespace="/concept")
    host.get_received("/concept")

    guest.disconnect(namespace="/concept")

    room = service.get_room(code)
    assert "u2" in room.players
    assert not room.players["u2"].connected
    players = last_state(host.get_received("/concept"))["players"]
    assert [p["connected"] for p in players] == [True, False]


def test_timer_ticks_reach_the_room(sio_client, service):
    host, code = open_room(sio_client, namespace="/rabisco")
    guest = sio_client("/rabisco")
    guest.emit("join_room", {"roomCode": code, "userId": "u2", "nickname": "Bia"}, namespace="/rabisco")
    host.emit("start_game", {}, namespace="/rabisco")
    host.get_received("/rabisco")
    guest.get_received("/rabisco")

    service.timers.advance(code, 1)

    ticks = [pkt["args"][0] for pkt in guest.get_received("/rabisco") if pkt["name"] == "timer_update"]
    assert ticks == [{"roomCode": code, "timer": service.settings.RABISCO_CHOOSE_SEC - 1}]
