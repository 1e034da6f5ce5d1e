from partyhub.game.engine import MAX_STROKES
from partyhub.game.models import RabiscoPhase, Variant
from partyhub.game.variants.rabisco import hint_limit


def start(table, players=2, **data):
    room = table.create(Variant.RABISCO)
    for i in range(2, players + 1):
        table.join(room, f"p{i}")
    assert table.send(room, "p1", "start_game", **data).ok
    return room


def to_drawing(table, room):
    drawer = room.current_drawer_id
    word = room.word_options[0]
    assert table.send(room, drawer, "choose_word", word=word).ok
    assert room.phase == RabiscoPhase.DRAWING
    return drawer, word


def guessers(room):
    return [pid for pid in room.turn.players if pid != room.current_drawer_id]


def test_start_requires_host_and_players(table):
    room = table.create(Variant.RABISCO)
    assert table.send(room, "p1", "start_game").error == "not_enough_players"
    table.join(room, "p2")
    assert table.send(room, "p2", "start_game").error == "only_host"
    assert table.send(room, "p1", "start_game", maxScore="lots").error == "invalid_max_score"
    assert table.send(room, "p1", "start_game", maxScore=-5).error == "invalid_max_score"
    assert room.phase == RabiscoPhase.LOBBY


def test_turn_begins_with_word_choice(table):
    room = start(table)
    assert room.phase == RabiscoPhase.CHOOSING_WORD
    assert room.current_drawer_id == room.turn.players[0]
    assert len(room.word_options) == table.service.settings.RABISCO_WORD_CHOICES
    assert room.timer_left == table.service.settings.RABISCO_CHOOSE_SEC

    other = guessers(room)[0]
    assert table.send(room, other, "choose_word", word=room.word_options[0]).error == "not_drawer"
    assert table.send(room, room.current_drawer_id, "choose_word", word="nada").error == "invalid_word"


def test_choose_word_accepts_a_word_object(table):
    room = start(table)
    word = room.word_options[1]
    assert table.send(room, room.current_drawer_id, "choose_word", wordObj={"text": word}).ok
    assert room.current_word == word
    assert room.timer_left == table.service.settings.RABISCO_DRAW_SEC


def test_two_player_game_to_the_winner(table):
    room = start(table, players=2, maxScore=10)
    drawer, word = to_drawing(table, room)
    guesser = guessers(room)[0]

    result = table.send(room, guesser, "send_message", message=word.upper())

    assert room.players[guesser].total_score == 10
    assert room.players[guesser].coins == 10
    assert room.players[drawer].total_score == 2
    assert room.players[drawer].coins == 2
    assert room.phase == RabiscoPhase.GAME_END
    assert room.game_winner_id == guesser
    winners = [e for e in result.events if e.event == "game_winner"]
    assert winners[0].payload["winnerScore"] == 10
    # The correct answer never reaches the chat.
    assert all(m.get("text") != word.upper() for m in room.chat_messages)


def test_guess_order_decays_points(table):
    room = start(table, players=3)
    drawer, word = to_drawing(table, room)
    first, second = guessers(room)

    table.send(room, first, "send_message", message=word)
    assert room.phase == RabiscoPhase.DRAWING
    table.send(room, second, "send_message", message=word)

    assert room.players[first].total_score == 10
    assert room.players[second].total_score == 9
    assert room.players[drawer].total_score == 4
    assert room.phase == RabiscoPhase.ROUND_END


def test_everyone_guessing_ends_the_turn_with_the_word(table):
    room = start(table, players=2)
    _, word = to_drawing(table, room)
    result = table.send(room, guessers(room)[0], "send_message", message=word)

    ends = [e for e in result.events if e.event == "round_end"]
    assert ends[0].payload == {"word": word}
    assert room.timer_left == table.service.settings.RABISCO_INTERMISSION_SEC


def test_hints_reveal_length_then_letters_and_cost_the_drawer(table):
    room = start(table, players=3)
    drawer, word = to_drawing(table, room)
    room.players[drawer].total_score = 20

    assert table.send(room, drawer, "give_hint").ok
    assert room.length_revealed
    assert room.hints == []
    assert room.players[drawer].total_score == 18
    view = table.service.view(room.code, guessers(room)[0])
    assert view["wordLength"] == len(word)
    assert view["currentWord"] is None

    assert table.send(room, drawer, "give_hint").ok
    assert len(room.hints) == 1
    assert word[room.hints[0]] != " "
    assert room.players[drawer].total_score == 16

    guesser = guessers(room)[0]
    assert table.send(room, guesser, "give_hint").error == "not_drawer"
    table.send(room, guesser, "send_message", message=word)
    # First guesser loses two points per revealed letter.
    assert room.players[guesser].total_score == 8


def test_hint_limit(table):
    room = start(table, players=2)
    drawer, word = to_drawing(table, room)
    limit = hint_limit(word)

    for _ in range(limit + 1):
        assert table.send(room, drawer, "give_hint").ok
    result = table.send(room, drawer, "give_hint")

    assert result.error == "hint_limit"
    assert result.notice == "Máximo de dicas atingido!"
    assert len(room.hints) == limit


def test_near_guess_is_told_privately(table):
    room = start(table, players=3)
    _, word = to_drawing(table, room)
    guesser = guessers(room)[0]

    result = table.send(room, guesser, "send_message", message=word[:-1])

    near = [e for e in result.events if e.event == "chat_message" and e.to == guesser]
    assert near[0].payload["type"] == "system-near"
    public = [e for e in result.events if e.event == "chat_message" and e.to is None]
    assert public[0].payload["text"] == word[:-1]
    assert guesser not in room.guessed_players


def test_answer_cannot_be_leaked(table):
    room = start(table, players=3)
    drawer, word = to_drawing(table, room)
    first = guessers(room)[0]

    assert table.send(room, drawer, "send_message", message=f"é {word}!").error == "answer_leak"
    table.send(room, first, "send_message", message=word)
    result = table.send(room, first, "send_message", message=word)
    assert result.error == "answer_leak"
    assert room.players[first].total_score == 10
    assert table.send(room, first, "send_message", message="boa!").ok


def test_drawing_tools(table):
    room = start(table, players=2)
    drawer, _ = to_drawing(table, room)
    stroke = {"points": [[0, 0], [5, 5]], "color": "#000", "size": 4}

    result = table.send(room, drawer, "draw_stroke", stroke=stroke)
    assert result.events[0].event == "new_stroke"
    assert table.send(room, guessers(room)[0], "draw_stroke", stroke=stroke).error == "not_drawer"
    assert table.send(room, drawer, "draw_stroke", stroke="line").error == "invalid_payload"
    table.send(room, drawer, "draw_stroke", stroke=stroke)
    assert len(room.strokes) == 2

    assert table.send(room, drawer, "undo_stroke").events[0].event == "stroke_undone"
    assert len(room.strokes) == 1
    assert table.send(room, drawer, "clear_canvas").events[0].event == "canvas_cleared"
    assert table.send(room, drawer, "undo_stroke").error == "nothing_to_undo"


def test_reconnect_receives_the_canvas(table):
    room = start(table, players=2)
    drawer, _ = to_drawing(table, room)
    table.send(room, drawer, "draw_stroke", stroke={"points": [[1, 1]]})
    other = guessers(room)[0]

    result = table.join(room, other, sid="sid-again")

    updates = [e for e in result.events if e.event == "strokes_update"]
    assert updates[0].to == other
    assert updates[0].payload["strokes"] == [{"points": [[1, 1]]}]


def test_idle_drawers_are_skipped_until_the_game_ends(table):
    room = start(table, players=2)
    seconds = table.service.settings.RABISCO_CHOOSE_SEC
    drawers = []

    for _ in range(6):
        assert room.phase == RabiscoPhase.CHOOSING_WORD
        drawers.append(room.current_drawer_id)
        table.tick(room, seconds)

    assert room.phase == RabiscoPhase.GAME_END
    assert drawers[0] != drawers[1]
    assert drawers[0::2] == [drawers[0]] * 3
    skipped = [m for m in room.chat_messages if m["type"] == "system-error"]
    assert len(skipped) == 6
    assert table.published_events("game_winner")


def test_drawing_timeout_then_intermission_moves_to_the_next_drawer(table):
    room = start(table, players=2)
    drawer, _ = to_drawing(table, room)

    table.tick(room, table.service.settings.RABISCO_DRAW_SEC)
    assert room.phase == RabiscoPhase.ROUND_END

    table.tick(room, table.service.settings.RABISCO_INTERMISSION_SEC)
    assert room.phase == RabiscoPhase.CHOOSING_WORD
    assert room.current_drawer_id != drawer
    assert room.strokes == []


def test_game_end_and_reset(table):
    room = start(table, players=2, maxScore=10)
    _, word = to_drawing(table, room)
    table.send(room, guessers(room)[0], "send_message", message=word)
    assert room.phase == RabiscoPhase.GAME_END

    assert table.send(room, "p2", "reset_game").error == "only_host"
    assert table.send(room, "p1", "reset_game").ok
    assert room.phase == RabiscoPhase.LOBBY
    assert all(p.total_score == 0 and p.coins == 0 for p in room.players.values())


def test_shop_and_sabotage(table, clock):
    room = start(table, players=3)
    drawer, word = to_drawing(table, room)
    buyer = guessers(room)[0]

    result = table.send(room, buyer, "buy_item", itemId="mirror")
    assert result.error == "insufficient_coins"
    assert result.notice == "Moedas insuficientes."
    assert table.send(room, buyer, "buy_item", itemId="rocket").error == "unknown_item"

    table.send(room, buyer, "send_message", message=word)
    result = table.send(room, buyer, "buy_item", itemId="mirror")
    assert result.ok
    assert result.events[0].to == buyer
    assert room.players[buyer].coins == 2
    assert room.players[buyer].inventory == ["mirror"]

    assert table.send(room, buyer, "use_item", itemId="earthquake").error == "item_not_owned"
    assert table.send(room, buyer, "use_item", itemId="mirror", targetId="ghost").error == "invalid_target"
    result = table.send(room, buyer, "use_item", itemId="mirror")
    assert result.events[0].event == "sabotage_triggered"
    assert room.players[buyer].inventory == []
    (active,) = room.sabotages_active.values()
    assert active["targetId"] == drawer
    assert active["type"] == "mirror"

    clock.tick(table.service.settings.RABISCO_SABOTAGE_MS)
    table.tick(room, 1)

    assert room.sabotages_active == {}
    ended = table.published_events("sabotage_ended")
    assert ended[0].payload == {"type": "mirror", "targetId": drawer}


def test_drawer_leaving_ends_the_turn(table):
    room = start(table, players=3)
    drawer, _ = to_drawing(table, room)
    next_up = room.turn.players[(room.turn.players.index(drawer) + 1) % 3]

    assert table.send(room, drawer, "leave_room").ok
    assert room.phase == RabiscoPhase.ROUND_END

    table.tick(room, table.service.settings.RABISCO_INTERMISSION_SEC)
    assert room.phase == RabiscoPhase.CHOOSING_WORD
    assert room.current_drawer_id == next_up


def test_last_opponent_leaving_finishes_the_game(table):
    room = start(table, players=2)
    to_drawing(table, room)

    table.send(room, guessers(room)[0], "leave_room")

    assert room.phase == RabiscoPhase.GAME_END
    assert len(room.players) == 1


def test_secret_word_visibility(table):
    room = start(table, players=2)
    drawer = room.current_drawer_id
    other = guessers(room)[0]

    assert table.service.view(room.code, drawer)["wordOptions"] == room.word_options
    assert table.service.view(room.code, other)["wordOptions"] == []

    _, word = to_drawing(table, room)
    assert table.service.view(room.code, drawer)["currentWord"] == word
    assert table.service.view(room.code, other)["currentWord"] is None
    assert table.service.view(room.code, other)["wordLength"] == 0

    table.tick(room, table.service.settings.RABISCO_DRAW_SEC)
    assert table.service.view(room.code, other)["currentWord"] == word


def test_canvas_history_is_bounded(table):
    room = start(table, players=2)
    drawer, _ = to_drawing(table, room)

    for i in range(MAX_STROKES + 50):
        assert table.send(room, drawer, "draw_stroke", stroke={"points": [[i, i]]}).ok

    assert len(room.strokes) == MAX_STROKES
    assert room.strokes[0] == {"points": [[50, 50]]}
    assert room.strokes[-1] == {"points": [[MAX_STROKES + 49, MAX_STROKES + 49]]}
    # Snapshots share the stroke payloads instead of copying each one.
    assert room.snapshot()["strokes"][0] is room.strokes[0]


def test_round_scores_reset_when_every_player_has_drawn(table):
    room = start(table, players=2)
    intermission = table.service.settings.RABISCO_INTERMISSION_SEC

    for _ in range(2):
        _, word = to_drawing(table, room)
        table.send(room, guessers(room)[0], "send_message", message=word)
        assert room.phase == RabiscoPhase.ROUND_END
        assert room.round == 1
        table.tick(room, intermission)

    assert room.round == 2
    assert room.phase == RabiscoPhase.CHOOSING_WORD
    assert all(p.score == 0 for p in room.players.values())
    assert all(p.total_score == 12 for p in room.players.values())
