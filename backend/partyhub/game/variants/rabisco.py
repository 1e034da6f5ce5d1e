"""Draw and guess.

Players take turns drawing a word picked from a few options while the rest
race to type it. Earlier correct guesses earn more; hints cost the drawer
points and lower what guessers earn. Points double as coins for sabotage
items.
"""

from __future__ import annotations

import itertools
import logging
import math

from ..commands import ApplyResult, Command
from ..engine import VariantEngine
from ..errors import CommandRejected
from ..fuzzy import contains_answer, is_match, is_near_guess
from ..models import PlayerRecord
from ..models import RabiscoPhase as Phase
from ..models import RabiscoRoom, TurnOrder, Variant
from ..scoring import HINT_PENALTY, award, deduct, score_order_decay
from ..words import RABISCO_WORDS, pick_words

logger = logging.getLogger(__name__)

HINT_RATIO = 0.3
MAX_MESSAGE_LENGTH = 200
SYSTEM_AUTHOR = "Sistema"

_sabotage_ids = itertools.count(1)

_SHOP = frozenset({"send_message", "buy_item"})


def hint_limit(word: str) -> int:
    return math.ceil(len(word.replace(" ", "")) * HINT_RATIO)


class RabiscoEngine(VariantEngine):
    variant = Variant.RABISCO
    legal = {
        Phase.LOBBY: _SHOP | {"start_game"},
        Phase.CHOOSING_WORD: _SHOP | {"choose_word", "use_item"},
        Phase.DRAWING: _SHOP | {"give_hint", "draw_stroke", "undo_stroke", "clear_canvas", "use_item"},
        Phase.ROUND_END: _SHOP,
        Phase.GAME_END: frozenset({"send_message", "reset_game"}),
    }
    timed_phases = frozenset({Phase.CHOOSING_WORD, Phase.DRAWING, Phase.ROUND_END})

    def room_fields(self) -> dict:
        return {
            "max_rounds": self.settings.RABISCO_MAX_ROUNDS,
            "max_score": self.settings.RABISCO_MAX_SCORE,
        }

    def fallbacks(self) -> dict:
        return {
            Phase.CHOOSING_WORD: self._skip_turn,
            Phase.DRAWING: self._end_turn,
            Phase.ROUND_END: self._next_turn,
        }

    def _require_drawer(self, room: RabiscoRoom, command: Command) -> None:
        if command.player_id != room.current_drawer_id:
            raise CommandRejected("not_drawer")

    def _system(self, text: str, kind: str) -> dict:
        return {"id": self.ctx.clock(), "type": kind, "text": text, "author": SYSTEM_AUTHOR}

    # -- membership ---------------------------------------------------------

    def on_player_joined(self, room: RabiscoRoom, player: PlayerRecord, result: ApplyResult) -> None:
        if room.strokes:
            result.tell(player.id, "strokes_update", {"strokes": list(room.strokes)})

    def on_player_left(self, room: RabiscoRoom, player_id: str, result: ApplyResult) -> None:
        was_drawer = player_id == room.current_drawer_id
        room.turn.remove(player_id, hold=was_drawer)
        if player_id in room.guessed_players:
            room.guessed_players.remove(player_id)

        if room.phase in (Phase.LOBBY, Phase.GAME_END):
            return
        if len(room.players) < 2:
            self._finish_game(room, result)
            return

        if was_drawer:
            room.current_drawer_id = None
            if room.phase == Phase.DRAWING:
                self._end_turn(room, result)
            elif room.phase == Phase.CHOOSING_WORD:
                self._next_turn(room, result)
        elif room.phase == Phase.DRAWING and self._everyone_guessed(room):
            self._end_turn(room, result)

    # -- turn flow ----------------------------------------------------------

    def on_start_game(self, room: RabiscoRoom, command: Command, result: ApplyResult) -> None:
        self.require_host(room, command)
        minimum = self.settings.RABISCO_MIN_PLAYERS
        if len(room.players) < minimum:
            raise CommandRejected("not_enough_players", f"Mínimo {minimum} jogadores.")
        max_score = command.data.get("maxScore")
        if max_score not in (None, ""):
            try:
                max_score = int(max_score)
            except (TypeError, ValueError):
                raise CommandRejected("invalid_max_score")
            if max_score <= 0:
                raise CommandRejected("invalid_max_score")
            room.max_score = max_score

        order = list(room.players)
        self.rng.shuffle(order)
        room.turn = TurnOrder(order)
        room.round = 1
        room.game_winner_id = None
        for p in room.players.values():
            p.score = 0
            p.total_score = 0
        self._begin_turn(room)
        logger.info("rabisco game started room=%s max_score=%s", room.code, room.max_score)
        result.changed()

    def _begin_turn(self, room: RabiscoRoom) -> None:
        room.current_drawer_id = room.turn.acting()[0]
        for p in room.players.values():
            p.is_acting = p.id == room.current_drawer_id
        room.word_options = pick_words(RABISCO_WORDS, self.settings.RABISCO_WORD_CHOICES, self.rng)
        room.current_word = None
        room.hints = []
        room.length_revealed = False
        room.strokes = []
        room.guessed_players = []
        room.sabotages_active = {}
        self.set_phase(room, Phase.CHOOSING_WORD)
        self.start_timer(room, self.settings.RABISCO_CHOOSE_SEC)

    def on_choose_word(self, room: RabiscoRoom, command: Command, result: ApplyResult) -> None:
        self._require_drawer(room, command)
        word = command.get_str("word")
        if not word and isinstance(command.data.get("wordObj"), dict):
            word = str(command.data["wordObj"].get("text") or "").strip()
        if word not in room.word_options:
            raise CommandRejected("invalid_word")

        room.current_word = word
        room.word_options = []
        self.set_phase(room, Phase.DRAWING)
        self.start_timer(room, self.settings.RABISCO_DRAW_SEC)
        result.changed()

    def _skip_turn(self, room: RabiscoRoom, result: ApplyResult) -> None:
        message = self._system("Jogador dormiu no ponto e perdeu a vez!", "system-error")
        self.append_chat(room, message)
        result.emit("chat_message", message)
        self._next_turn(room, result)

    def _everyone_guessed(self, room: RabiscoRoom) -> bool:
        guessers = [pid for pid in room.players if pid != room.current_drawer_id]
        return bool(guessers) and all(pid in room.guessed_players for pid in guessers)

    def _end_turn(self, room: RabiscoRoom, result: ApplyResult) -> None:
        self.cancel_timer(room)
        self.set_phase(room, Phase.ROUND_END)
        room.sabotages_active = {}
        for p in room.players.values():
            p.is_acting = False
        result.emit("round_end", {"word": room.current_word})

        if any(p.total_score >= room.max_score for p in room.players.values()):
            self._finish_game(room, result)
            return
        self.start_timer(room, self.settings.RABISCO_INTERMISSION_SEC)

    def _next_turn(self, room: RabiscoRoom, result: ApplyResult) -> None:
        self.cancel_timer(room)
        if room.turn.advance():
            room.round += 1
            self.reset_round_scores(room)
        if room.round > room.max_rounds or len(room.players) < 2:
            self._finish_game(room, result)
            return
        self._begin_turn(room)

    def _finish_game(self, room: RabiscoRoom, result: ApplyResult) -> None:
        self.cancel_timer(room)
        self.set_phase(room, Phase.GAME_END)
        room.current_drawer_id = None
        room.sabotages_active = {}
        for p in room.players.values():
            p.is_acting = False

        standings = sorted(room.players.values(), key=lambda p: -p.total_score)
        winner = standings[0] if standings else None
        room.game_winner_id = winner.id if winner else None
        result.emit(
            "game_winner",
            {
                "winnerId": room.game_winner_id,
                "winnerName": winner.nickname if winner else None,
                "winnerScore": winner.total_score if winner else 0,
                "standings": [{"id": p.id, "totalScore": p.total_score} for p in standings],
            },
        )
        logger.info("rabisco game over room=%s winner=%s", room.code, room.game_winner_id)

    def on_reset_game(self, room: RabiscoRoom, command: Command, result: ApplyResult) -> None:
        self.require_host(room, command)
        self.cancel_timer(room)
        for p in room.players.values():
            p.score = 0
            p.total_score = 0
            p.coins = 0
            p.inventory = []
            p.is_acting = False
        room.turn = TurnOrder()
        room.round = 1
        room.current_drawer_id = None
        room.current_word = None
        room.word_options = []
        room.hints = []
        room.length_revealed = False
        room.strokes = []
        room.guessed_players = []
        room.game_winner_id = None
        room.chat_messages = []
        self.set_phase(room, Phase.LOBBY)
        result.changed()

    # -- drawing ------------------------------------------------------------

    def on_give_hint(self, room: RabiscoRoom, command: Command, result: ApplyResult) -> None:
        self._require_drawer(room, command)
        word = room.current_word or ""
        if len(room.hints) >= hint_limit(word):
            raise CommandRejected("hint_limit", "Máximo de dicas atingido!")

        drawer = room.players[command.player_id]
        if not room.length_revealed:
            room.length_revealed = True
        else:
            unrevealed = [i for i, ch in enumerate(word) if ch != " " and i not in room.hints]
            if not unrevealed:
                raise CommandRejected("hint_limit", "Máximo de dicas atingido!")
            room.hints.append(self.rng.choice(unrevealed))
        deduct(drawer, HINT_PENALTY)
        drawer.score = max(0, drawer.score - HINT_PENALTY)
        result.emit("hint_given", {"hints": len(room.hints), "lengthRevealed": room.length_revealed})
        result.changed()

    def on_draw_stroke(self, room: RabiscoRoom, command: Command, result: ApplyResult) -> None:
        self._require_drawer(room, command)
        stroke = command.data.get("stroke")
        if not isinstance(stroke, dict):
            raise CommandRejected("invalid_payload")
        self.append_stroke(room, stroke)
        result.emit("new_stroke", stroke)

    def on_undo_stroke(self, room: RabiscoRoom, command: Command, result: ApplyResult) -> None:
        self._require_drawer(room, command)
        if not room.strokes:
            raise CommandRejected("nothing_to_undo")
        room.strokes.pop()
        result.emit("stroke_undone")

    def on_clear_canvas(self, room: RabiscoRoom, command: Command, result: ApplyResult) -> None:
        self._require_drawer(room, command)
        room.strokes = []
        result.emit("canvas_cleared")

    # -- chat & guesses -----------------------------------------------------

    def on_send_message(self, room: RabiscoRoom, command: Command, result: ApplyResult) -> None:
        text = command.get_str("message")[:MAX_MESSAGE_LENGTH]
        if not text:
            raise CommandRejected("empty_message")
        player = room.players[command.player_id]

        if room.phase == Phase.DRAWING and room.current_word:
            already = player.id == room.current_drawer_id or player.id in room.guessed_players
            if already:
                if contains_answer(text, room.current_word):
                    raise CommandRejected("answer_leak", "Você não pode revelar a palavra!")
            elif is_match(text, room.current_word).exact:
                self._correct_guess(room, player, result)
                return
            elif is_near_guess(text, room.current_word):
                result.tell(player.id, "chat_message", self._system("Está perto!", "system-near"))

        message = {
            "id": self.ctx.clock(),
            "text": text,
            "author": player.nickname,
            "authorId": player.id,
            "type": "user",
        }
        self.append_chat(room, message)
        result.emit("chat_message", message)

    def _correct_guess(self, room: RabiscoRoom, player: PlayerRecord, result: ApplyResult) -> None:
        room.guessed_players.append(player.id)
        order = len(room.guessed_players) - 1
        delta = score_order_decay(order, len(room.hints))
        points = delta.others["guesser"]

        award(player, points)
        player.coins += points
        drawer = room.players.get(room.current_drawer_id)
        if drawer is not None:
            award(drawer, delta.actor)
            drawer.coins += delta.actor

        result.emit("player_guessed", {"playerId": player.id, "nickname": player.nickname, "score": points})
        if self._everyone_guessed(room):
            self._end_turn(room, result)
        result.changed()

    # -- items --------------------------------------------------------------

    def on_buy_item(self, room: RabiscoRoom, command: Command, result: ApplyResult) -> None:
        item = command.get_str("itemId")
        price = self.settings.RABISCO_ITEM_PRICES.get(item)
        if price is None:
            raise CommandRejected("unknown_item")
        player = room.players[command.player_id]
        if player.coins < price:
            raise CommandRejected("insufficient_coins", "Moedas insuficientes.")
        player.coins -= price
        player.inventory.append(item)
        result.tell(player.id, "item_bought", {"itemId": item, "coins": player.coins})
        result.changed()

    def on_use_item(self, room: RabiscoRoom, command: Command, result: ApplyResult) -> None:
        item = command.get_str("itemId")
        player = room.players[command.player_id]
        if item not in player.inventory:
            raise CommandRejected("item_not_owned")
        target_id = command.get_str("targetId") or room.current_drawer_id
        if target_id not in room.players:
            raise CommandRejected("invalid_target")

        player.inventory.remove(item)
        now = self.ctx.clock()
        sabotage_id = f"{now}-{next(_sabotage_ids)}"
        room.sabotages_active[sabotage_id] = {
            "type": item,
            "sourceId": player.id,
            "targetId": target_id,
            "startTime": now,
            "duration": self.settings.RABISCO_SABOTAGE_MS,
        }
        result.emit("sabotage_triggered", {"type": item, "sourceName": player.nickname, "targetId": target_id})
        result.changed()

    def on_tick(self, room: RabiscoRoom, result: ApplyResult) -> None:
        now = self.ctx.clock()
        expired = [
            sid for sid, s in room.sabotages_active.items()
            if now - s["startTime"] >= s["duration"]
        ]
        for sid in expired:
            s = room.sabotages_active.pop(sid)
            result.emit("sabotage_ended", {"type": s["type"], "targetId": s["targetId"]})
        if expired:
            result.changed()
