"""Icon clue game.

One or two "masters" pick a word by difficulty vote, the rivals vote to
block an icon category, then the masters place icon tokens until a rival
types the word in chat.
"""

from __future__ import annotations

import logging

from ..aggregation import Aggregation, SubmitOutcome, TieBreak
from ..commands import ApplyResult, Command
from ..engine import VariantEngine
from ..errors import CommandRejected
from ..fuzzy import is_match
from ..models import ConceptPhase as Phase
from ..models import ConceptRoom, TurnOrder, Variant
from ..scoring import award, score_overload
from ..words import DIFFICULTIES, concept_options

logger = logging.getLogger(__name__)

MAIN_CONCEPT = "MAIN_CONCEPT"
MAX_CHAT_LENGTH = 200

_CHAT = frozenset({"chat_message"})
_ACTIVE = (Phase.CHOOSING_WORD, Phase.SABOTAGE, Phase.PLAYING)


class ConceptEngine(VariantEngine):
    variant = Variant.CONCEPT
    legal = {
        Phase.LOBBY: _CHAT | {"start_game"},
        Phase.CHOOSING_WORD: _CHAT | {"vote_word"},
        Phase.SABOTAGE: _CHAT | {"vote_sabotage"},
        Phase.PLAYING: _CHAT | {"place_token", "remove_token", "clear_board", "ding"},
        Phase.ROUND_END: _CHAT | {"next_round"},
    }
    timed_phases = frozenset({Phase.SABOTAGE, Phase.PLAYING})

    def room_fields(self) -> dict:
        return {"max_round_time": self.settings.CONCEPT_ROUND_SEC}

    def fallbacks(self) -> dict:
        return {
            Phase.SABOTAGE: self._resolve_sabotage,
            Phase.PLAYING: self._time_up,
        }

    @staticmethod
    def master_count(room: ConceptRoom) -> int:
        return 1 if len(room.players) <= 2 else 2

    def _require_master(self, room: ConceptRoom, command: Command) -> None:
        if command.player_id not in room.current_team:
            raise CommandRejected("not_master", "Apenas os Mestres dos Ícones podem fazer isso.")

    # -- membership ---------------------------------------------------------

    def on_player_left(self, room: ConceptRoom, player_id: str, result: ApplyResult) -> None:
        room.turn.remove(player_id)
        was_master = player_id in room.current_team
        if was_master:
            room.current_team.remove(player_id)

        if room.phase not in _ACTIVE:
            return
        if was_master or len(room.players) < 2:
            self._end_round(room, result, None, "Um Mestre saiu da sala.")
            return

        if room.phase == Phase.CHOOSING_WORD and room.word_votes is not None:
            room.word_votes.drop(player_id)
            if room.word_votes.is_complete():
                self._resolve_word(room, result)
        elif room.phase == Phase.SABOTAGE and room.sabotage_votes is not None:
            room.sabotage_votes.drop(player_id)
            if room.sabotage_votes.is_complete() or not room.sabotage_votes.eligible:
                self._resolve_sabotage(room, result)

    # -- word choice --------------------------------------------------------

    def on_start_game(self, room: ConceptRoom, command: Command, result: ApplyResult) -> None:
        self.require_host(room, command)
        minimum = self.settings.CONCEPT_MIN_PLAYERS
        if len(room.players) < minimum:
            raise CommandRejected("not_enough_players", f"Mínimo {minimum} jogadores.")

        order = list(room.players)
        self.rng.shuffle(order)
        room.turn = TurnOrder(order)
        room.round = 1
        self._assign_masters(room)
        self._enter_choosing(room)
        logger.info("concept game started room=%s masters=%s", room.code, room.current_team)
        result.changed()

    def _assign_masters(self, room: ConceptRoom) -> None:
        room.current_team = room.turn.acting(self.master_count(room))
        for p in room.players.values():
            p.is_acting = p.id in room.current_team

    def _enter_choosing(self, room: ConceptRoom) -> None:
        self.set_phase(room, Phase.CHOOSING_WORD)
        room.word_options = concept_options(self.rng)
        room.word_votes = Aggregation(room.current_team)
        room.current_word = {}
        room.sabotage_votes = None
        room.blocked_category = None
        room.board_state = []
        room.placed_order = []
        room.tokens_placed = 0
        room.winner = None
        room.win_reason = ""

    def on_vote_word(self, room: ConceptRoom, command: Command, result: ApplyResult) -> None:
        self._require_master(room, command)
        difficulty = command.get_str("difficulty").upper()
        if difficulty not in DIFFICULTIES:
            raise CommandRejected("invalid_difficulty")

        outcome = room.word_votes.submit(command.player_id, difficulty)
        if outcome != SubmitOutcome.PENDING and outcome != SubmitOutcome.COMPLETE:
            raise CommandRejected("already_voted")
        if outcome == SubmitOutcome.COMPLETE:
            self._resolve_word(room, result)
        result.changed()

    def _resolve_word(self, room: ConceptRoom, result: ApplyResult) -> None:
        if not room.word_votes.try_resolve():
            return
        counts = room.word_votes.counts()
        # Hardest difficulty with at least one vote wins.
        selected = next((d for d in reversed(DIFFICULTIES) if counts.get(d)), DIFFICULTIES[0])
        chosen = next((w for w in room.word_options if w["difficulty"] == selected), None)
        room.current_word = dict(chosen or room.word_options[0])
        self._enter_sabotage(room, result)

    # -- sabotage -----------------------------------------------------------

    def _enter_sabotage(self, room: ConceptRoom, result: ApplyResult) -> None:
        self.set_phase(room, Phase.SABOTAGE)
        rivals = [pid for pid in room.players if pid not in room.current_team]
        room.sabotage_votes = Aggregation(rivals)
        room.blocked_category = None
        if not rivals:
            self._resolve_sabotage(room, result)
            return
        self.start_timer(room, self.settings.CONCEPT_SABOTAGE_SEC)
        result.changed()

    def on_vote_sabotage(self, room: ConceptRoom, command: Command, result: ApplyResult) -> None:
        if command.player_id in room.current_team:
            raise CommandRejected("not_rival")
        category = command.get_str("categoryId")
        if not category:
            raise CommandRejected("invalid_category")

        outcome = room.sabotage_votes.submit(command.player_id, category)
        if outcome == SubmitOutcome.NOT_ELIGIBLE:
            raise CommandRejected("not_eligible")
        if outcome in (SubmitOutcome.DUPLICATE, SubmitOutcome.CLOSED):
            raise CommandRejected("already_voted")
        if outcome == SubmitOutcome.COMPLETE:
            self._resolve_sabotage(room, result)
        result.changed()

    def _resolve_sabotage(self, room: ConceptRoom, result: ApplyResult) -> None:
        votes = room.sabotage_votes
        if votes is not None:
            if not votes.try_resolve():
                return
            room.blocked_category, _ = votes.majority(TieBreak.RANDOM, self.rng)
        if room.blocked_category:
            result.emit("category_blocked", {"categoryId": room.blocked_category})
        self._start_round(room, result)

    # -- playing ------------------------------------------------------------

    def _start_round(self, room: ConceptRoom, result: ApplyResult) -> None:
        self.set_phase(room, Phase.PLAYING)
        room.board_state = []
        room.placed_order = []
        room.tokens_placed = 0
        room.max_round_time = self.settings.CONCEPT_ROUND_SEC
        self.start_timer(room, room.max_round_time)
        result.changed()

    def _time_up(self, room: ConceptRoom, result: ApplyResult) -> None:
        self._end_round(room, result, None, "O tempo acabou! Ninguém acertou.")

    def _end_round(self, room: ConceptRoom, result: ApplyResult, winner_id: str | None, reason: str, score: int = 0) -> None:
        self.cancel_timer(room)
        self.set_phase(room, Phase.ROUND_END)
        room.winner = winner_id
        room.win_reason = reason
        winner = room.players.get(winner_id) if winner_id else None
        result.emit(
            "round_ended",
            {
                "winner": winner.nickname if winner else None,
                "word": room.current_word.get("text") if room.current_word else None,
                "score": score,
                "reason": reason,
            },
        )
        result.changed()

    def on_place_token(self, room: ConceptRoom, command: Command, result: ApplyResult) -> None:
        self._require_master(room, command)
        icon_id = command.get_str("iconId")
        tool = command.data.get("tool")
        if not icon_id or not isinstance(tool, dict) or not tool.get("type"):
            raise CommandRejected("invalid_payload")
        category = command.get_str("categoryId") or str(tool.get("categoryId") or "")
        if room.blocked_category and category == room.blocked_category:
            raise CommandRejected("category_blocked", "Essa categoria foi bloqueada pelos rivais!")
        if not room.board_state and tool["type"] != MAIN_CONCEPT:
            raise CommandRejected("main_concept_first", "Coloque o peão de Conceito Principal (Verde) primeiro!")

        if tool["type"] == MAIN_CONCEPT:
            old = next((t for t in room.board_state if t["type"] == MAIN_CONCEPT), None)
            if old is not None:
                room.board_state.remove(old)
                room.placed_order = [
                    t for t in room.placed_order
                    if not (t["iconId"] == old["iconId"] and t["type"] == MAIN_CONCEPT)
                ]
                result.emit("token_removed", {"iconId": old["iconId"], "userId": old["placedBy"]})

        token = {
            "iconId": icon_id,
            "type": tool["type"],
            "color": tool.get("color"),
            "categoryId": category or None,
            "placedBy": command.player_id,
            "timestamp": self.ctx.clock(),
        }
        room.board_state.append(token)
        room.placed_order.append({**token, "order": len(room.placed_order) + 1})
        room.tokens_placed += 1
        result.emit("token_placed", token)
        result.changed()

    def on_remove_token(self, room: ConceptRoom, command: Command, result: ApplyResult) -> None:
        self._require_master(room, command)
        icon_id = command.get_str("iconId")

        def mine(t: dict) -> bool:
            return t["iconId"] == icon_id and t["placedBy"] == command.player_id

        if not any(mine(t) for t in room.board_state):
            raise CommandRejected("token_not_found")
        room.board_state = [t for t in room.board_state if not mine(t)]
        room.placed_order = [t for t in room.placed_order if not mine(t)]
        result.emit("token_removed", {"iconId": icon_id, "userId": command.player_id})
        result.changed()

    def on_clear_board(self, room: ConceptRoom, command: Command, result: ApplyResult) -> None:
        self._require_master(room, command)
        room.board_state = []
        room.placed_order = []
        result.emit("board_cleared")
        result.changed()

    def on_ding(self, room: ConceptRoom, command: Command, result: ApplyResult) -> None:
        self._require_master(room, command)
        result.emit("ding_activated", {"activatedBy": command.player_id})

    def on_chat_message(self, room: ConceptRoom, command: Command, result: ApplyResult) -> None:
        text = command.get_str("text")[:MAX_CHAT_LENGTH]
        if not text:
            raise CommandRejected("empty_message")
        player = room.players[command.player_id]
        is_master = player.id in room.current_team

        message = {
            "id": str(self.ctx.clock()),
            "userId": player.id,
            "playerName": player.nickname,
            "text": text,
            "timestamp": self.ctx.clock(),
            "isMaster": is_master,
        }
        self.append_chat(room, message)
        result.emit("chat_message", message)

        # Masters may chat, but never score.
        if is_master or room.phase != Phase.PLAYING or not room.current_word:
            return

        match = is_match(text, room.current_word.get("text"))
        if match.exact:
            self._correct_guess(room, player.id, result)
        elif match.close:
            for master_id in room.current_team:
                result.tell(master_id, "close_guess", {"playerName": player.nickname, "guess": text})

    def _correct_guess(self, room: ConceptRoom, player_id: str, result: ApplyResult) -> None:
        seconds_used = max(0, room.max_round_time - room.timer_left)
        delta = score_overload(room.tokens_placed, seconds_used)
        points = delta.others["guesser"]

        self.reset_round_scores(room)
        player = room.players[player_id]
        award(player, points, round_points=points)
        for master_id in room.current_team:
            master = room.players.get(master_id)
            if master is not None:
                award(master, delta.actor, round_points=delta.actor)

        self._end_round(
            room,
            result,
            player_id,
            f"{player.nickname} acertou a palavra! (+{points} pts)",
            score=points,
        )

    # -- next round ---------------------------------------------------------

    def on_next_round(self, room: ConceptRoom, command: Command, result: ApplyResult) -> None:
        if len(room.players) < 2:
            raise CommandRejected("not_enough_players", "Mínimo 2 jogadores.")
        room.turn.advance(max(1, len(room.current_team)))
        self._assign_masters(room)
        room.round += 1
        room.chat_messages = []
        self.reset_round_scores(room)
        self._enter_choosing(room)
        result.changed()
