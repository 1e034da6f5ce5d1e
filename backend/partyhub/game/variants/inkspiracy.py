"""Impostor drawing game.

A curator writes two words: the innocents draw the real one, a secret
impostor only gets a decoy. After every drawer took ``max_rounds`` turns the
non-curators vote on who the impostor is. A caught impostor still wins by
guessing the real word.
"""

from __future__ import annotations

import logging

from ..aggregation import Aggregation, SubmitOutcome, TieBreak
from ..commands import ApplyResult, Command
from ..engine import VariantEngine
from ..errors import CommandRejected
from ..fuzzy import is_match
from ..models import InkspiracyPhase as Phase
from ..models import InkspiracyRoom, PlayerRecord, TurnOrder, Variant
from ..scoring import award

logger = logging.getLogger(__name__)

_ANY = frozenset({"reset_game"})


class InkspiracyEngine(VariantEngine):
    variant = Variant.INKSPIRACY
    legal = {
        Phase.LOBBY: _ANY | {"start_game", "update_theme"},
        Phase.WORDS: _ANY | {"submit_words", "update_theme"},
        Phase.DRAWING: _ANY | {"draw_stroke"},
        Phase.VOTING: _ANY | {"vote", "end_voting"},
        Phase.GUESS: _ANY | {"submit_guess"},
        Phase.RESULTS: _ANY | {"next_round"},
        Phase.GAME_WINNER: _ANY,
    }
    timed_phases = frozenset({Phase.VOTING, Phase.GUESS})

    def room_fields(self) -> dict:
        return {"max_rounds": self.settings.INKSPIRACY_MAX_ROUNDS}

    def fallbacks(self) -> dict:
        return {
            Phase.VOTING: self._resolve_votes,
            Phase.GUESS: self._guess_timed_out,
        }

    # -- membership ---------------------------------------------------------

    def on_player_joined(self, room: InkspiracyRoom, player: PlayerRecord, result: ApplyResult) -> None:
        if room.strokes:
            result.tell(player.id, "strokes_update", {"strokes": list(room.strokes)})

    def on_player_left(self, room: InkspiracyRoom, player_id: str, result: ApplyResult) -> None:
        in_round = room.phase not in (Phase.LOBBY, Phase.RESULTS, Phase.GAME_WINNER)
        curator_left = room.curator_id == player_id

        if in_round and (player_id == room.impostor_id or (curator_left and room.phase == Phase.WORDS)):
            room.curator_id = room.host_id
            self._abort_round(room, result, "Um jogador essencial saiu da sala.")
            return
        if curator_left and not in_round:
            room.curator_id = room.host_id

        wrapped = room.turn.remove(player_id)
        if room.phase == Phase.DRAWING:
            if not room.turn.players:
                self._abort_round(room, result, "Não há mais desenhistas.")
                return
            if wrapped:
                self._finish_cycle(room, result)
        elif room.phase == Phase.VOTING and room.votes is not None and not room.votes.resolved:
            room.votes.drop(player_id)
            if room.votes.is_complete() or not room.votes.eligible:
                self._resolve_votes(room, result)

    def _abort_round(self, room: InkspiracyRoom, result: ApplyResult, reason: str) -> None:
        self.cancel_timer(room)
        self._clear_round(room)
        self.set_phase(room, Phase.LOBBY)
        result.emit("round_aborted", {"reason": reason})

    # -- lobby --------------------------------------------------------------

    def on_update_theme(self, room: InkspiracyRoom, command: Command, result: ApplyResult) -> None:
        if command.player_id not in (room.curator_id, room.host_id):
            raise CommandRejected("not_curator")
        room.theme = command.get_str("theme")[:60]
        result.changed()

    def on_start_game(self, room: InkspiracyRoom, command: Command, result: ApplyResult) -> None:
        self.require_host(room, command)
        minimum = self.settings.INKSPIRACY_MIN_PLAYERS
        if len(room.players) < minimum:
            raise CommandRejected("not_enough_players", f"Mínimo {minimum} jogadores.")
        if room.curator_id not in room.players:
            room.curator_id = room.host_id

        drawers = [pid for pid in room.players if pid != room.curator_id]
        room.impostor_id = self.rng.choice(drawers)
        order = list(drawers)
        self.rng.shuffle(order)
        room.turn = TurnOrder(order)
        room.round = 1
        room.strokes = []
        room.votes = None
        room.votes_revealed = False
        room.winner = None
        room.win_reason = ""
        for p in room.players.values():
            p.is_acting = p.id == room.curator_id
            p.votes_received = 0

        self.set_phase(room, Phase.WORDS)
        logger.info("inkspiracy game started room=%s players=%d", room.code, len(room.players))
        result.changed()

    def on_submit_words(self, room: InkspiracyRoom, command: Command, result: ApplyResult) -> None:
        if command.player_id != room.curator_id:
            raise CommandRejected("not_curator")
        innocent = command.get_str("wordInnocent")
        impostor = command.get_str("wordImpostor")
        if not innocent or not impostor:
            raise CommandRejected("invalid_words", "Informe as duas palavras.")

        room.word_innocent = innocent
        room.word_impostor = impostor
        self.set_phase(room, Phase.DRAWING)
        self._mark_drawer(room)
        result.changed()

    # -- drawing ------------------------------------------------------------

    def _mark_drawer(self, room: InkspiracyRoom) -> None:
        acting = set(room.turn.acting())
        for p in room.players.values():
            p.is_acting = p.id in acting

    def on_draw_stroke(self, room: InkspiracyRoom, command: Command, result: ApplyResult) -> None:
        if command.player_id not in room.turn.acting():
            raise CommandRejected("not_your_turn")
        stroke = command.data.get("stroke")
        if not isinstance(stroke, dict):
            raise CommandRejected("invalid_payload")

        stroke = {**stroke, "playerId": command.player_id}
        self.append_stroke(room, stroke)
        result.emit("new_stroke", stroke)

        if room.turn.advance():
            self._finish_cycle(room, result)
        else:
            self._mark_drawer(room)
        result.changed()

    def _finish_cycle(self, room: InkspiracyRoom, result: ApplyResult) -> None:
        room.round += 1
        if room.round > room.max_rounds:
            self._open_voting(room, result)
        else:
            self._mark_drawer(room)

    # -- voting -------------------------------------------------------------

    def _open_voting(self, room: InkspiracyRoom, result: ApplyResult) -> None:
        self.set_phase(room, Phase.VOTING)
        room.votes = Aggregation([pid for pid in room.players if pid != room.curator_id])
        room.votes_revealed = False
        for p in room.players.values():
            p.votes_received = 0
            p.is_acting = False
        self.start_timer(room, self.settings.INKSPIRACY_VOTE_SEC)
        result.changed()

    def on_vote(self, room: InkspiracyRoom, command: Command, result: ApplyResult) -> None:
        suspect_id = command.get_str("suspectId")
        if suspect_id not in room.players or suspect_id == command.player_id:
            raise CommandRejected("invalid_suspect")

        outcome = room.votes.submit(command.player_id, suspect_id)
        if outcome == SubmitOutcome.NOT_ELIGIBLE:
            raise CommandRejected("not_eligible")
        if outcome in (SubmitOutcome.DUPLICATE, SubmitOutcome.CLOSED):
            raise CommandRejected("already_voted")

        if outcome == SubmitOutcome.COMPLETE:
            self._resolve_votes(room, result)
        else:
            result.emit(
                "votes_update",
                {"votes": [{"voterId": v, "id": "hidden"} for v in room.votes.submissions]},
            )
        result.changed()

    def on_end_voting(self, room: InkspiracyRoom, command: Command, result: ApplyResult) -> None:
        if command.player_id not in (room.host_id, room.curator_id):
            raise CommandRejected("not_allowed")
        self._resolve_votes(room, result)

    def _resolve_votes(self, room: InkspiracyRoom, result: ApplyResult) -> None:
        if room.votes is None or not room.votes.try_resolve():
            return
        self.cancel_timer(room)

        counts = room.votes.counts()
        for p in room.players.values():
            p.votes_received = counts.get(p.id, 0)

        # A tie, or no votes at all, expels nobody.
        expelled, tied = room.votes.majority(TieBreak.NONE)
        room.votes_revealed = True
        result.emit(
            "votes_revealed",
            {"counts": counts, "expelledId": expelled, "tie": expelled is None},
        )

        if expelled is not None and expelled == room.impostor_id:
            self.set_phase(room, Phase.GUESS)
            self.start_timer(room, self.settings.INKSPIRACY_GUESS_SEC)
        elif expelled is None:
            self._impostor_wins(room, result, "O caos reinou (Empate)")
        else:
            self._impostor_wins(room, result, "Um inocente foi expulso")
        result.changed()

    # -- results ------------------------------------------------------------

    def on_submit_guess(self, room: InkspiracyRoom, command: Command, result: ApplyResult) -> None:
        if command.player_id != room.impostor_id:
            raise CommandRejected("not_impostor")
        guess = command.get_str("guess")
        if not guess:
            raise CommandRejected("invalid_guess")

        self.cancel_timer(room)
        if is_match(guess, room.word_innocent).exact:
            self._impostor_wins(room, result, "O Falsificador descobriu a palavra secreta!")
        else:
            self._innocents_win(room, result, f"O Falsificador foi pego e errou o chute! ('{guess}' não era a palavra)")
        result.changed()

    def _guess_timed_out(self, room: InkspiracyRoom, result: ApplyResult) -> None:
        self._innocents_win(room, result, "O Falsificador não respondeu a tempo!")

    def _impostor_wins(self, room: InkspiracyRoom, result: ApplyResult, reason: str) -> None:
        self.reset_round_scores(room)
        impostor = room.players.get(room.impostor_id)
        if impostor is not None:
            points = self.settings.INKSPIRACY_IMPOSTOR_WIN
            award(impostor, points, round_points=points)
        room.winner = "IMPOSTOR"
        room.win_reason = reason
        self._enter_results(room, result)

    def _innocents_win(self, room: InkspiracyRoom, result: ApplyResult, reason: str) -> None:
        self.reset_round_scores(room)
        points = self.settings.INKSPIRACY_INNOCENT_WIN
        for p in room.players.values():
            if p.id != room.impostor_id:
                award(p, points, round_points=points)
        room.winner = "INNOCENTS"
        room.win_reason = reason
        self._enter_results(room, result)

    def _enter_results(self, room: InkspiracyRoom, result: ApplyResult) -> None:
        self.set_phase(room, Phase.RESULTS)
        result.emit("round_ended", {"winner": room.winner, "winReason": room.win_reason})

        leader = self.leader(room, self.settings.INKSPIRACY_WIN_THRESHOLD)
        if leader is None:
            return
        self.set_phase(room, Phase.GAME_WINNER)
        room.game_winner_id = leader.id
        result.emit(
            "game_winner",
            {
                "winnerId": leader.id,
                "winnerName": leader.nickname,
                "winnerScore": leader.total_score,
                "standings": [
                    {"id": p.id, "totalScore": p.total_score}
                    for p in sorted(room.players.values(), key=lambda p: -p.total_score)
                ],
            },
        )

    def _clear_round(self, room: InkspiracyRoom) -> None:
        room.word_innocent = ""
        room.word_impostor = ""
        room.theme = ""
        room.turn = TurnOrder()
        room.round = 1
        room.impostor_id = ""
        room.winner = None
        room.win_reason = ""
        room.votes = None
        room.votes_revealed = False
        room.strokes = []
        for p in room.players.values():
            p.votes_received = 0
            p.score = 0
            p.is_acting = p.id == room.curator_id

    def on_next_round(self, room: InkspiracyRoom, command: Command, result: ApplyResult) -> None:
        order = list(room.players)
        if room.curator_id in order:
            room.curator_id = order[(order.index(room.curator_id) + 1) % len(order)]
        else:
            room.curator_id = order[0]
        self._clear_round(room)
        self.set_phase(room, Phase.LOBBY)
        result.changed()

    def on_reset_game(self, room: InkspiracyRoom, command: Command, result: ApplyResult) -> None:
        self.require_host(room, command)
        self.cancel_timer(room)
        room.curator_id = room.host_id
        room.game_winner_id = None
        self._clear_round(room)
        for p in room.players.values():
            p.total_score = 0
        self.set_phase(room, Phase.LOBBY)
        result.changed()
