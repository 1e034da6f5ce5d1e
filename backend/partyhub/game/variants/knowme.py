"""Dial guessing game.

A master sees a hidden target on a 0-100 dial, picks a card with two
opposite concepts and writes a clue; the others (or, in team mode, the
master's team) place the dial. Points are banded by distance.
"""

from __future__ import annotations

import logging

from ..aggregation import Aggregation, SubmitOutcome
from ..commands import ApplyResult, Command
from ..engine import VariantEngine
from ..errors import CommandRejected
from ..models import KnowmePhase as Phase
from ..models import KnowmeRoom, PlayerRecord, TurnOrder, Variant
from ..scoring import PROXIMITY_BANDS, award, proximity_points, score_proximity
from ..words import knowme_cards

logger = logging.getLogger(__name__)

MODES = ("SINGLE", "TEAM")
MAX_CLUE_LENGTH = 100
BULLSEYE = PROXIMITY_BANDS[0][1]

_ACTIVE = (Phase.SETUP_TURN, Phase.CLUE_WRITING, Phase.GUESSING)


def team_key(team: int) -> str:
    return f"team:{team}"


class KnowmeEngine(VariantEngine):
    variant = Variant.KNOWME
    legal = {
        Phase.LOBBY: frozenset({"set_mode", "switch_team", "start_game"}),
        Phase.SETUP_TURN: frozenset({"select_card"}),
        Phase.CLUE_WRITING: frozenset({"submit_clue"}),
        Phase.GUESSING: frozenset({"submit_guess"}),
        Phase.REVEAL: frozenset({"next_round", "reset_game"}),
        Phase.GAME_OVER: frozenset({"reset_game"}),
    }
    timed_phases = frozenset({Phase.GUESSING})

    def fallbacks(self) -> dict:
        return {Phase.GUESSING: self._reveal}

    # -- teams & membership -------------------------------------------------

    def on_player_added(self, room: KnowmeRoom, player: PlayerRecord, result: ApplyResult) -> None:
        sizes = {n: len(t["players"]) for n, t in room.teams.items()}
        player.team = 1 if sizes[1] <= sizes[2] else 2
        room.teams[player.team]["players"].append(player.id)
        if room.phase != Phase.LOBBY and room.turn.players:
            room.turn.players.append(player.id)

    def on_player_left(self, room: KnowmeRoom, player_id: str, result: ApplyResult) -> None:
        for t in room.teams.values():
            if player_id in t["players"]:
                t["players"].remove(player_id)
        was_master = player_id == room.current_master_id
        room.turn.remove(player_id, hold=was_master)

        if room.phase not in _ACTIVE:
            return
        if len(room.players) < self.settings.KNOWME_MIN_PLAYERS or not self._teams_ready(room):
            self._abort(room, result, "Jogadores insuficientes para continuar.")
            return

        if was_master:
            self.cancel_timer(room)
            self._rotate_master(room, keep_team=True)
            self._start_turn(room)
            result.emit("master_left", {"currentMasterId": room.current_master_id})
        elif room.phase == Phase.GUESSING and room.guesses is not None and room.mode == "SINGLE":
            room.guesses.drop(player_id)
            if room.guesses.is_complete() or not room.guesses.eligible:
                self._reveal(room, result)

    def _teams_ready(self, room: KnowmeRoom) -> bool:
        if room.mode != "TEAM":
            return True
        return all(len(t["players"]) >= 2 for t in room.teams.values())

    def _abort(self, room: KnowmeRoom, result: ApplyResult, reason: str) -> None:
        self.cancel_timer(room)
        self.set_phase(room, Phase.LOBBY)
        room.current_master_id = None
        room.guesses = None
        room.selected_card = None
        room.clue = ""
        room.card_options = []
        result.emit("round_aborted", {"reason": reason})

    # -- lobby --------------------------------------------------------------

    def on_set_mode(self, room: KnowmeRoom, command: Command, result: ApplyResult) -> None:
        self.require_host(room, command)
        mode = command.get_str("mode").upper()
        if mode not in MODES:
            raise CommandRejected("invalid_mode")
        room.mode = mode
        result.changed()

    def on_switch_team(self, room: KnowmeRoom, command: Command, result: ApplyResult) -> None:
        team = command.data.get("teamId")
        if isinstance(team, str) and team.isdigit():
            team = int(team)
        if team not in room.teams:
            raise CommandRejected("invalid_team")

        player = room.players[command.player_id]
        if player.team in room.teams and player.id in room.teams[player.team]["players"]:
            room.teams[player.team]["players"].remove(player.id)
        player.team = team
        room.teams[team]["players"].append(player.id)
        result.changed()

    def on_start_game(self, room: KnowmeRoom, command: Command, result: ApplyResult) -> None:
        self.require_host(room, command)
        minimum = self.settings.KNOWME_MIN_PLAYERS
        if len(room.players) < minimum:
            raise CommandRejected("not_enough_players", f"Mínimo {minimum} jogadores.")
        if not self._teams_ready(room):
            raise CommandRejected("teams_incomplete", "Cada equipe precisa de pelo menos 2 jogadores.")

        order = list(room.players)
        self.rng.shuffle(order)
        room.turn = TurnOrder(order)
        room.round = 1
        room.current_team_turn = 1
        room.winner_team = None
        room.last_round_points = 0
        if room.mode == "SINGLE":
            room.current_master_id = room.turn.acting()[0]
        else:
            room.current_master_id = self.rng.choice(room.teams[room.current_team_turn]["players"])
        self._start_turn(room)
        logger.info("knowme game started room=%s mode=%s", room.code, room.mode)
        result.changed()

    # -- turn ---------------------------------------------------------------

    def _start_turn(self, room: KnowmeRoom) -> None:
        self.set_phase(room, Phase.SETUP_TURN)
        room.clue = ""
        room.selected_card = None
        room.guesses = None
        room.card_options = knowme_cards(self.rng)
        room.target_position = self.rng.randint(0, 100)
        for p in room.players.values():
            p.is_acting = p.id == room.current_master_id

    def _rotate_master(self, room: KnowmeRoom, keep_team: bool = False) -> None:
        if room.mode == "SINGLE":
            room.turn.advance()
            room.current_master_id = room.turn.acting()[0]
            return
        if not keep_team and room.last_round_points != BULLSEYE:
            room.current_team_turn = 2 if room.current_team_turn == 1 else 1
        room.current_master_id = self.rng.choice(room.teams[room.current_team_turn]["players"])

    def _require_master(self, room: KnowmeRoom, command: Command) -> None:
        if command.player_id != room.current_master_id:
            raise CommandRejected("not_master")

    def on_select_card(self, room: KnowmeRoom, command: Command, result: ApplyResult) -> None:
        self._require_master(room, command)
        index = command.data.get("cardIndex")
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(room.card_options):
            raise CommandRejected("invalid_card")
        room.selected_card = dict(room.card_options[index])
        self.set_phase(room, Phase.CLUE_WRITING)
        result.changed()

    def on_submit_clue(self, room: KnowmeRoom, command: Command, result: ApplyResult) -> None:
        self._require_master(room, command)
        clue = command.get_str("clue")[:MAX_CLUE_LENGTH]
        if not clue:
            raise CommandRejected("invalid_clue", "Escreva uma dica.")

        room.clue = clue
        if room.mode == "SINGLE":
            eligible = [pid for pid in room.players if pid != room.current_master_id]
        else:
            eligible = [team_key(room.current_team_turn)]
        room.guesses = Aggregation(eligible)
        self.set_phase(room, Phase.GUESSING)
        self.start_timer(room, self.settings.KNOWME_GUESS_SEC)
        result.changed()

    def on_submit_guess(self, room: KnowmeRoom, command: Command, result: ApplyResult) -> None:
        if command.player_id == room.current_master_id:
            raise CommandRejected("master_cannot_guess")
        position = command.data.get("position")
        if isinstance(position, bool) or not isinstance(position, (int, float)) or not 0 <= position <= 100:
            raise CommandRejected("invalid_position")

        key = command.player_id
        if room.mode == "TEAM":
            team = room.players[command.player_id].team
            if team != room.current_team_turn:
                raise CommandRejected("not_your_team")
            key = team_key(team)

        outcome = room.guesses.submit(key, position)
        if outcome == SubmitOutcome.NOT_ELIGIBLE:
            raise CommandRejected("not_eligible")
        if outcome in (SubmitOutcome.DUPLICATE, SubmitOutcome.CLOSED):
            raise CommandRejected("already_guessed")

        result.emit("guess_submitted", {"userId": command.player_id})
        if outcome == SubmitOutcome.COMPLETE:
            self._reveal(room, result)
        result.changed()

    def _reveal(self, room: KnowmeRoom, result: ApplyResult) -> None:
        if room.guesses is None or not room.guesses.try_resolve():
            return
        self.cancel_timer(room)
        self.reset_round_scores(room)
        target = room.target_position

        if room.mode == "SINGLE":
            delta = score_proximity(room.guesses.submissions, target)
            for pid, points in delta.others.items():
                player = room.players.get(pid)
                if player is not None:
                    award(player, points, round_points=points)
            master = room.players.get(room.current_master_id)
            if master is not None and delta.actor:
                award(master, delta.actor, round_points=delta.actor)
            self.set_phase(room, Phase.REVEAL)
            result.emit("round_revealed", {"targetPosition": target, "points": delta.others})
            return

        team = room.current_team_turn
        guess = room.guesses.submissions.get(team_key(team))
        points = proximity_points(guess, target) if guess is not None else 0
        room.teams[team]["score"] += points
        room.last_round_points = points
        self.set_phase(room, Phase.REVEAL)
        result.emit("round_revealed", {"targetPosition": target, "team": team, "points": points})

        if room.teams[team]["score"] >= self.settings.KNOWME_TEAM_WIN_SCORE:
            room.winner_team = team
            self.set_phase(room, Phase.GAME_OVER)
            result.emit("game_over", {"winnerTeam": team, "teamName": room.teams[team]["name"]})

    def on_next_round(self, room: KnowmeRoom, command: Command, result: ApplyResult) -> None:
        if len(room.players) < self.settings.KNOWME_MIN_PLAYERS or not self._teams_ready(room):
            raise CommandRejected("not_enough_players", "Jogadores insuficientes para continuar.")
        self._rotate_master(room)
        room.round += 1
        self.reset_round_scores(room)
        self._start_turn(room)
        result.changed()

    def on_reset_game(self, room: KnowmeRoom, command: Command, result: ApplyResult) -> None:
        self.require_host(room, command)
        self.cancel_timer(room)
        for t in room.teams.values():
            t["score"] = 0
        for p in room.players.values():
            p.score = 0
            p.total_score = 0
            p.is_acting = False
        room.turn = TurnOrder()
        room.round = 1
        room.current_team_turn = 1
        room.last_round_points = 0
        room.winner_team = None
        room.current_master_id = None
        room.guesses = None
        room.selected_card = None
        room.card_options = []
        room.clue = ""
        self.set_phase(room, Phase.LOBBY)
        result.changed()
