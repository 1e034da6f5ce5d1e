"""Per-recipient projections of room state.

Every function here is pure: the output depends only on the room, the
recipient id and the room's current phase. Nothing mutates the room, and
internal fields (connection handles, locks, timer generations) never
appear in a view.
"""

from __future__ import annotations

from typing import Any, Callable

from .aggregation import Aggregation
from .models import (
    ConceptPhase,
    ConceptRoom,
    InkspiracyPhase,
    InkspiracyRoom,
    KnowmePhase,
    KnowmeRoom,
    PlayerRecord,
    RabiscoPhase,
    RabiscoRoom,
    Room,
    Variant,
)


def player_view(p: PlayerRecord, recipient_id: str | None) -> dict[str, Any]:
    d = {
        "id": p.id,
        "nickname": p.nickname,
        "avatar": p.avatar,
        "isVip": p.is_vip,
        "score": p.score,
        "totalScore": p.total_score,
        "connected": p.connected,
        "isActing": p.is_acting,
        "team": p.team,
        "coins": p.coins,
        "votesReceived": p.votes_received,
    }
    if p.id == recipient_id:
        d["inventory"] = list(p.inventory)
    else:
        d["inventoryCount"] = len(p.inventory)
    return d


def _header(room: Room, recipient_id: str | None) -> dict[str, Any]:
    return {
        "code": room.code,
        "gameType": room.variant.value,
        "hostId": room.host_id,
        "status": room.phase.value,
        "round": room.round,
        "timer": room.timer_left,
        "players": [player_view(p, recipient_id) for p in room.ordered_players()],
        "chatMessages": list(room.chat_messages),
    }


def _hidden_submissions(agg: Aggregation | None, recipient_key: str | None) -> dict[str, Any] | None:
    if agg is None:
        return None
    out: dict[str, Any] = {
        "submitted": list(agg.submissions.keys()),
        "pending": len(agg.pending()),
    }
    if recipient_key is not None and recipient_key in agg.submissions:
        out["mine"] = agg.submissions[recipient_key]
    return out


def _open_submissions(agg: Aggregation | None) -> dict[str, Any] | None:
    if agg is None:
        return None
    return {"submitted": list(agg.submissions.keys()), "pending": len(agg.pending()), "all": dict(agg.submissions)}


def inkspiracy_view(room: InkspiracyRoom, recipient_id: str | None) -> dict[str, Any]:
    reveal = room.phase in (InkspiracyPhase.RESULTS, InkspiracyPhase.GAME_WINNER)
    in_room = recipient_id is not None and recipient_id in room.players
    is_impostor = bool(room.impostor_id) and recipient_id == room.impostor_id
    is_curator = recipient_id == room.curator_id

    state = _header(room, recipient_id)
    state.update(
        {
            "theme": room.theme,
            "curatorId": room.curator_id,
            "maxRounds": room.max_rounds,
            "turnOrder": list(room.turn.players),
            "turnIndex": room.turn.index,
            "currentDrawerId": (room.turn.acting() or [None])[0] if room.phase == InkspiracyPhase.DRAWING else None,
            "strokes": list(room.strokes),
            "winner": room.winner,
            "winReason": room.win_reason,
            "gameWinner": room.game_winner_id,
            "votesRevealed": room.votes_revealed,
            "isImpostor": is_impostor,
        }
    )

    show_innocent = reveal or (in_room and not is_impostor)
    show_impostor_word = reveal or is_impostor or is_curator
    show_impostor_id = reveal or is_impostor or room.phase == InkspiracyPhase.GUESS

    state["wordInnocent"] = room.word_innocent if show_innocent else None
    state["wordImpostor"] = room.word_impostor if show_impostor_word else None
    state["impostorId"] = room.impostor_id if show_impostor_id else None

    if room.votes is None:
        state["votes"] = []
    elif room.votes_revealed or reveal:
        state["votes"] = [{"voterId": v, "suspectId": s} for v, s in room.votes.submissions.items()]
    else:
        state["votes"] = [{"voterId": v, "id": "hidden"} for v in room.votes.submissions]
    return state


def concept_view(room: ConceptRoom, recipient_id: str | None) -> dict[str, Any]:
    reveal = room.phase == ConceptPhase.ROUND_END
    is_master = recipient_id in room.current_team

    state = _header(room, recipient_id)
    state.update(
        {
            "currentTeam": list(room.current_team),
            "blockedCategory": room.blocked_category,
            "boardState": list(room.board_state),
            "placedOrder": list(room.placed_order),
            "tokensPlaced": room.tokens_placed,
            "maxRoundTime": room.max_round_time,
            "winner": room.winner,
            "winReason": room.win_reason,
            "isMaster": is_master,
        }
    )

    if is_master or reveal:
        state["currentWord"] = dict(room.current_word) if room.current_word else None
    else:
        state["currentWord"] = None
    state["wordOptions"] = [dict(w) for w in room.word_options] if is_master and not reveal else []

    if is_master or reveal:
        state["wordVotes"] = _open_submissions(room.word_votes)
    else:
        state["wordVotes"] = _hidden_submissions(room.word_votes, None)

    if reveal or (room.sabotage_votes is not None and room.sabotage_votes.resolved):
        state["sabotageVotes"] = _open_submissions(room.sabotage_votes)
    else:
        state["sabotageVotes"] = _hidden_submissions(room.sabotage_votes, recipient_id)
    return state


def knowme_view(room: KnowmeRoom, recipient_id: str | None) -> dict[str, Any]:
    reveal = room.phase in (KnowmePhase.REVEAL, KnowmePhase.GAME_OVER)
    is_master = recipient_id is not None and recipient_id == room.current_master_id

    state = _header(room, recipient_id)
    state.update(
        {
            "mode": room.mode,
            "currentMasterId": room.current_master_id,
            "turnOrder": list(room.turn.players),
            "turnIndex": room.turn.index,
            "cardOptions": [dict(c) for c in room.card_options],
            "selectedCard": dict(room.selected_card) if room.selected_card else None,
            "clue": room.clue,
            "teams": {str(k): {**v, "players": list(v["players"])} for k, v in room.teams.items()},
            "currentTeamTurn": room.current_team_turn,
            "lastRoundPoints": room.last_round_points,
            "winnerTeam": room.winner_team,
            "isMaster": is_master,
        }
    )

    if reveal or (is_master and room.phase in (KnowmePhase.CLUE_WRITING, KnowmePhase.GUESSING)):
        state["targetPosition"] = room.target_position

    if reveal:
        state["guesses"] = _open_submissions(room.guesses)
    else:
        key = recipient_id
        if room.mode == "TEAM" and recipient_id in room.players:
            key = f"team:{room.players[recipient_id].team}"
        state["guesses"] = _hidden_submissions(room.guesses, key)
    return state


def _masked_word(word: str, hints: list[int]) -> list[str | None]:
    return [ch if (i in hints or ch in (" ", "-")) else None for i, ch in enumerate(word)]


def rabisco_view(room: RabiscoRoom, recipient_id: str | None) -> dict[str, Any]:
    reveal = room.phase in (RabiscoPhase.ROUND_END, RabiscoPhase.GAME_END)
    is_drawer = recipient_id is not None and recipient_id == room.current_drawer_id
    word = room.current_word or ""

    state = _header(room, recipient_id)
    state.update(
        {
            "maxRounds": room.max_rounds,
            "maxScore": room.max_score,
            "currentDrawerId": room.current_drawer_id,
            "turnOrder": list(room.turn.players),
            "hints": len(room.hints),
            "lengthRevealed": room.length_revealed,
            "strokes": list(room.strokes),
            "guessedPlayers": list(room.guessed_players),
            "sabotagesActive": {k: dict(v) for k, v in room.sabotages_active.items()},
            "gameWinner": room.game_winner_id,
            "isDrawer": is_drawer,
        }
    )

    state["currentWord"] = word if word and (reveal or is_drawer) else None
    state["wordOptions"] = list(room.word_options) if is_drawer and not reveal else []
    show_length = bool(word) and (reveal or room.length_revealed or is_drawer)
    state["wordLength"] = len(word) if show_length else 0
    state["maskedWord"] = _masked_word(word, room.hints) if word and (room.length_revealed or reveal) else None
    return state


VIEWS: dict[Variant, Callable[[Any, str | None], dict[str, Any]]] = {
    Variant.INKSPIRACY: inkspiracy_view,
    Variant.CONCEPT: concept_view,
    Variant.KNOWME: knowme_view,
    Variant.RABISCO: rabisco_view,
}


def view(room: Room, recipient_id: str | None) -> dict[str, Any]:
    return VIEWS[room.variant](room, recipient_id)
