from decimal import Decimal
from typing import Iterable, List, Optional

from mafiastats import db
from mafiastats.errors import ValidationError
from mafiastats.models import (
    Game, GameStage, MAFIA_ROLES, MAX_SLOTS, RESULT_CIVILIANS_WIN, RESULT_MAFIA_WIN,
    ROLE_DON, ROLE_SHERIFF, TOWN_ROLES,
)

MAX_NOMINATIONS = 3
BEST_MOVE_BONUS = {2: Decimal('0.25'), 3: Decimal('0.5')}


def is_win(role: Optional[str], result: Optional[str]) -> bool:
    """Town roles win on civilians_win, mafia roles on mafia_win; draws win nobody anything."""
    if role in TOWN_ROLES:
        return result == RESULT_CIVILIANS_WIN
    if role in MAFIA_ROLES:
        return result == RESULT_MAFIA_WIN
    return False


def best_move_bonus(nominated_roles: Iterable[Optional[str]]) -> Decimal:
    """Bonus for the first killed player's guess of up to three mafia members.

    Entries that are None (empty pick or unknown player) simply do not count.
    The order of the picks never matters.
    """
    picks = list(nominated_roles)
    if len(picks) > MAX_NOMINATIONS:
        raise ValidationError(f'At most {MAX_NOMINATIONS} players can be nominated')
    correct = sum(1 for role in picks if role in MAFIA_ROLES)
    return BEST_MOVE_BONUS.get(correct, Decimal('0'))


def _next_stage_number(game: Game) -> int:
    return max((s.order_number for s in game.stages), default=0) + 1


def apply_best_move(game: Game, killed_player_id, nominated_player_ids) -> Optional[Decimal]:
    """Award the best-move bonus to the killed participant.

    Returns the awarded bonus, or None when the killed player did not take
    part in the game (nothing is changed then). The caller commits.
    """
    by_player = {gp.player_id: gp for gp in game.participants}
    killed = by_player.get(killed_player_id)
    if killed is None:
        return None

    unique_ids: List[int] = []
    for pid in nominated_player_ids or []:
        if pid is not None and pid not in unique_ids:
            unique_ids.append(pid)
    roles = [by_player[pid].role if pid in by_player else None for pid in unique_ids]
    bonus = best_move_bonus(roles)
    killed.additional_points = (killed.additional_points or Decimal('0')) + bonus
    db.session.add(killed)
    db.session.add(GameStage(
        game=game,
        type='best_move',
        order_number=_next_stage_number(game),
        data={
            'killed_player_id': killed_player_id,
            'nominated_player_ids': unique_ids,
            'bonus': str(bonus),
        },
    ))
    return bonus


def _slot(raw, field):
    if raw is None or raw == '' or raw == 'miss':
        return None
    try:
        slot = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a slot number')
    if not 1 <= slot <= MAX_SLOTS:
        raise ValidationError(f'{field} must be between 1 and {MAX_SLOTS}')
    return slot


def normalize_night(raw: dict) -> dict:
    """Accept snake_case or camelCase night action keys."""
    raw = raw or {}
    return {
        'mafia_shot': _slot(raw.get('mafia_shot', raw.get('mafiaShot')), 'mafia_shot'),
        'don_check': _slot(raw.get('don_check', raw.get('donCheck')), 'don_check'),
        'sheriff_check': _slot(raw.get('sheriff_check', raw.get('sheriffCheck')), 'sheriff_check'),
    }


def evaluate_night_actions(participants, nights) -> List[dict]:
    """Resolve each night's shot and checks against the seating.

    A missing mafia shot is a miss. Check outcomes are None when the slot
    was not checked or nobody sat there.
    """
    role_by_slot = {gp.slot_number: gp.role for gp in participants}
    summary = []
    for index, raw in enumerate(nights or [], start=1):
        night = normalize_night(raw)
        shot_role = role_by_slot.get(night['mafia_shot'])
        don_role = role_by_slot.get(night['don_check'])
        sheriff_role = role_by_slot.get(night['sheriff_check'])
        summary.append({
            'night': index,
            'mafia_shot': night['mafia_shot'],
            'missed': night['mafia_shot'] is None,
            'shot_role': shot_role,
            'don_check': night['don_check'],
            'don_found_sheriff': None if don_role is None else don_role == ROLE_SHERIFF,
            'sheriff_check': night['sheriff_check'],
            'sheriff_found_mafia': None if sheriff_role is None else sheriff_role in MAFIA_ROLES,
        })
    return summary


def record_nights(game: Game, nights) -> None:
    """Store validated night actions as night stages; the caller commits."""
    number = _next_stage_number(game)
    for raw in nights or []:
        db.session.add(GameStage(game=game, type='night', order_number=number, data=normalize_night(raw)))
        number += 1


def lineup_warnings(participants) -> List[str]:
    """Report seating anomalies without rejecting them.

    Duplicate slots and extra sheriffs/dons are accepted as entered; the
    referee's manual entry is trusted.
    """
    warnings = []
    seen_slots = set()
    for gp in participants:
        if gp.slot_number in seen_slots:
            warnings.append(f'slot {gp.slot_number} is used more than once')
        seen_slots.add(gp.slot_number)
    for role in (ROLE_SHERIFF, ROLE_DON):
        count = sum(1 for gp in participants if gp.role == role)
        if count > 1:
            warnings.append(f'{count} players have the {role} role')
    return warnings


def night_actions(game: Game) -> List[dict]:
    return [s.data or {} for s in game.stages if s.type == 'night']
