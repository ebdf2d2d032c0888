"""Reservation state machine

The single source of truth for which status changes are legal. Entities and
services consult this table; nothing else decides whether a transition may
happen.
"""
from typing import Dict, FrozenSet, Set, Tuple

from domain.enums import ReservationAction, ReservationStatus
from domain.errors import InvalidTransition


S = ReservationStatus

TRANSITIONS: Dict[ReservationAction, Tuple[FrozenSet[ReservationStatus], ReservationStatus]] = {
    ReservationAction.CONFIRM: (frozenset({S.PENDING}), S.CONFIRMED),
    ReservationAction.CANCEL: (frozenset({S.PENDING, S.CONFIRMED}), S.CANCELLED),
    ReservationAction.CHECK_IN: (frozenset({S.CONFIRMED}), S.CHECKED_IN),
    ReservationAction.CHECK_OUT: (frozenset({S.CHECKED_IN}), S.CHECKED_OUT),
    # manual staff action; nothing sweeps no-shows automatically
    ReservationAction.MARK_NO_SHOW: (frozenset({S.CONFIRMED}), S.NO_SHOW),
}

TERMINAL_STATUSES: FrozenSet[ReservationStatus] = frozenset({S.CHECKED_OUT, S.CANCELLED, S.NO_SHOW})

# Statuses that hold a room for their date range
BLOCKING_STATUSES: FrozenSet[ReservationStatus] = frozenset({S.CONFIRMED, S.CHECKED_IN})

# Statuses in which dates and party details may still be edited
MODIFIABLE_STATUSES: FrozenSet[ReservationStatus] = frozenset({S.PENDING, S.CONFIRMED})


def legal_sources(action: ReservationAction) -> FrozenSet[ReservationStatus]:
    return TRANSITIONS[action][0]


def can_transition(status: ReservationStatus, action: ReservationAction) -> bool:
    return status in legal_sources(action)


def next_status(status: ReservationStatus, action: ReservationAction) -> ReservationStatus:
    """Resolve the target status or raise InvalidTransition"""
    sources, target = TRANSITIONS[action]
    if status not in sources:
        allowed = ", ".join(sorted(s.value for s in sources))
        raise InvalidTransition(
            f"Cannot {action.value.replace('_', ' ')} a reservation with status {status.value}",
            detail=f"allowed from: {allowed}"
        )
    return target


def available_actions(status: ReservationStatus) -> Set[ReservationAction]:
    return {action for action, (sources, _) in TRANSITIONS.items() if status in sources}


def reachable_statuses(start: ReservationStatus) -> Set[ReservationStatus]:
    """Every status reachable from ``start`` by one or more transitions"""
    seen: Set[ReservationStatus] = set()
    frontier = [start]
    while frontier:
        current = frontier.pop()
        for action in available_actions(current):
            target = TRANSITIONS[action][1]
            if target not in seen:
                seen.add(target)
                frontier.append(target)
    return seen
