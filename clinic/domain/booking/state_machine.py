"""
Appointment lifecycle.

    pending ──> confirmed ──> completed
       │            │
       └────────────┴──> cancelled

cancelled and completed are terminal. Any move not listed in TRANSITIONS is
rejected, including staying in the same state.
"""

from ...models import AccountRole, Appointment, AppointmentStatus
from ...shared.actor import Actor
from ...shared.errors import ForbiddenError, InvalidTransitionError

INITIAL_STATE = AppointmentStatus.PENDING

# (from, to) -> roles allowed to make the move
TRANSITIONS: dict[tuple[AppointmentStatus, AppointmentStatus], frozenset[AccountRole]] = {
    (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED): frozenset(
        {AccountRole.DOCTOR, AccountRole.ADMIN}
    ),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED): frozenset(
        {AccountRole.DOCTOR, AccountRole.ADMIN}
    ),
    (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED): frozenset(
        {AccountRole.USER, AccountRole.DOCTOR, AccountRole.ADMIN}
    ),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED): frozenset(
        {AccountRole.USER, AccountRole.DOCTOR, AccountRole.ADMIN}
    ),
}

TERMINAL_STATES = frozenset(
    status
    for status in AppointmentStatus
    if not any(source == status for source, _ in TRANSITIONS)
)


def is_legal(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return (current, target) in TRANSITIONS


def allowed_targets(current: AppointmentStatus) -> list[AppointmentStatus]:
    return [target for source, target in TRANSITIONS if source == current]


def is_party(appointment: Appointment, actor: Actor) -> bool:
    """Whether the actor may act on this appointment in their role at all"""
    if actor.is_admin:
        return True
    if actor.is_doctor:
        return appointment.doctor_id == actor.account_id
    return appointment.user_id == actor.account_id


def check_transition(appointment: Appointment, target: AppointmentStatus, actor: Actor) -> None:
    """Raise unless the actor may move the appointment to target"""
    current = appointment.status
    if not is_legal(current, target):
        raise InvalidTransitionError(
            f"Cannot move appointment {appointment.id} from {current.value} to {target.value} "
            f"(allowed: {', '.join(t.value for t in allowed_targets(current)) or 'none'})"
        )

    if actor.role not in TRANSITIONS[(current, target)] or not is_party(appointment, actor):
        raise ForbiddenError(
            f"A {actor.role.value} cannot move appointment {appointment.id} to {target.value}"
        )
