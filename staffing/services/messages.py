"""Pre-written messages sent to florists about an event.

Every function here is pure: the same arguments always produce the same
text, so a message stored on an assignment can be re-sent verbatim.
"""

from __future__ import annotations

from datetime import date

from staffing.domain.models import AssignmentStatus

DEFAULT_SIGNATURE = "Mathilde Fleurs"
DEFAULT_DATE_FORMAT = "%d/%m/%Y"


def first_name(full_name: str) -> str:
    """Return the first word of *full_name* ("" for a blank name)."""
    parts = full_name.split()
    return parts[0] if parts else ""


def _sign(body: str, name: str, signature: str) -> str:
    return f"Bonjour {name},\n\n{body}\n\n{signature}"


def generate_not_selected_message(
    resource_first_name: str,
    event_title: str,
    event_date: date,
    signature: str = DEFAULT_SIGNATURE,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> str:
    """Message for a florist left out once the team is complete."""
    body = (
        f'L\'événement "{event_title}" du {event_date.strftime(date_format)} '
        "est pourvu.\n\nMerci pour votre disponibilité !"
    )
    return _sign(body, resource_first_name, signature)


def generate_confirmation_message(
    resource_first_name: str,
    event_title: str,
    event_date: date,
    start_time: str,
    location: str | None = None,
    signature: str = DEFAULT_SIGNATURE,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> str:
    body = (
        f'Confirmation pour l\'événement "{event_title}" le '
        f"{event_date.strftime(date_format)} à {start_time}."
    )
    if location:
        body += f"\n\nRendez-vous à : {location}"
    body += "\n\nMerci !"
    return _sign(body, resource_first_name, signature)


def generate_availability_request(
    resource_first_name: str,
    event_title: str,
    event_date: date,
    start_time: str,
    location: str | None = None,
    signature: str = DEFAULT_SIGNATURE,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> str:
    body = (
        f'Êtes-vous disponible pour l\'événement "{event_title}" le '
        f"{event_date.strftime(date_format)} à {start_time} ?"
    )
    if location:
        body += f"\n\nLieu : {location}"
    body += "\n\nMerci de me confirmer !"
    return _sign(body, resource_first_name, signature)


def generate_refusal_acknowledgement(
    resource_first_name: str,
    event_title: str,
    event_date: date,
    signature: str = DEFAULT_SIGNATURE,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> str:
    body = (
        "J'ai bien noté que vous n'êtes pas disponible pour l'événement "
        f'"{event_title}" le {event_date.strftime(date_format)}.\n\n'
        "Pas de souci ! À bientôt pour d'autres missions."
    )
    return _sign(body, resource_first_name, signature)


def message_for_status(
    status: AssignmentStatus,
    resource_name: str,
    event_title: str,
    event_date: date,
    start_time: str,
    location: str | None = None,
    signature: str = DEFAULT_SIGNATURE,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> str:
    """Pick the template matching an assignment's *status*."""
    name = first_name(resource_name)
    if status == AssignmentStatus.NOT_SELECTED:
        return generate_not_selected_message(
            name, event_title, event_date, signature, date_format
        )
    if status == AssignmentStatus.CONFIRMED:
        return generate_confirmation_message(
            name, event_title, event_date, start_time, location, signature, date_format
        )
    if status == AssignmentStatus.REFUSED:
        return generate_refusal_acknowledgement(
            name, event_title, event_date, signature, date_format
        )
    return generate_availability_request(
        name, event_title, event_date, start_time, location, signature, date_format
    )
