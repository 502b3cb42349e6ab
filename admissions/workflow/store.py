"""Persistence seam for the review workflow.

Applications are written with a single conditional ``UPDATE`` so two
reviewers racing on the same stage cannot both succeed: the loser's ``WHERE``
clause no longer matches and the update touches zero rows.
"""

from ..models import Application, _utcnow, db
from .errors import ConcurrentModification, NotFound


def load_application(application_id):
    """Return the application with primary key or public id ``application_id``."""
    application = None
    if isinstance(application_id, int):
        application = db.session.get(Application, application_id)
    elif application_id:
        application = Application.query.filter_by(public_id=str(application_id)).first()
    if application is None:
        raise NotFound(f"Application {application_id} does not exist.", application_id=str(application_id))
    return application


def conditional_update(application_id, expected_status, fields, expected_version=None):
    """Apply ``fields`` only if the row is still in ``expected_status``.

    Commits and returns the refreshed application. Raises
    :class:`ConcurrentModification` when another writer got there first.
    """
    query = Application.query.filter(
        Application.id == application_id,
        Application.status == str(expected_status),
    )
    if expected_version is not None:
        query = query.filter(Application.version == expected_version)

    values = dict(fields)
    values["version"] = Application.version + 1
    values["updated_at"] = _utcnow()

    updated = query.update(values, synchronize_session=False)
    if updated != 1:
        db.session.rollback()
        raise ConcurrentModification(
            f"Application {application_id} is no longer {expected_status}.",
            application_id=application_id,
            expected_status=str(expected_status),
        )
    db.session.commit()

    application = db.session.get(Application, application_id)
    db.session.refresh(application)
    return application
