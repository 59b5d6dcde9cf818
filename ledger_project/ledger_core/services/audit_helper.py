from datetime import date
from decimal import Decimal
from typing import Optional

from ..models import AuditLog, Company


def _plain(value):
    # JSONField cannot store Decimal / date as-is
    if isinstance(value, (Decimal, date)):
        return str(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def log_action(
    *,
    action: str,
    instance,
    user=None,
    company: Optional[Company] = None,
    changes: dict | None = None,
):
    """
    Write one AuditLog row for `instance`.

    The company defaults to the instance's own; anonymous or missing users
    are stored as NULL (scheduler and Celery runs).
    """
    if not company:
        company = getattr(instance, "company", None)
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None

    return AuditLog.objects.create(
        company=company,
        user=user,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=_plain(changes) if changes is not None else None,
    )
