"""
Primary-key lookups that raise the engine's NotFound instead of DoesNotExist.
"""
from django.core.exceptions import ValidationError as DjangoValidationError

from skilltrack.exceptions import NotFound


def get_or_not_found(queryset, label, **filters):
    """
    Fetch exactly one row or raise NotFound.

    Malformed UUIDs are reported as NotFound too; the caller only cares that
    the referenced entity is absent.
    """
    if isinstance(queryset, type):
        queryset = queryset.objects.all()
    model = queryset.model
    try:
        return queryset.get(**filters)
    except (model.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFound(f"{label} not found", **{k: str(v) for k, v in filters.items()})
