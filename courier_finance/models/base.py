import uuid
from django.db import models
from django.utils.translation import gettext_lazy as _
from courier_finance.settings import get_finance_setting


class UUIDModel(models.Model):
    """Abstract model with a UUID primary key"""
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name=_('ID')
    )

    class Meta:
        abstract = True


class IDModel(models.Model):
    """Abstract model keeping Django's auto-incrementing primary key"""
    class Meta:
        abstract = True


class TimestampedModel(models.Model):
    """Abstract model with created/updated timestamps"""
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name=_('Created at')
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        db_index=True,
        verbose_name=_('Updated at')
    )

    class Meta:
        abstract = True


def _primary_key_base():
    if get_finance_setting('USE_UUID'):
        return UUIDModel
    return IDModel


class BaseModel(TimestampedModel, _primary_key_base()):
    """Base model for every courier finance table"""
    class Meta:
        abstract = True


class BaseQuerySet(models.QuerySet):
    """QuerySet helpers shared by the finance models"""

    def in_date_range(self, field, start=None, end=None):
        """
        Filter on an inclusive datetime range; either bound may be omitted

        Args:
            field: Name of the datetime field or annotation
            start: Lower bound (optional)
            end: Upper bound (optional)
        """
        queryset = self
        if start is not None:
            queryset = queryset.filter(**{f'{field}__gte': start})
        if end is not None:
            queryset = queryset.filter(**{f'{field}__lte': end})
        return queryset
