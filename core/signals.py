"""Signals that keep the cached variable registry in sync with the admin."""

from __future__ import annotations

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from core.models import VariableMetadata
from core.services import invalidate_variable_registry


@receiver(post_save, sender=VariableMetadata)
@receiver(post_delete, sender=VariableMetadata)
def invalidate_registry_on_change(sender, **kwargs) -> None:
    """Drop the cached registry after a VariableMetadata edit."""

    invalidate_variable_registry()
