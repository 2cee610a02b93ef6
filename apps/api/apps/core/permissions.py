"""
Role-based permissions for API endpoints.

Roles are Django auth groups. Superusers pass every check.

Permission matrix:
- Admin: everything
- Doctor: scheduling read/write, queue advance, observations, alerts
- Nurse: scheduling read/write, check-in, queue advance, observations, alerts
- Reception: scheduling read/write, check-in, queue skip (no clinical data)
- Lab: record observations only
"""
from django.db import models
from rest_framework import permissions


class RoleChoices(models.TextChoices):
    """Fixed role (group) names."""
    ADMIN = 'admin', 'Admin'
    DOCTOR = 'doctor', 'Doctor'
    NURSE = 'nurse', 'Nurse'
    RECEPTION = 'reception', 'Reception'
    LAB = 'lab', 'Lab'


def get_user_roles(user):
    """Return the set of role names held by the user."""
    if not user or not user.is_authenticated:
        return set()
    if user.is_superuser:
        return {RoleChoices.ADMIN}
    return set(user.groups.values_list('name', flat=True))


class RolePermission(permissions.BasePermission):
    """
    Base class: grants read access to ``read_roles`` and write access to
    ``write_roles``. Subclasses only declare the two sets.
    """
    read_roles = set()
    write_roles = set()

    def has_permission(self, request, view):
        user_roles = get_user_roles(request.user)
        if not user_roles:
            return False
        if RoleChoices.ADMIN in user_roles:
            return True
        if request.method in permissions.SAFE_METHODS:
            return bool(user_roles & (self.read_roles | self.write_roles))
        return bool(user_roles & self.write_roles)


class SchedulingPermission(RolePermission):
    """Availability, booking, cancellation, rescheduling, transitions."""
    read_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE, RoleChoices.RECEPTION}
    write_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE, RoleChoices.RECEPTION}


class CheckInPermission(RolePermission):
    """Front desk and nursing check patients in."""
    read_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE, RoleChoices.RECEPTION}
    write_roles = {RoleChoices.NURSE, RoleChoices.RECEPTION}


class QueueAdvancePermission(RolePermission):
    """Only clinical staff call the next patient."""
    read_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE, RoleChoices.RECEPTION}
    write_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE}


class QueueSkipPermission(RolePermission):
    read_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE, RoleChoices.RECEPTION}
    write_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE, RoleChoices.RECEPTION}


class ObservationPermission(RolePermission):
    """
    BUSINESS RULE: Reception cannot read or write clinical measurements.
    Lab staff may record results but not browse the review list.
    """
    read_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE}
    write_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE, RoleChoices.LAB}


class AlertPermission(RolePermission):
    read_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE}
    write_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE}


class ObservationReviewPermission(RolePermission):
    """The manual review list is for clinicians only."""
    read_roles = {RoleChoices.DOCTOR, RoleChoices.NURSE}
    write_roles = set()
