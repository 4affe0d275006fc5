from datetime import timedelta

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from accounts.models import User
from common.conf import get_setting
from donors.models import BLOOD_TYPE_CHOICES, Donor


class BloodUnitQuerySet(models.QuerySet):
    def unexpired(self, today=None):
        return self.filter(expiry_date__gt=today or timezone.localdate())

    def available(self, today=None):
        """Units that can be issued: stored as available and not past expiry."""
        return self.filter(status='available').unexpired(today)

    def expiring_within(self, days, today=None):
        today = today or timezone.localdate()
        return self.available(today).filter(expiry_date__lte=today + timedelta(days=days))

    def expired(self, today=None):
        return self.filter(expiry_date__lte=today or timezone.localdate()).exclude(
            status__in=BloodUnit.TERMINAL_STATUSES
        )


class BloodUnit(models.Model):
    STATUS_CHOICES = (
        ('quarantine', 'Quarantine'),
        ('available', 'Available'),
        ('reserved', 'Reserved'),
        ('discarded', 'Discarded'),
        ('transfused', 'Transfused'),
    )

    TERMINAL_STATUSES = ('discarded', 'transfused')

    STORAGE_STATUS_CHOICES = (
        ('operational', 'Operational'),
        ('maintenance', 'Maintenance'),
    )

    unit_id = models.CharField(max_length=30, unique=True)
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    volume = models.PositiveIntegerField(default=450, validators=[MinValueValidator(1)])  # ml
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='quarantine')
    donor = models.ForeignKey(Donor, on_delete=models.SET_NULL, null=True, blank=True, related_name='blood_units')
    collection_date = models.DateField()
    expiry_date = models.DateField(blank=True)
    collected_by = models.CharField(max_length=200, blank=True)

    # Storage location
    facility = models.CharField(max_length=100, blank=True)
    refrigerator = models.CharField(max_length=100, blank=True)
    shelf = models.CharField(max_length=50, blank=True)
    position = models.CharField(max_length=50, blank=True)
    storage_status = models.CharField(max_length=20, choices=STORAGE_STATUS_CHOICES, default='operational')

    test_results = models.JSONField(default=dict, blank=True)
    quality_check = models.JSONField(default=dict, blank=True)

    # Reservation, set together by lifecycle.reserve_units()
    reserved_for = models.ForeignKey('recipients.Recipient', on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='reserved_units')
    reserved_request = models.ForeignKey('recipients.BloodRequest', on_delete=models.SET_NULL, null=True,
                                         blank=True, related_name='reserved_units')
    reserved_at = models.DateTimeField(null=True, blank=True)
    reservation_expires_at = models.DateTimeField(null=True, blank=True)

    transfusion = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BloodUnitQuerySet.as_manager()

    class Meta:
        ordering = ['expiry_date', 'id']
        indexes = [
            models.Index(fields=['status', 'blood_type', 'expiry_date']),
            models.Index(fields=['facility', 'refrigerator']),
        ]

    def __str__(self):
        return f"{self.unit_id} ({self.blood_type}, {self.status})"

    def save(self, *args, **kwargs):
        if not self.expiry_date and self.collection_date:
            self.expiry_date = self.collection_date + timedelta(days=get_setting('UNIT_SHELF_LIFE_DAYS'))
        super().save(*args, **kwargs)

    def is_expired(self, today=None):
        return self.expiry_date <= (today or timezone.localdate())

    @property
    def effective_status(self):
        """Stored status, except live units past expiry read as 'expired'."""
        if self.status not in self.TERMINAL_STATUSES and self.is_expired():
            return 'expired'
        return self.status

    def clear_reservation(self):
        self.reserved_for = None
        self.reserved_request = None
        self.reserved_at = None
        self.reservation_expires_at = None


class UnitStatusChange(models.Model):
    unit = models.ForeignKey(BloodUnit, on_delete=models.CASCADE, related_name='status_history')
    previous_status = models.CharField(max_length=20, blank=True)
    new_status = models.CharField(max_length=20)
    changed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    reason = models.CharField(max_length=500, blank=True)
    changed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['changed_at', 'id']

    def __str__(self):
        return f"{self.unit.unit_id}: {self.previous_status or '-'} -> {self.new_status}"


class StorageLog(models.Model):
    TYPE_CHOICES = (
        ('temperature', 'Temperature'),
        ('status', 'Status'),
        ('maintenance', 'Maintenance'),
        ('alert', 'Alert'),
    )

    SEVERITY_CHOICES = (
        ('info', 'Info'),
        ('warning', 'Warning'),
        ('critical', 'Critical'),
    )

    OUTCOME_CHOICES = (
        ('successful', 'Successful'),
        ('failed', 'Failed'),
    )

    facility_id = models.CharField(max_length=100)
    refrigerator_id = models.CharField(max_length=100)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    value = models.JSONField()
    notes = models.TextField(blank=True)
    recorded_at = models.DateTimeField(default=timezone.now)
    recorded_by = models.CharField(max_length=200)
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default='info')
    alert_min = models.FloatField(null=True, blank=True)
    alert_max = models.FloatField(null=True, blank=True)

    resolved = models.BooleanField(default=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.CharField(max_length=200, blank=True)
    resolution_notes = models.TextField(blank=True)

    # Maintenance
    scheduled_date = models.DateTimeField(null=True, blank=True)
    outcome = models.CharField(max_length=20, choices=OUTCOME_CHOICES, blank=True)

    class Meta:
        ordering = ['-recorded_at', '-id']
        indexes = [
            models.Index(fields=['facility_id', 'refrigerator_id', 'type', 'recorded_at']),
            models.Index(fields=['severity', 'resolved']),
        ]

    def __str__(self):
        return f"{self.facility_id}/{self.refrigerator_id} {self.type} {self.value} ({self.severity})"

    def save(self, *args, **kwargs):
        if self.type == 'temperature' and self._state.adding:
            from .storage import classify_temperature, parse_temperature
            self.value = parse_temperature(self.value)
            self.severity, resolved = classify_temperature(self.value)
            self.resolved = self.resolved and resolved
            self.alert_min, self.alert_max = get_setting('TEMPERATURE_CRITICAL_RANGE')
        super().save(*args, **kwargs)

    def resolve(self, resolved_by, notes, now=None):
        """Mark the alert resolved. Returns False without writing when it already was."""
        now = now or timezone.now()
        updated = StorageLog.objects.filter(pk=self.pk, resolved=False).update(
            resolved=True,
            resolved_at=now,
            resolved_by=resolved_by,
            resolution_notes=notes,
        )
        self.refresh_from_db()
        return updated == 1

    @property
    def maintenance_status(self):
        if self.type != 'maintenance':
            return None
        if self.resolved:
            return 'completed'
        if self.scheduled_date and self.scheduled_date < timezone.now():
            return 'overdue'
        return 'scheduled'
