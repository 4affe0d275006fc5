from django.db import models
from django.utils import timezone

from accounts.models import User
from donors.models import BLOOD_TYPE_CHOICES, Donor


class Recipient(models.Model):
    STATUS_CHOICES = (
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('deceased', 'Deceased'),
    )

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    date_of_birth = models.DateField()
    gender = models.CharField(max_length=10, choices=Donor.GENDER_CHOICES)
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    national_id = models.CharField(max_length=50, unique=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20)

    street = models.CharField(max_length=200, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)

    emergency_contact_name = models.CharField(max_length=200, blank=True)
    emergency_contact_relationship = models.CharField(max_length=100, blank=True)
    emergency_contact_phone = models.CharField(max_length=20, blank=True)

    hospital_name = models.CharField(max_length=200, blank=True)
    hospital_address = models.CharField(max_length=300, blank=True)
    doctor_name = models.CharField(max_length=200, blank=True)
    doctor_phone = models.CharField(max_length=20, blank=True)

    medical_history = models.JSONField(default=dict, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    registered_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    registration_facility = models.CharField(max_length=200, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.full_name} ({self.blood_type})"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class BloodRequest(models.Model):
    URGENCY_CHOICES = (
        ('routine', 'Routine'),
        ('urgent', 'Urgent'),
        ('emergency', 'Emergency'),
    )

    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('fulfilled', 'Fulfilled'),
        ('rejected', 'Rejected'),
        ('cancelled', 'Cancelled'),
    )

    TRANSITIONS = {
        'pending': {'approved', 'rejected', 'cancelled'},
        'approved': {'fulfilled', 'cancelled'},
        'fulfilled': set(),
        'rejected': set(),
        'cancelled': set(),
    }

    recipient = models.ForeignKey(Recipient, on_delete=models.CASCADE, related_name='blood_requests')
    request_date = models.DateTimeField(default=timezone.now)
    urgency = models.CharField(max_length=10, choices=URGENCY_CHOICES, default='routine')
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    units_needed = models.PositiveIntegerField()
    diagnosis = models.CharField(max_length=500, blank=True)
    requested_by = models.CharField(max_length=200, blank=True)
    hospital = models.CharField(max_length=200, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending')
    fulfillment_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-request_date']

    def __str__(self):
        return f"{self.units_needed} x {self.blood_type} for {self.recipient.full_name} ({self.status})"

    def can_transition(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, set())


class Transfusion(models.Model):
    OUTCOME_CHOICES = (
        ('successful', 'Successful'),
        ('partial', 'Partial'),
        ('failed', 'Failed'),
        ('cancelled', 'Cancelled'),
    )

    recipient = models.ForeignKey(Recipient, on_delete=models.CASCADE, related_name='transfusions')
    blood_request = models.ForeignKey(BloodRequest, on_delete=models.SET_NULL, null=True, blank=True,
                                      related_name='transfusions')
    blood_units = models.ManyToManyField('inventory.BloodUnit', related_name='transfusions', blank=True)
    date = models.DateTimeField(default=timezone.now)
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    units = models.PositiveIntegerField()
    hospital = models.CharField(max_length=200, blank=True)
    administered_by = models.CharField(max_length=200)
    doctor_name = models.CharField(max_length=200, blank=True)
    reason = models.CharField(max_length=500, blank=True)
    reactions = models.JSONField(default=list, blank=True)
    outcome = models.CharField(max_length=20, choices=OUTCOME_CHOICES, default='successful')
    notes = models.TextField(blank=True)
    recorded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date']

    def __str__(self):
        return f"{self.units} x {self.blood_type} to {self.recipient.full_name} on {self.date:%Y-%m-%d}"

    @property
    def had_reaction(self):
        return bool(self.reactions)


class ClinicalNote(models.Model):
    CATEGORY_CHOICES = (
        ('general', 'General'),
        ('pre-transfusion', 'Pre-transfusion'),
        ('post-transfusion', 'Post-transfusion'),
        ('follow-up', 'Follow-up'),
    )

    recipient = models.ForeignKey(Recipient, on_delete=models.CASCADE, related_name='clinical_notes')
    date = models.DateTimeField(default=timezone.now)
    note = models.TextField()
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='general')
    recorded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')

    class Meta:
        ordering = ['-date']
