from datetime import date, timedelta

from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.db.models import Count, Max, Q
from django.utils import timezone

from accounts.models import User
from common.exceptions import ValidationFailed
from .eligibility import check_donation_interval, interval_for, next_eligible_date

BLOOD_TYPE_CHOICES = (
    ('A+', 'A+'),
    ('A-', 'A-'),
    ('B+', 'B+'),
    ('B-', 'B-'),
    ('AB+', 'AB+'),
    ('AB-', 'AB-'),
    ('O+', 'O+'),
    ('O-', 'O-'),
)

BLOOD_TYPES = [code for code, _ in BLOOD_TYPE_CHOICES]


class DonorQuerySet(models.QuerySet):
    def eligible_on(self, on_date, interval_days, now=None):
        """Donors past the interval on on_date and with no deferral in effect at now."""
        cutoff = on_date - timedelta(days=interval_days)
        deferred_ids = DonorDeferral.objects.in_effect(now).values('donor_id')
        return self.filter(
            Q(last_donation_date__isnull=True) | Q(last_donation_date__lte=cutoff)
        ).exclude(status__in=['blocked', 'inactive']).exclude(pk__in=deferred_ids)


class Donor(models.Model):
    BLOOD_TYPE_CHOICES = BLOOD_TYPE_CHOICES

    GENDER_CHOICES = (
        ('male', 'Male'),
        ('female', 'Female'),
        ('other', 'Other'),
    )

    STATUS_CHOICES = (
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('pending', 'Pending'),
        ('blocked', 'Blocked'),
        ('deferred', 'Deferred'),
    )

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    date_of_birth = models.DateField()
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES)
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    national_id = models.CharField(max_length=50, unique=True)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20)

    # Address
    street = models.CharField(max_length=200, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)

    # Emergency contact
    emergency_contact_name = models.CharField(max_length=200, blank=True)
    emergency_contact_relationship = models.CharField(max_length=100, blank=True)
    emergency_contact_phone = models.CharField(max_length=20, blank=True)

    medical_history = models.JSONField(default=dict, blank=True)
    donation_preferences = models.JSONField(default=dict, blank=True)
    communication_prefs = models.JSONField(default=dict, blank=True)

    # Maintained from the Donation rows, see refresh_donation_summary()
    last_donation_date = models.DateField(null=True, blank=True)
    total_donations = models.PositiveIntegerField(default=0)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    verified = models.BooleanField(default=False)
    verification_date = models.DateTimeField(null=True, blank=True)
    notes = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DonorQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.full_name} ({self.blood_type})"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def age(self):
        today = date.today()
        return today.year - self.date_of_birth.year - (
            (today.month, today.day) < (self.date_of_birth.month, self.date_of_birth.day)
        )

    def active_deferral(self, now=None):
        return DonorDeferral.objects.in_effect(now).filter(donor=self).order_by('-start_date').first()

    def can_donate(self, on=None, surface='donations', now=None):
        """Interval rule for the given surface plus the deferral overlay."""
        now = now or timezone.now()
        on = on or timezone.localdate(now)

        if self.status == 'blocked':
            return False, "Donor is blocked from donating"

        deferral = self.active_deferral(now)
        if deferral:
            return False, f"Donor has an active {deferral.type} deferral: {deferral.reason}"

        return check_donation_interval(self.last_donation_date, on, interval_for(surface))

    def next_eligible_date(self, surface='donations'):
        return next_eligible_date(self.last_donation_date, interval_for(surface))

    def refresh_donation_summary(self):
        """Recompute last_donation_date and total_donations from the donation history."""
        summary = self.donations.aggregate(last=Max('donation_date'), count=Count('id'))
        self.last_donation_date = summary['last']
        self.total_donations = summary['count']
        self.save(update_fields=['last_donation_date', 'total_donations', 'updated_at'])


class Donation(models.Model):
    donor = models.ForeignKey(Donor, on_delete=models.CASCADE, related_name='donations')
    donation_date = models.DateField()
    units = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    location = models.CharField(max_length=200, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-donation_date', '-id']

    def __str__(self):
        return f"{self.donor.full_name} - {self.donation_date} ({self.units} units)"


class DonorHealth(models.Model):
    STATUS_CHOICES = (
        ('eligible', 'Eligible'),
        ('temporary_deferral', 'Temporary Deferral'),
        ('permanent_deferral', 'Permanent Deferral'),
    )

    donor = models.ForeignKey(Donor, on_delete=models.CASCADE, related_name='health_records')
    hemoglobin = models.DecimalField(max_digits=4, decimal_places=1,
                                     validators=[MinValueValidator(0), MaxValueValidator(25)])
    blood_pressure_systolic = models.PositiveIntegerField(
        validators=[MinValueValidator(70), MaxValueValidator(200)])
    blood_pressure_diastolic = models.PositiveIntegerField(
        validators=[MinValueValidator(40), MaxValueValidator(130)])
    pulse = models.PositiveIntegerField(validators=[MinValueValidator(40), MaxValueValidator(200)])
    temperature = models.DecimalField(max_digits=4, decimal_places=1,
                                      validators=[MinValueValidator(35), MaxValueValidator(42)])
    weight = models.DecimalField(max_digits=5, decimal_places=1, validators=[MinValueValidator(45)])
    last_meal = models.DateTimeField(null=True, blank=True)
    recent_illness = models.BooleanField(default=False)
    recent_illness_details = models.TextField(blank=True)
    medications = models.JSONField(default=list, blank=True)
    assessed_by = models.CharField(max_length=200)
    assessment_date = models.DateTimeField(default=timezone.now)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='eligible')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-assessment_date']
        verbose_name_plural = 'Donor health records'

    def __str__(self):
        return f"{self.donor.full_name} vitals on {self.assessment_date:%Y-%m-%d}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationFailed('Health records cannot be modified once created')
        super().save(*args, **kwargs)


class DeferralQuerySet(models.QuerySet):
    def in_effect(self, now=None):
        now = now or timezone.now()
        return self.filter(active=True).filter(
            Q(type='permanent') |
            Q(type='temporary', start_date__lte=now, end_date__gte=now)
        )


class DonorDeferral(models.Model):
    TYPE_CHOICES = (
        ('temporary', 'Temporary'),
        ('permanent', 'Permanent'),
    )

    REASON_CATEGORY_CHOICES = (
        ('medical_condition', 'Medical condition'),
        ('recent_surgery', 'Recent surgery'),
        ('travel_history', 'Travel history'),
        ('medication', 'Medication'),
        ('infectious_disease', 'Infectious disease'),
        ('lifestyle_risk', 'Lifestyle risk'),
        ('pregnancy_related', 'Pregnancy related'),
        ('low_hemoglobin', 'Low hemoglobin'),
        ('vaccination', 'Vaccination'),
        ('other', 'Other'),
    )

    donor = models.ForeignKey(Donor, on_delete=models.CASCADE, related_name='deferrals')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    reason = models.CharField(max_length=500)
    reason_category = models.CharField(max_length=30, choices=REASON_CATEGORY_CHOICES, default='other')
    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField(null=True, blank=True)
    active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='created_deferrals')
    modified_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name='+')
    notes = models.TextField(blank=True)
    supporting_documents = models.JSONField(default=list, blank=True)

    review_required = models.BooleanField(default=False)
    review_date = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name='+')
    review_notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DeferralQuerySet.as_manager()

    class Meta:
        ordering = ['-start_date']

    def __str__(self):
        return f"{self.donor.full_name} - {self.type} deferral ({self.reason_category})"

    def validate(self):
        if self.type == 'temporary':
            if not self.end_date:
                raise ValidationFailed('End date is required for temporary deferrals')
            if self.end_date < self.start_date:
                raise ValidationFailed('End date must be after start date')

    def is_in_effect(self, now=None):
        now = now or timezone.now()
        if not self.active:
            return False
        if self.type == 'permanent':
            return True
        return bool(self.end_date) and self.start_date <= now <= self.end_date

    def is_expired(self, now=None):
        if self.type == 'permanent':
            return False
        return self.end_date is not None and self.end_date < (now or timezone.now())


class DonationSchedule(models.Model):
    STATUS_CHOICES = (
        ('scheduled', 'Scheduled'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
        ('no_show', 'No show'),
    )

    donor = models.ForeignKey(Donor, on_delete=models.CASCADE, related_name='schedules')
    scheduled_date = models.DateField()
    time_slot = models.CharField(max_length=5)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='scheduled')
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['scheduled_date', 'time_slot']
        constraints = [
            models.UniqueConstraint(
                fields=['scheduled_date', 'time_slot'],
                condition=Q(status='scheduled'),
                name='unique_booked_donation_slot',
            ),
        ]

    def __str__(self):
        return f"{self.donor.full_name} on {self.scheduled_date} at {self.time_slot}"


def default_languages():
    return ['en']


class Contact(models.Model):
    METHOD_CHOICES = (
        ('email', 'Email'),
        ('sms', 'SMS'),
        ('phone', 'Phone'),
        ('push', 'Push'),
    )

    FREQUENCY_CHOICES = (
        ('weekly', 'Weekly'),
        ('monthly', 'Monthly'),
        ('quarterly', 'Quarterly'),
        ('never', 'Never'),
    )

    TIME_PREFERENCE_CHOICES = (
        ('morning', 'Morning'),
        ('afternoon', 'Afternoon'),
        ('evening', 'Evening'),
        ('any', 'Any'),
    )

    donor = models.OneToOneField(Donor, on_delete=models.CASCADE, related_name='contact')
    preferred_method = models.CharField(max_length=10, choices=METHOD_CHOICES, default='email')
    frequency = models.CharField(max_length=10, choices=FREQUENCY_CHOICES, default='monthly')
    opt_out = models.BooleanField(default=False)
    time_preference = models.CharField(max_length=10, choices=TIME_PREFERENCE_CHOICES, default='any')
    languages = models.JSONField(default=default_languages, blank=True)

    last_contacted_at = models.DateTimeField(null=True, blank=True)
    contact_attempts = models.PositiveIntegerField(default=0)
    successful_contacts = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Contact preferences for {self.donor.full_name}"

    def active_do_not_contact_period(self, now=None):
        now = now or timezone.now()
        return self.do_not_contact_periods.filter(start_date__lte=now, end_date__gte=now).first()

    def can_be_contacted(self, now=None):
        if self.opt_out:
            return False
        return self.active_do_not_contact_period(now) is None


class Communication(models.Model):
    TYPE_CHOICES = (
        ('email', 'Email'),
        ('sms', 'SMS'),
        ('phone', 'Phone'),
        ('push', 'Push'),
        ('letter', 'Letter'),
    )

    STATUS_CHOICES = (
        ('sent', 'Sent'),
        ('delivered', 'Delivered'),
        ('failed', 'Failed'),
        ('opened', 'Opened'),
        ('clicked', 'Clicked'),
    )

    contact = models.ForeignKey(Contact, on_delete=models.CASCADE, related_name='communications')
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    subject = models.CharField(max_length=200, blank=True)
    content = models.TextField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='sent')
    sent_at = models.DateTimeField(default=timezone.now)
    sent_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')

    class Meta:
        ordering = ['-sent_at']


class Reminder(models.Model):
    TYPE_CHOICES = (
        ('donation', 'Donation'),
        ('appointment', 'Appointment'),
        ('followup', 'Follow-up'),
        ('general', 'General'),
    )

    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('sent', 'Sent'),
        ('cancelled', 'Cancelled'),
    )

    contact = models.ForeignKey(Contact, on_delete=models.CASCADE, related_name='reminders')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='general')
    scheduled_for = models.DateTimeField()
    message = models.TextField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending')
    sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['scheduled_for']


class DoNotContactPeriod(models.Model):
    contact = models.ForeignKey(Contact, on_delete=models.CASCADE, related_name='do_not_contact_periods')
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    reason = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-start_date']
