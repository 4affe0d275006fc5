from django.utils import timezone
from rest_framework import serializers

from common.exceptions import ValidationFailed
from . import eligibility
from .models import (
    Communication, Contact, Donation, DonationSchedule, DoNotContactPeriod, Donor,
    DonorDeferral, DonorHealth, Reminder,
)
from .scheduling import is_valid_slot


class DonorSerializer(serializers.ModelSerializer):
    age = serializers.ReadOnlyField()
    full_name = serializers.ReadOnlyField()

    class Meta:
        model = Donor
        fields = '__all__'
        read_only_fields = ('total_donations', 'created_at', 'updated_at')
        # Duplicates surface as ConflictError from the views.
        extra_kwargs = {
            'email': {'validators': []},
            'national_id': {'validators': []},
        }

    def validate_last_donation_date(self, value):
        if value and value > timezone.localdate():
            raise serializers.ValidationError('Last donation date cannot be in the future')
        return value

    def create(self, validated_data):
        last_donation_date = validated_data.pop('last_donation_date', None)
        donor = Donor.objects.create(**validated_data)
        if last_donation_date:
            # Seed the history so last_donation_date stays derived from it.
            donor.donations.create(donation_date=last_donation_date, units=1, notes='Recorded at registration')
            donor.refresh_donation_summary()
        return donor


class DonorListSerializer(serializers.ModelSerializer):
    age = serializers.ReadOnlyField()
    full_name = serializers.ReadOnlyField()
    can_donate_now = serializers.SerializerMethodField()
    eligibility_message = serializers.SerializerMethodField()

    class Meta:
        model = Donor
        fields = ('id', 'full_name', 'first_name', 'last_name', 'email', 'phone', 'blood_type',
                  'age', 'gender', 'city', 'status', 'last_donation_date', 'total_donations',
                  'can_donate_now', 'eligibility_message')

    def _eligibility(self, obj):
        if not hasattr(obj, '_eligibility_cache'):
            obj._eligibility_cache = obj.can_donate(surface=self.context.get('surface', 'donations'))
        return obj._eligibility_cache

    def get_can_donate_now(self, obj):
        return self._eligibility(obj)[0]

    def get_eligibility_message(self, obj):
        return self._eligibility(obj)[1]


class DonationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Donation
        fields = ('id', 'donation_date', 'units', 'location', 'notes', 'created_at')


class DonationInputSerializer(serializers.Serializer):
    donation_date = serializers.CharField(error_messages={'required': 'Donation date is required',
                                                          'blank': 'Donation date is required'})
    units = serializers.IntegerField(min_value=1, error_messages={
        'required': 'Units are required',
        'min_value': 'Units must be greater than 0',
        'invalid': 'Units must be a number',
    })
    location = serializers.CharField(max_length=200, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_donation_date(self, value):
        try:
            return eligibility.validate_donation_date(value, timezone.localdate())
        except ValidationFailed as e:
            raise serializers.ValidationError(e.message)


class DonorHealthSerializer(serializers.ModelSerializer):
    class Meta:
        model = DonorHealth
        fields = '__all__'
        read_only_fields = ('donor', 'created_at')

    def validate(self, attrs):
        if attrs.get('recent_illness') and not attrs.get('recent_illness_details'):
            raise serializers.ValidationError({'recent_illness_details': 'Details are required when recent illness is reported'})
        return attrs


class DonorDeferralSerializer(serializers.ModelSerializer):
    in_effect = serializers.SerializerMethodField()
    created_by = serializers.SerializerMethodField()

    class Meta:
        model = DonorDeferral
        fields = '__all__'
        read_only_fields = ('donor', 'active', 'modified_by', 'reviewed_by', 'created_at', 'updated_at')

    def get_in_effect(self, obj):
        return obj.is_in_effect()

    def get_created_by(self, obj):
        return obj.created_by.email if obj.created_by else None


class DeferralInputSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=DonorDeferral.TYPE_CHOICES)
    reason = serializers.CharField(max_length=500)
    reason_category = serializers.ChoiceField(choices=DonorDeferral.REASON_CATEGORY_CHOICES, default='other')
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    review_required = serializers.BooleanField(required=False, default=False)
    supporting_documents = serializers.ListField(child=serializers.DictField(), required=False)

    def validate(self, attrs):
        if attrs['type'] == 'temporary' and not attrs.get('end_date'):
            raise serializers.ValidationError({'end_date': 'End date is required for temporary deferrals'})
        return attrs


class DonationScheduleSerializer(serializers.ModelSerializer):
    donor_name = serializers.CharField(source='donor.full_name', read_only=True)
    donor_blood_type = serializers.CharField(source='donor.blood_type', read_only=True)

    class Meta:
        model = DonationSchedule
        fields = ('id', 'donor', 'donor_name', 'donor_blood_type', 'scheduled_date', 'time_slot',
                  'status', 'notes', 'created_at', 'updated_at')
        read_only_fields = ('status', 'created_at', 'updated_at')
        # Slot conflicts are reported by the view with a specific message.
        validators = []

    def validate_time_slot(self, value):
        if not is_valid_slot(value):
            raise serializers.ValidationError('Time slot must be on the hour between 09:00 and 16:00')
        return value

    def validate_scheduled_date(self, value):
        if value < timezone.localdate():
            raise serializers.ValidationError('Cannot schedule a donation in the past')
        if value.weekday() >= 5:
            raise serializers.ValidationError('Donations are only scheduled on weekdays')
        return value


class CommunicationSerializer(serializers.ModelSerializer):
    sent_by = serializers.SerializerMethodField()

    class Meta:
        model = Communication
        fields = ('id', 'type', 'subject', 'content', 'status', 'sent_at', 'sent_by')

    def get_sent_by(self, obj):
        return obj.sent_by.email if obj.sent_by else None


class CommunicationInputSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=Communication.TYPE_CHOICES)
    subject = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    content = serializers.CharField()


class ReminderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Reminder
        fields = ('id', 'type', 'scheduled_for', 'message', 'status', 'sent_at', 'created_at')
        read_only_fields = ('status', 'sent_at', 'created_at')


class DoNotContactPeriodSerializer(serializers.ModelSerializer):
    class Meta:
        model = DoNotContactPeriod
        fields = ('id', 'start_date', 'end_date', 'reason', 'created_at')
        read_only_fields = ('created_at',)

    def validate(self, attrs):
        if attrs['end_date'] < attrs['start_date']:
            raise serializers.ValidationError({'end_date': 'End date must be on or after start date'})
        return attrs


class ContactPreferencesSerializer(serializers.ModelSerializer):
    class Meta:
        model = Contact
        fields = ('preferred_method', 'frequency', 'opt_out', 'time_preference', 'languages')


class ContactSerializer(serializers.ModelSerializer):
    donor_name = serializers.CharField(source='donor.full_name', read_only=True)
    can_be_contacted = serializers.SerializerMethodField()
    communications = CommunicationSerializer(many=True, read_only=True)
    reminders = ReminderSerializer(many=True, read_only=True)
    do_not_contact_periods = DoNotContactPeriodSerializer(many=True, read_only=True)

    class Meta:
        model = Contact
        fields = ('id', 'donor', 'donor_name', 'preferred_method', 'frequency', 'opt_out',
                  'time_preference', 'languages', 'last_contacted_at', 'contact_attempts',
                  'successful_contacts', 'can_be_contacted', 'communications', 'reminders',
                  'do_not_contact_periods', 'updated_at')

    def get_can_be_contacted(self, obj):
        return obj.can_be_contacted()
