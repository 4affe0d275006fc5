import django_filters
from django.db.models import Q

from donors.models import BLOOD_TYPE_CHOICES
from .models import BloodRequest, Recipient, Transfusion


class RecipientFilter(django_filters.FilterSet):
    blood_type = django_filters.ChoiceFilter(choices=BLOOD_TYPE_CHOICES)
    status = django_filters.ChoiceFilter(choices=Recipient.STATUS_CHOICES)
    hospital = django_filters.CharFilter(field_name='hospital_name', lookup_expr='icontains')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Recipient
        fields = ['blood_type', 'status']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(first_name__icontains=value) |
            Q(last_name__icontains=value) |
            Q(national_id__icontains=value)
        )


class BloodRequestFilter(django_filters.FilterSet):
    recipient = django_filters.NumberFilter(field_name='recipient_id')
    status = django_filters.ChoiceFilter(choices=BloodRequest.STATUS_CHOICES)
    urgency = django_filters.ChoiceFilter(choices=BloodRequest.URGENCY_CHOICES)
    blood_type = django_filters.ChoiceFilter(choices=BLOOD_TYPE_CHOICES)

    class Meta:
        model = BloodRequest
        fields = ['recipient', 'status', 'urgency', 'blood_type']


class TransfusionFilter(django_filters.FilterSet):
    recipient = django_filters.NumberFilter(field_name='recipient_id')
    start_date = django_filters.DateFilter(field_name='date', lookup_expr='date__gte')
    end_date = django_filters.DateFilter(field_name='date', lookup_expr='date__lte')
    blood_type = django_filters.ChoiceFilter(choices=BLOOD_TYPE_CHOICES)

    class Meta:
        model = Transfusion
        fields = ['recipient', 'blood_type']
