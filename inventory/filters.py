import django_filters

from donors.models import BLOOD_TYPE_CHOICES
from .models import BloodUnit


class BloodUnitFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(method='filter_status')
    blood_type = django_filters.ChoiceFilter(choices=BLOOD_TYPE_CHOICES)
    facility = django_filters.CharFilter(lookup_expr='icontains')
    refrigerator = django_filters.CharFilter()
    donor = django_filters.NumberFilter(field_name='donor_id')
    expiry_before = django_filters.DateFilter(field_name='expiry_date', lookup_expr='lte')
    expiry_after = django_filters.DateFilter(field_name='expiry_date', lookup_expr='gte')
    collected_after = django_filters.DateFilter(field_name='collection_date', lookup_expr='gte')

    class Meta:
        model = BloodUnit
        fields = ['blood_type', 'facility', 'refrigerator']

    def filter_status(self, queryset, name, value):
        # Stored status alone would still list expired units as available.
        if value == 'available':
            return queryset.available()
        if value == 'expired':
            return queryset.expired()
        return queryset.filter(status=value)
