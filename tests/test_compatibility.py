from donors.models import BLOOD_TYPES
from recipients.compatibility import can_receive, compatible_donor_types


def test_o_negative_receives_only_o_negative():
    assert compatible_donor_types('O-') == {'O-'}


def test_ab_positive_receives_all_types():
    assert compatible_donor_types('AB+') == set(BLOOD_TYPES)


def test_every_type_receives_itself():
    for blood_type in BLOOD_TYPES:
        assert can_receive(blood_type, blood_type)


def test_unknown_type_is_empty():
    assert compatible_donor_types('C+') == set()


def test_rh_negative_cannot_receive_positive():
    assert not can_receive('A-', 'A+')
    assert can_receive('A+', 'A-')
