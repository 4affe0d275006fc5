"""ABO/Rh red cell compatibility: which donor types a recipient can receive."""

COMPATIBLE_DONORS = {
    'O-': frozenset({'O-'}),
    'O+': frozenset({'O-', 'O+'}),
    'A-': frozenset({'O-', 'A-'}),
    'A+': frozenset({'O-', 'O+', 'A-', 'A+'}),
    'B-': frozenset({'O-', 'B-'}),
    'B+': frozenset({'O-', 'O+', 'B-', 'B+'}),
    'AB-': frozenset({'O-', 'A-', 'B-', 'AB-'}),
    'AB+': frozenset({'O-', 'O+', 'A-', 'A+', 'B-', 'B+', 'AB-', 'AB+'}),
}


def compatible_donor_types(recipient_type):
    """Unknown types get an empty set rather than an error."""
    return COMPATIBLE_DONORS.get(recipient_type, frozenset())


def can_receive(recipient_type, donor_type):
    return donor_type in compatible_donor_types(recipient_type)
