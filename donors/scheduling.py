from datetime import timedelta

SLOT_HOURS = range(9, 17)


def time_slots():
    return [f"{hour:02d}:00" for hour in SLOT_HOURS]


def is_valid_slot(value):
    return value in time_slots()


def available_slots(start_date, end_date, booked):
    """
    Free weekday slots between two dates (inclusive). `booked` is a set of
    (date, 'HH:00') pairs already taken.
    """
    slots = []
    day = start_date
    while day <= end_date:
        if day.weekday() < 5:
            for slot in time_slots():
                if (day, slot) not in booked:
                    slots.append({'date': day, 'time_slot': slot})
        day += timedelta(days=1)
    return slots
