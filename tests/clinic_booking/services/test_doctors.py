import pytest
from sqlalchemy.exc import OperationalError

from clinic_booking.errors import DoctorEmailTaken, DoctorNotFound, TransientStoreFailure
from clinic_booking.models.working_hours import DEFAULT_WORKING_HOURS
from clinic_booking.services import doctors
from clinic_booking.services.doctors import DoctorFilter, sanitize_search


@pytest.mark.parametrize(
    ('term', 'expected'),
    [
        ('  house ', 'house'),
        ('<b>House</b>', 'House'),
        ("o'brien; DROP TABLE", 'obrien DROP TABLE'),
        ('snake_case', 'snakecase'),
        ('José', 'José'),
        ('%%', None),
        (None, None),
    ],
)
def test_sanitize_search(term, expected) -> None:
    assert sanitize_search(term) == expected


def test_create_doctor_defaults_to_weekday_hours(db_session) -> None:
    doctor = doctors.create_doctor(db_session, name='Dr. House', specialization='Diagnostics')

    assert doctor.id is not None
    assert doctor.is_active is True
    assert doctor.working_hours == DEFAULT_WORKING_HOURS


def test_create_doctor_rejects_duplicate_email(db_session) -> None:
    doctors.create_doctor(db_session, name='Dr. One', specialization='Cardiology', email='same@example.com')

    with pytest.raises(DoctorEmailTaken):
        doctors.create_doctor(db_session, name='Dr. Two', specialization='Cardiology', email='same@example.com')


def test_list_doctors_only_returns_active_undeleted_doctors(db_session, make_doctor) -> None:
    make_doctor(name='Active')
    make_doctor(name='Inactive', is_active=False)
    deleted = make_doctor(name='Deleted')
    doctors.delete_doctor(db_session, deleted)

    page = doctors.list_doctors(db_session, DoctorFilter())

    assert [doctor.name for doctor in page.items] == ['Active']
    assert page.total == 1


def test_list_doctors_filters_and_searches(db_session, make_doctor) -> None:
    make_doctor(name='Dr. Alice Heart', specialization='Cardiology')
    make_doctor(name='Dr. Bob Heartwell', specialization='Cardiology')
    make_doctor(name='Dr. Carol Skin', specialization='Dermatology')

    page = doctors.list_doctors(db_session, DoctorFilter(specialization='Cardiology', search='heart'))
    assert [doctor.name for doctor in page.items] == ['Dr. Alice Heart', 'Dr. Bob Heartwell']

    page = doctors.list_doctors(db_session, DoctorFilter(search='<i>skin</i>'))
    assert [doctor.name for doctor in page.items] == ['Dr. Carol Skin']


def test_list_doctors_sorts_and_paginates(db_session, make_doctor) -> None:
    for name in ['Dr. C', 'Dr. A', 'Dr. E', 'Dr. B', 'Dr. D']:
        make_doctor(name=name)

    first = doctors.list_doctors(db_session, DoctorFilter(sort_by='name', sort_dir='desc', page=1, per_page=2))
    last = doctors.list_doctors(db_session, DoctorFilter(sort_by='name', sort_dir='desc', page=3, per_page=2))

    assert [doctor.name for doctor in first.items] == ['Dr. E', 'Dr. D']
    assert [doctor.name for doctor in last.items] == ['Dr. A']
    assert first.total == 5
    assert first.last_page == 3


def test_update_doctor_changes_fields(db_session, make_doctor) -> None:
    doctor = make_doctor()

    updated = doctors.update_doctor(
        db_session,
        doctor,
        specialization='Neurology',
        working_hours={'tuesday': ['10:00', '14:00']},
    )

    assert updated.specialization == 'Neurology'
    assert updated.schedule.to_mapping() == {'tuesday': ['10:00', '14:00']}


def test_get_doctor_hides_soft_deleted_rows(db_session, make_doctor) -> None:
    doctor = make_doctor()
    doctors.delete_doctor(db_session, doctor)

    with pytest.raises(DoctorNotFound):
        doctors.get_doctor(db_session, doctor.id)


def test_get_doctor_read_failure_is_transient(db_session, monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(*args, **kwargs):
        raise OperationalError('SELECT doctors', {}, Exception('connection reset'))

    monkeypatch.setattr(doctors.store, 'find_doctor_by_id', _fail)

    with pytest.raises(TransientStoreFailure):
        doctors.get_doctor(db_session, 1)
