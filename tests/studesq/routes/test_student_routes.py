from datetime import datetime
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from studesq.core import config
from studesq.models import Achievement, AchievementType, ParentLink, UserRole
from studesq.repository import SqlAlchemyDataAccess

PDF_BYTES = b'%PDF-1.4\n%fake certificate\n'


@pytest.fixture
def client(make_client, mock_settings):
    return make_client(mock_settings)


@pytest.fixture
def sign_in(client, session_cookie):
    def _sign_in(user):
        client.cookies.clear()
        client.cookies.update(session_cookie(user))
        return client

    return _sign_in


@pytest.fixture
def upload_root(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'UPLOAD_DIR', str(tmp_path))
    return tmp_path


def _achievement_form(**overrides) -> dict:
    form = {
        'title': 'Science Fair Winner',
        'description': 'First place at the regional science fair.',
        'type': 'COMPETITION',
        'date': '2024-05-01T00:00:00',
    }
    form.update(overrides)
    return form


def test_profile_requires_authentication(client, portfolio) -> None:
    response = client.get('/students/s1')

    assert response.status_code == 401
    assert response.json() == {
        'success': False,
        'error': {'message': 'Authentication required', 'code': 'UNAUTHORIZED'},
    }


def test_student_reads_own_profile(sign_in, portfolio) -> None:
    response = sign_in(portfolio.student).get('/students/s1')

    assert response.status_code == 200
    data = response.json()['data']
    assert data['id'] == 's1'
    assert data['school'] == 'Lincoln High School'
    assert data['user'] == {'id': 'u1', 'email': 'a@x.com', 'name': 'A', 'role': 'STUDENT'}
    assert data['parents'] == [{'id': 'p1', 'name': 'P', 'email': 'parent@x.com'}]


def test_student_cannot_read_other_profile(sign_in, portfolio) -> None:
    response = sign_in(portfolio.student).get('/students/s2')

    assert response.status_code == 403
    assert response.json()['error'] == {'message': 'Access denied to this student profile', 'code': 'FORBIDDEN'}


def test_student_gets_403_not_404_for_unknown_profile(sign_in, portfolio) -> None:
    assert sign_in(portfolio.student).get('/students/missing').status_code == 403


def test_verified_parent_reads_linked_profile_only(sign_in, portfolio) -> None:
    client = sign_in(portfolio.parent)

    assert client.get('/students/s1').status_code == 200
    assert client.get('/students/s2').status_code == 403


def test_parent_loses_access_when_link_is_unverified(sign_in, db, portfolio) -> None:
    client = sign_in(portfolio.parent)
    assert client.get('/students/s1').status_code == 200

    portfolio.link.verified = False
    db.commit()

    assert client.get('/students/s1').status_code == 403


def test_admin_reads_any_profile_and_gets_404_for_unknown(sign_in, portfolio) -> None:
    client = sign_in(portfolio.admin)

    assert client.get('/students/s2').status_code == 200
    response = client.get('/students/missing')
    assert response.status_code == 404
    assert response.json()['error']['code'] == 'NOT_FOUND'


def test_profile_read_storage_fault_returns_503(sign_in, portfolio, monkeypatch) -> None:
    def _broken(self, user_id):
        raise OperationalError('SELECT 1', {}, Exception('database is locked'))

    monkeypatch.setattr(SqlAlchemyDataAccess, 'find_student_profile_by_user_id', _broken)

    response = sign_in(portfolio.student).get('/students/s1')

    assert response.status_code == 503
    assert response.json()['error']['code'] == 'SERVER_ERROR'


def test_student_updates_own_profile(sign_in, portfolio) -> None:
    response = sign_in(portfolio.student).put(
        '/students/s1',
        json={'display_name': '  Alice A.  ', 'bio': 'Robotics captain', 'grade': '11', 'dob': '2008-03-14'},
    )

    assert response.status_code == 200
    body = response.json()
    assert body['message'] == 'Profile updated successfully'
    assert body['data']['display_name'] == 'Alice A.'
    assert body['data']['bio'] == 'Robotics captain'
    assert body['data']['dob'] == '2008-03-14'
    assert body['data']['school'] == 'Lincoln High School'


def test_profile_update_returns_five_latest_achievements(sign_in, db, portfolio) -> None:
    for day in range(1, 8):
        db.add(Achievement(
            student_id='s1',
            title=f'Award {day}',
            description='Recognised',
            type=AchievementType.ACADEMIC,
            date=datetime(2024, 1, day),
        ))
    db.commit()

    response = sign_in(portfolio.student).put('/students/s1', json={'display_name': 'Alice'})

    titles = [achievement['title'] for achievement in response.json()['data']['achievements']]
    assert titles == ['Award 7', 'Award 6', 'Award 5', 'Award 4', 'Award 3']


def test_profile_update_rejects_invalid_data(sign_in, portfolio) -> None:
    response = sign_in(portfolio.student).put('/students/s1', json={'display_name': 'A', 'bio': 'x' * 501})

    assert response.status_code == 400
    error = response.json()['error']
    assert error['message'] == 'Invalid profile data'
    assert error['code'] == 'VALIDATION_ERROR'
    assert {tuple(detail['loc']) for detail in error['details']} == {('display_name',), ('bio',)}


def test_parent_cannot_update_profile_even_with_invalid_body(sign_in, portfolio) -> None:
    response = sign_in(portfolio.parent).put('/students/s1', json={'display_name': ''})

    assert response.status_code == 403
    assert response.json()['error']['message'] == 'Only students can update their profile'


def test_student_cannot_update_other_profile(sign_in, portfolio) -> None:
    response = sign_in(portfolio.student).put('/students/s2', json={'display_name': 'Hijack'})

    assert response.status_code == 403
    assert response.json()['error']['message'] == 'You can only update your own profile'


def test_update_of_unknown_profile_returns_404(sign_in, portfolio) -> None:
    assert sign_in(portfolio.student).put('/students/missing', json={'display_name': 'Nobody'}).status_code == 404


def test_admin_updates_any_profile(sign_in, portfolio) -> None:
    response = sign_in(portfolio.admin).put('/students/s2', json={'display_name': 'Bee'})

    assert response.status_code == 200
    assert response.json()['data']['display_name'] == 'Bee'


def test_profile_update_requires_authentication(client, portfolio) -> None:
    assert client.put('/students/s1', json={'display_name': 'Alice'}).status_code == 401


def test_student_adds_achievement_without_certificate(sign_in, portfolio) -> None:
    client = sign_in(portfolio.student)

    response = client.post('/students/s1/achievements', data=_achievement_form())

    assert response.status_code == 201
    data = response.json()['data']
    assert data['title'] == 'Science Fair Winner'
    assert data['type'] == 'COMPETITION'
    assert data['certificate_path'] is None

    listed = client.get('/students/s1/achievements').json()['data']
    assert [achievement['id'] for achievement in listed] == [data['id']]


def test_student_adds_achievement_with_certificate(sign_in, portfolio, upload_root) -> None:
    client = sign_in(portfolio.student)

    response = client.post(
        '/students/s1/achievements',
        data=_achievement_form(type='CERTIFICATION'),
        files={'certificate': ('my cert.pdf', PDF_BYTES, 'application/pdf')},
    )

    assert response.status_code == 201
    certificate_path = response.json()['data']['certificate_path']
    assert certificate_path.startswith('/uploads/s1/my_cert_')
    assert certificate_path.endswith('.pdf')
    stored = upload_root / 's1' / certificate_path.rsplit('/', 1)[1]
    assert stored.read_bytes() == PDF_BYTES


def test_achievement_with_disallowed_file_type_is_rejected(sign_in, db, portfolio, upload_root) -> None:
    response = sign_in(portfolio.student).post(
        '/students/s1/achievements',
        data=_achievement_form(),
        files={'certificate': ('notes.txt', b'hello', 'text/plain')},
    )

    assert response.status_code == 400
    error = response.json()['error']
    assert error['message'] == 'File upload failed'
    assert error['details']['code'] == 'INVALID_TYPE'
    assert db.query(Achievement).count() == 0


def test_achievement_with_invalid_type_is_rejected(sign_in, portfolio) -> None:
    response = sign_in(portfolio.student).post('/students/s1/achievements', data=_achievement_form(type='SPORTS'))

    assert response.status_code == 400
    assert response.json()['error']['message'] == 'Invalid achievement data'


def test_achievement_with_missing_title_is_rejected(sign_in, portfolio) -> None:
    form = _achievement_form()
    del form['title']

    response = sign_in(portfolio.student).post('/students/s1/achievements', data=form)

    assert response.status_code == 400


def test_parent_cannot_add_achievement(sign_in, portfolio) -> None:
    response = sign_in(portfolio.parent).post('/students/s1/achievements', data=_achievement_form())

    assert response.status_code == 403
    assert response.json()['error']['message'] == 'Only students can add achievements'


def test_student_cannot_add_achievement_to_other_profile(sign_in, portfolio) -> None:
    response = sign_in(portfolio.student).post('/students/s2/achievements', data=_achievement_form())

    assert response.status_code == 403
    assert response.json()['error']['message'] == 'You can only add achievements to your own profile'


def test_achievements_list_is_access_checked(sign_in, portfolio) -> None:
    assert sign_in(portfolio.other_student).get('/students/s1/achievements').status_code == 403
    assert sign_in(portfolio.parent).get('/students/s1/achievements').status_code == 200


def test_uploaded_certificate_is_served_to_authorized_readers(sign_in, portfolio, upload_root) -> None:
    created = sign_in(portfolio.student).post(
        '/students/s1/achievements',
        data=_achievement_form(),
        files={'certificate': ('award.pdf', PDF_BYTES, 'application/pdf')},
    )
    url = created.json()['data']['certificate_path']

    for reader in (portfolio.student, portfolio.parent, portfolio.admin):
        response = sign_in(reader).get(url)
        assert response.status_code == 200
        assert response.content == PDF_BYTES
        assert response.headers['content-type'] == 'application/pdf'
        assert response.headers['cache-control'] == 'private, max-age=3600'
        assert response.headers['content-disposition'].startswith('inline;')

    assert sign_in(portfolio.other_student).get(url).status_code == 403


def test_missing_upload_returns_404(sign_in, portfolio, upload_root) -> None:
    response = sign_in(portfolio.student).get('/uploads/s1/nothing.pdf')

    assert response.status_code == 404
    assert response.json()['error']['message'] == 'File not found'


def test_upload_requires_authentication(client, portfolio, upload_root) -> None:
    assert client.get('/uploads/s1/anything.pdf').status_code == 401


def test_certificate_removed_when_commit_fails(sign_in, db, portfolio, upload_root, monkeypatch) -> None:
    client = sign_in(portfolio.student)

    def _failing_commit():
        raise OperationalError('INSERT INTO achievements', {}, Exception('disk I/O error'))

    monkeypatch.setattr(db, 'commit', _failing_commit)

    response = client.post(
        '/students/s1/achievements',
        data=_achievement_form(),
        files={'certificate': ('award.pdf', PDF_BYTES, 'application/pdf')},
    )

    assert response.status_code == 503
    student_dir = upload_root / 's1'
    assert not student_dir.exists() or list(student_dir.iterdir()) == []
    assert db.query(Achievement).count() == 0


def test_student_fetches_own_profile_without_knowing_its_id(sign_in, portfolio) -> None:
    response = sign_in(portfolio.student).get('/students/me')

    assert response.status_code == 200
    data = response.json()['data']
    assert data['id'] == 's1'
    assert data['user']['id'] == 'u1'


def test_own_profile_is_null_before_provisioning(sign_in, portfolio) -> None:
    newcomer = SimpleNamespace(id='u9', email='new@x.com', name='New', role=UserRole.STUDENT)

    response = sign_in(newcomer).get('/students/me')

    assert response.status_code == 200
    assert response.json()['data'] is None


@pytest.mark.parametrize('reader', ['parent', 'admin'])
def test_own_profile_is_for_students_only(sign_in, portfolio, reader) -> None:
    assert sign_in(getattr(portfolio, reader)).get('/students/me').status_code == 403


def test_own_profile_requires_authentication(client, portfolio) -> None:
    assert client.get('/students/me').status_code == 401


def test_parent_lists_verified_students_with_latest_achievements(sign_in, db, portfolio) -> None:
    db.add(ParentLink(parent_user_id='p1', student_id='s2', verified=False))
    for day in range(1, 8):
        db.add(Achievement(
            student_id='s1',
            title=f'Award {day}',
            description='Recognised',
            type=AchievementType.ACADEMIC,
            date=datetime(2024, 2, day),
        ))
    db.commit()

    response = sign_in(portfolio.parent).get('/parents/me/students')

    assert response.status_code == 200
    students = response.json()['data']
    assert [student['id'] for student in students] == ['s1']
    assert students[0]['user']['email'] == 'a@x.com'
    assert [achievement['title'] for achievement in students[0]['achievements']] == [
        'Award 7', 'Award 6', 'Award 5', 'Award 4', 'Award 3',
    ]


def test_linked_students_follow_link_verification(sign_in, db, portfolio) -> None:
    client = sign_in(portfolio.parent)
    portfolio.link.verified = False
    db.commit()

    assert client.get('/parents/me/students').json()['data'] == []


@pytest.mark.parametrize('reader', ['student', 'admin'])
def test_linked_students_are_for_parents_only(sign_in, portfolio, reader) -> None:
    assert sign_in(getattr(portfolio, reader)).get('/parents/me/students').status_code == 403
