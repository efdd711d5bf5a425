from sqlalchemy.exc import OperationalError

from tutorhub.auth import roles
from tutorhub.auth.roles import Role, resolve_role
from tutorhub.models.admin import Admin
from tutorhub.models.tutor_application import TutorApplication
from tutorhub.models.user import User


def test_user_sync_is_idempotent(client, session_factory) -> None:
    payload = {'email': 'Alice@X.com', 'name': 'Alice', 'uid': 'uid-1', 'photo_url': 'https://img/a.png'}

    first = client.post('/users', json=payload)
    second = client.post('/users', json={**payload, 'name': 'Renamed'})

    assert first.status_code == 200
    assert first.json()['success'] is True
    assert first.json()['message'] == 'New user inserted'
    assert second.json()['success'] is False
    assert second.json()['message'] == 'User already existed'
    assert second.json()['user_id'] == first.json()['user_id']
    with session_factory() as db:
        users = db.query(User).filter(User.email == 'alice@x.com').all()
        assert len(users) == 1
        assert users[0].name == 'Alice'
        assert users[0].role == 'student'


def test_user_sync_requires_email(client) -> None:
    response = client.post('/users', json={'email': '   ', 'name': 'Nobody'})

    assert response.status_code == 422


def test_role_lookup_is_admin_only(client, auth, make_user) -> None:
    make_user('sam@x.com')

    response = client.get('/users/role/sam@x.com', headers=auth('sam@x.com'))

    assert response.status_code == 403


def test_role_lookup_follows_precedence(client, auth, make_admin, make_tutor, seed) -> None:
    make_admin('boss@x.com')
    make_tutor('tina@x.com')
    make_tutor('both@x.com')
    seed(Admin(email='both@x.com'))

    def role_of(email: str) -> str:
        return client.get(f'/users/role/{email}', headers=auth('boss@x.com')).json()['role']

    assert role_of('boss@x.com') == 'admin'
    assert role_of('both@x.com') == 'admin'
    assert role_of('tina@x.com') == 'tutor'
    assert role_of('nobody@x.com') == 'student'


def test_role_lookup_without_credential_is_unauthorized(client) -> None:
    assert client.get('/users/role/sam@x.com').status_code == 401


def test_admin_user_listing_paginates_and_annotates_roles(client, auth, make_admin, make_tutor, make_user) -> None:
    make_admin('boss@x.com')
    make_tutor('tina@x.com')
    make_tutor('pat@x.com', status='pending')
    make_user('sam@x.com', role='admin')  # stale fallback role

    response = client.get('/admin/users', params={'page': 1, 'limit': 10}, headers=auth('boss@x.com'))

    assert response.status_code == 200
    body = response.json()
    assert body['total'] == 4
    assert body['total_pages'] == 1
    roles_by_email = {user['email']: user['role'] for user in body['users']}
    assert roles_by_email == {
        'boss@x.com': 'admin',
        'tina@x.com': 'tutor',
        'pat@x.com': 'student',
        'sam@x.com': 'student',
    }


def test_admin_user_listing_search_and_page_slice(client, auth, make_admin, make_user) -> None:
    make_admin('boss@x.com')
    for index in range(5):
        make_user(f'learner{index}@x.com', name=f'Learner {index}')

    response = client.get(
        '/admin/users',
        params={'search': 'LEARNER', 'page': 2, 'limit': 2},
        headers=auth('boss@x.com'),
    )

    body = response.json()
    assert body['total'] == 5
    assert body['page'] == 2
    assert body['limit'] == 2
    assert body['total_pages'] == 3
    assert len(body['users']) == 2
    assert all('learner' in user['email'] for user in body['users'])


def test_admin_user_listing_forbidden_for_tutor(client, auth, make_tutor) -> None:
    make_tutor('tina@x.com')

    assert client.get('/admin/users', headers=auth('tina@x.com')).status_code == 403


def test_promote_student_to_tutor(client, auth, session_factory, make_admin, make_user) -> None:
    make_admin('boss@x.com')
    student = make_user('sam@x.com', name='Sam')

    response = client.patch(f'/admin/users/{student.id}/role', json={'role': 'tutor'}, headers=auth('boss@x.com'))

    assert response.status_code == 200
    assert response.json()['role'] == 'tutor'
    with session_factory() as db:
        assert resolve_role(db, 'sam@x.com') is Role.TUTOR
        application = db.query(TutorApplication).filter(TutorApplication.email == 'sam@x.com').one()
        assert application.status == 'approved'
        assert application.name == 'Sam'
        assert db.get(User, student.id).role == 'tutor'


def test_promote_forces_existing_application_to_approved(client, auth, session_factory, make_admin, make_tutor) -> None:
    make_admin('boss@x.com')
    application = make_tutor('pat@x.com', status='cancelled')
    with session_factory() as db:
        user_id = db.query(User.id).filter(User.email == 'pat@x.com').scalar()

    client.patch(f'/admin/users/{user_id}/role', json={'role': 'tutor'}, headers=auth('boss@x.com'))

    with session_factory() as db:
        applications = db.query(TutorApplication).filter(TutorApplication.email == 'pat@x.com').all()
        assert [(a.id, a.status) for a in applications] == [(application.id, 'approved')]


def test_demote_tutor_to_student_soft_revokes_application(client, auth, session_factory, make_admin, make_tutor) -> None:
    make_admin('boss@x.com')
    application = make_tutor('tina@x.com')
    with session_factory() as db:
        user_id = db.query(User.id).filter(User.email == 'tina@x.com').scalar()

    response = client.patch(f'/admin/users/{user_id}/role', json={'role': 'student'}, headers=auth('boss@x.com'))

    assert response.status_code == 200
    assert response.json()['role'] == 'student'
    with session_factory() as db:
        revoked = db.get(TutorApplication, application.id)
        assert revoked is not None
        assert revoked.status == 'removed'
        assert resolve_role(db, 'tina@x.com') is Role.STUDENT


def test_promote_to_admin_then_back(client, auth, session_factory, make_admin, make_user) -> None:
    make_admin('boss@x.com')
    user = make_user('ada@x.com')

    client.patch(f'/admin/users/{user.id}/role', json={'role': 'admin'}, headers=auth('boss@x.com'))
    with session_factory() as db:
        assert resolve_role(db, 'ada@x.com') is Role.ADMIN

    client.patch(f'/admin/users/{user.id}/role', json={'role': 'student'}, headers=auth('boss@x.com'))
    with session_factory() as db:
        assert db.query(Admin).filter(Admin.email == 'ada@x.com').count() == 0
        assert resolve_role(db, 'ada@x.com') is Role.STUDENT


def test_role_change_unknown_user_is_not_found(client, auth, make_admin) -> None:
    make_admin('boss@x.com')

    response = client.patch('/admin/users/999/role', json={'role': 'tutor'}, headers=auth('boss@x.com'))

    assert response.status_code == 404


def test_role_change_rejects_unknown_role(client, auth, make_admin, make_user) -> None:
    make_admin('boss@x.com')
    user = make_user('sam@x.com')

    response = client.patch(f'/admin/users/{user.id}/role', json={'role': 'owner'}, headers=auth('boss@x.com'))

    assert response.status_code == 422


def test_role_change_forbidden_for_non_admin(client, auth, make_user) -> None:
    actor = make_user('sam@x.com', role='admin')

    response = client.patch(f'/admin/users/{actor.id}/role', json={'role': 'admin'}, headers=auth('sam@x.com'))

    assert response.status_code == 403


def test_role_change_store_error_after_commit_is_internal_error(client, auth, monkeypatch, make_admin, make_user) -> None:
    make_admin('boss@x.com')
    student = make_user('sam@x.com')
    real_resolve_role = roles.resolve_role

    def flaky_resolve_role(db, email):
        if email == 'sam@x.com':
            raise OperationalError('SELECT 1', {}, Exception('database is locked'))
        return real_resolve_role(db, email)

    monkeypatch.setattr(roles, 'resolve_role', flaky_resolve_role)

    response = client.patch(f'/admin/users/{student.id}/role', json={'role': 'tutor'}, headers=auth('boss@x.com'))

    assert response.status_code == 500
    assert response.json()['detail'] == 'Internal server error'
