import pytest

from agrosanga.backends import SIGNED_IN, SIGNED_OUT, SOIL_REPORTS_BUCKET, BackendError


def _profile(identity, mobile='9876543210'):
    return {
        'user_id': identity.id,
        'name': 'Ravi',
        'mobile_number': mobile,
        'survey_number': None,
        'farm_area': 2.5,
    }


def test_sign_up_starts_a_session_and_notifies(connect):
    backend = connect()
    events = []
    backend.on_auth_state_change(lambda event, session: events.append((event, session)))

    identity = backend.sign_up('9876543210@agrosanga.local', 'secret1', {'name': 'Ravi'})

    assert identity.email == '9876543210@agrosanga.local'
    assert identity.user_metadata == {'name': 'Ravi'}
    assert backend.get_session().user == identity
    assert [event for event, _ in events] == [SIGNED_IN]


def test_duplicate_account_is_rejected(connect):
    connect().sign_up('a@agrosanga.local', 'secret1', {})
    with pytest.raises(BackendError, match="User already registered"):
        connect().sign_up('a@agrosanga.local', 'secret1', {})


def test_short_password_is_rejected_by_the_service(connect):
    with pytest.raises(BackendError, match="at least 6"):
        connect().sign_up('a@agrosanga.local', 'abc', {})


def test_sign_in_checks_password(connect):
    connect().sign_up('a@agrosanga.local', 'secret1', {})

    backend = connect()
    with pytest.raises(BackendError, match="Invalid login credentials"):
        backend.sign_in_with_password('a@agrosanga.local', 'wrong-password')
    assert backend.get_session() is None

    session = backend.sign_in_with_password('a@agrosanga.local', 'secret1')
    assert session.access_token
    assert backend.get_session() is session


def test_sign_out_clears_session_and_notifies(connect):
    backend = connect()
    backend.sign_up('a@agrosanga.local', 'secret1', {})
    events = []
    backend.on_auth_state_change(lambda event, session: events.append((event, session)))

    backend.sign_out()

    assert backend.get_session() is None
    assert events == [(SIGNED_OUT, None)]


def test_unsubscribed_listener_gets_nothing(connect):
    backend = connect()
    events = []
    subscription = backend.on_auth_state_change(lambda event, session: events.append(event))
    subscription.unsubscribe()
    subscription.unsubscribe()

    backend.sign_up('a@agrosanga.local', 'secret1', {})
    assert events == []


def test_insert_requires_matching_owner(connect):
    backend = connect()
    identity = backend.sign_up('a@agrosanga.local', 'secret1', {})

    row = _profile(identity)
    row['user_id'] = 'someone-else'
    with pytest.raises(BackendError, match="row-level security"):
        backend.insert('profiles', row)

    anonymous = connect()
    with pytest.raises(BackendError, match="row-level security"):
        anonymous.insert('profiles', _profile(identity))


def test_rows_are_only_visible_to_their_owner(connect):
    alice, bob = connect(), connect()
    alice_id = alice.sign_up('a@agrosanga.local', 'secret1', {})
    bob_id = bob.sign_up('b@agrosanga.local', 'secret1', {})
    alice.insert('profiles', _profile(alice_id, mobile='1111111111'))
    bob.insert('profiles', _profile(bob_id, mobile='2222222222'))

    assert alice.select_one('profiles', 'user_id', alice_id.id)['mobile_number'] == '1111111111'
    assert alice.select_one('profiles', 'user_id', bob_id.id) is None
    assert alice.select_one('profiles', 'mobile_number', '2222222222') is None
    assert connect().select_one('profiles', 'mobile_number', '1111111111') is None


def test_mobile_numbers_are_globally_unique(connect):
    alice, bob = connect(), connect()
    alice_id = alice.sign_up('a@agrosanga.local', 'secret1', {})
    bob_id = bob.sign_up('b@agrosanga.local', 'secret1', {})
    alice.insert('profiles', _profile(alice_id, mobile='1111111111'))

    with pytest.raises(BackendError, match="duplicate key"):
        bob.insert('profiles', _profile(bob_id, mobile='1111111111'))


def test_select_lists_newest_first(connect):
    backend = connect()
    identity = backend.sign_up('a@agrosanga.local', 'secret1', {})
    for yield_value in (30.0, 40.0, 50.0):
        backend.insert('yield_predictions', {
            'user_id': identity.id,
            'soil_data': {'pH': 7.0},
            'predicted_yield': yield_value,
            'file_url': None,
        })

    rows = backend.select('yield_predictions', 'user_id', identity.id)
    assert len(rows) == 3
    created = [row['created_at'] for row in rows]
    assert created == sorted(created, reverse=True)


def test_unknown_table_and_column(connect):
    backend = connect()
    identity = backend.sign_up('a@agrosanga.local', 'secret1', {})
    with pytest.raises(BackendError, match="does not exist"):
        backend.select_one('accounts', 'id', identity.id)
    with pytest.raises(BackendError, match="does not exist"):
        backend.select_one('profiles', 'password_hash', 'x')


def test_upload_is_confined_to_owner_prefix(connect, storage_root):
    backend = connect()
    identity = backend.sign_up('a@agrosanga.local', 'secret1', {})

    path = backend.upload(SOIL_REPORTS_BUCKET, f'{identity.id}/1.pdf', b'%PDF', 'application/pdf')
    assert (storage_root / SOIL_REPORTS_BUCKET / path).read_bytes() == b'%PDF'

    for bad_path in ('other-user/1.pdf', f'{identity.id}/../other/1.pdf', '1.pdf'):
        with pytest.raises(BackendError, match="row-level security"):
            backend.upload(SOIL_REPORTS_BUCKET, bad_path, b'%PDF', 'application/pdf')

    with pytest.raises(BackendError, match="Bucket not found"):
        backend.upload('public', f'{identity.id}/1.pdf', b'%PDF', 'application/pdf')


def test_upload_does_not_overwrite(connect):
    backend = connect()
    identity = backend.sign_up('a@agrosanga.local', 'secret1', {})
    backend.upload(SOIL_REPORTS_BUCKET, f'{identity.id}/1.pdf', b'one', 'application/pdf')

    with pytest.raises(BackendError, match="already exists"):
        backend.upload(SOIL_REPORTS_BUCKET, f'{identity.id}/1.pdf', b'two', 'application/pdf')


def test_farm_area_must_be_positive(connect):
    backend = connect()
    identity = backend.sign_up('a@agrosanga.local', 'secret1', {})
    row = _profile(identity)
    row['farm_area'] = 0

    with pytest.raises(BackendError, match="check constraint"):
        backend.insert('profiles', row)
    assert backend.select_one('profiles', 'user_id', identity.id) is None
