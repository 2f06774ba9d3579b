"""Flask CLI commands."""
import json

from authdrive.models import db, User
from authdrive.oauth import TOKEN_URI


def test_init_db(runner) -> None:
    result = runner.invoke(args=['init-db'])
    assert result.exit_code == 0
    assert 'Initialized the database.' in result.output


def test_list_users_hides_hashes(app, runner, signup) -> None:
    assert 'no users' in runner.invoke(args=['list-users']).output

    signup(email='a@x.com', password='pw', username='A')
    with app.app_context():
        db.session.add(User(google_id='g-1', email='g@x.com', username='G'))
        db.session.commit()
        stored_hash = User.query.filter_by(email='a@x.com').one().password_hash

    output = runner.invoke(args=['list-users']).output
    assert 'a@x.com\tA\tlocal' in output
    assert 'g@x.com\tG\tgoogle' in output
    assert stored_hash not in output


def test_drive_authorize_writes_token(runner, http, tmp_path) -> None:
    http.queue('POST', TOKEN_URI, payload={
        'access_token': 'at-1', 'refresh_token': 'rt-1', 'expires_in': 3600,
        'scope': 'https://www.googleapis.com/auth/drive.file', 'token_type': 'Bearer',
    })
    result = runner.invoke(args=['drive-authorize'], input='the-code\n')
    assert result.exit_code == 0, result.output
    assert 'access_type=offline' in result.output

    saved = json.loads((tmp_path / 'tokens.json').read_text())
    assert saved['access_token'] == 'at-1'
    assert saved['refresh_token'] == 'rt-1'
    assert http.calls[-1][2]['data']['code'] == 'the-code'

def test_drive_authorize_uses_separate_redirect(runner, http) -> None:
    http.queue('POST', TOKEN_URI, payload={'access_token': 'at-1', 'expires_in': 3600})
    result = runner.invoke(args=['drive-authorize'], input='the-code\n')
    assert result.exit_code == 0, result.output
    assert 'redirect_uri=http%3A%2F%2Flocalhost%3A8765%2F' in result.output
    assert 'address bar' in result.output
    assert http.calls[-1][2]['data']['redirect_uri'] == 'http://localhost:8765/'


def test_drive_authorize_rejected_code(runner, http, tmp_path) -> None:
    http.queue('POST', TOKEN_URI, status_code=400, payload={'error': 'invalid_grant'})
    result = runner.invoke(args=['drive-authorize'], input='bad\n')
    assert result.exit_code != 0
    assert 'Token endpoint returned 400' in result.output
    assert not (tmp_path / 'tokens.json').exists()
