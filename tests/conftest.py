import pytest
import requests

from authdrive import create_app
from authdrive.drive import DriveError
from authdrive.models import db
from authdrive.oauth import GoogleOAuthClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = str(self._payload)

    def json(self):
        return self._payload


class FakeHttp:
    """Stands in for requests.Session; replies are queued per (method, url)."""

    def __init__(self):
        self.calls = []
        self.replies = {}

    def queue(self, method, url, status_code=200, payload=None):
        self.replies.setdefault((method, url), []).append(FakeResponse(status_code, payload))

    def queue_response(self, method, url, response):
        self.replies.setdefault((method, url), []).append(response)

    def _reply(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        pending = self.replies.get((method, url))
        if not pending:
            raise AssertionError(f'unexpected {method} {url}')
        return pending.pop(0)

    def post(self, url, **kwargs):
        return self._reply('POST', url, kwargs)

    def get(self, url, **kwargs):
        return self._reply('GET', url, kwargs)


class FakeDrive:
    authorized = True

    def __init__(self):
        self.uploads = []
        self.error = None

    def upload(self, stream, filename, mimetype=None):
        if self.error:
            raise self.error
        self.uploads.append((stream.read(), filename, mimetype))
        return {'id': 'drive-file-1', 'name': filename}

    def fail_with(self, message='quota exceeded', status=403):
        self.error = DriveError(message, status)


@pytest.fixture
def html_response():
    """A real requests.Response whose body is an HTML error page."""
    def _make(status_code=200, body=b'<html>proxy error</html>'):
        resp = requests.Response()
        resp.status_code = status_code
        resp._content = body
        resp.headers['Content-Type'] = 'text/html'
        return resp
    return _make


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def drive():
    return FakeDrive()


@pytest.fixture
def app(tmp_path, http, drive):
    oauth = GoogleOAuthClient(
        'client-id', 'client-secret', 'http://localhost/auth/google/callback', http=http,
    )
    app = create_app(
        {
            'TESTING': True,
            'SECRET_KEY': 'test-secret',
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test.db'}",
            'DRIVE_TOKEN_FILE': str(tmp_path / 'tokens.json'),
        },
        oauth_client=oauth,
        drive_client=drive,
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def signup(client):
    def _signup(email='a@x.com', password='p', username='A'):
        return client.post('/signup', data={'email': email, 'password': password, 'username': username})
    return _signup
