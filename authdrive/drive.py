"""Google Drive upload client.

Uploads go through the Drive v3 ``multipart/related`` endpoint using an offline
token kept in a JSON file (``access_token``, ``refresh_token``, ``scope``,
``token_type``, ``expiry_date`` in epoch milliseconds). The token is read once
when the client is built and refreshed explicitly once it is about to expire.
"""
import json
import os
import tempfile
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Optional

import requests

from .oauth import TOKEN_URI

UPLOAD_URI = 'https://www.googleapis.com/upload/drive/v3/files'

TIMEOUT = 60
# Refresh a little before the real expiry
EXPIRY_LEEWAY = 60


class DriveError(Exception):
    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


def _json_body(resp, what):
    try:
        data = resp.json()
    except ValueError as e:
        raise DriveError(f'{what} returned a non-JSON body', resp.status_code) from e
    if not isinstance(data, dict):
        raise DriveError(f'{what} returned unexpected JSON', resp.status_code)
    return data


@dataclass
class DriveToken:
    access_token: str
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
    token_type: str = 'Bearer'
    expiry_date: Optional[int] = None

    @classmethod
    def from_response(cls, data, previous=None):
        if not data.get('access_token'):
            raise DriveError('Token data has no access_token')
        expiry = None
        if data.get('expires_in') is not None:
            expiry = int((time.time() + int(data['expires_in'])) * 1000)
        elif data.get('expiry_date') is not None:
            expiry = int(data['expiry_date'])
        return cls(
            access_token=data['access_token'],
            # Google omits the refresh token on refresh responses
            refresh_token=data.get('refresh_token') or (previous.refresh_token if previous else None),
            scope=data.get('scope') or (previous.scope if previous else None),
            token_type=data.get('token_type') or 'Bearer',
            expiry_date=expiry,
        )

    @classmethod
    def load(cls, path):
        """Read a token file; ``None`` when there is none, DriveError when it is unreadable."""
        if not path or not os.path.exists(path):
            return None
        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise DriveError(f'Cannot read Drive token file {path}: {e}') from e
        if not isinstance(data, dict):
            raise DriveError(f'Drive token file {path} does not hold a JSON object')
        return cls.from_response(data)

    def save(self, path):
        # Write beside the target and swap it in so readers never see a partial file
        directory = os.path.dirname(os.path.abspath(path))
        fd, tmp_path = tempfile.mkstemp(prefix='.token-', suffix='.json', dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(asdict(self), f, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def expired(self, now=None):
        if self.expiry_date is None:
            return False
        now = time.time() if now is None else now
        return now + EXPIRY_LEEWAY >= self.expiry_date / 1000.0


class DriveClient:
    def __init__(self, client_id, client_secret, token_path, folder_id=None, http=None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_path = token_path
        self.folder_id = folder_id
        self.http = http or requests.Session()
        # Why no token is loaded; the app still starts and uploads report it
        self.load_error = None
        try:
            self.token = DriveToken.load(token_path)
        except DriveError as e:
            self.token = None
            self.load_error = str(e)

    @property
    def authorized(self):
        return self.token is not None

    def store_token(self, token):
        self.token = token
        self.load_error = None
        if self.token_path:
            token.save(self.token_path)

    def refresh(self):
        if not self.token or not self.token.refresh_token:
            raise DriveError('No refresh token available; run `flask drive-authorize`')
        try:
            resp = self.http.post(
                TOKEN_URI,
                data={
                    'client_id': self.client_id,
                    'client_secret': self.client_secret,
                    'refresh_token': self.token.refresh_token,
                    'grant_type': 'refresh_token',
                },
                timeout=TIMEOUT,
            )
        except requests.RequestException as e:
            raise DriveError(f'Token refresh failed: {e}') from e
        if resp.status_code != 200:
            raise DriveError(f'Token refresh returned {resp.status_code}: {resp.text}', resp.status_code)
        data = _json_body(resp, 'Token refresh')
        self.store_token(DriveToken.from_response(data, previous=self.token))
        return self.token

    def access_token(self):
        if self.token is None:
            raise DriveError(self.load_error or f'No Drive token found at {self.token_path}; run `flask drive-authorize`')
        if self.token.expired():
            self.refresh()
        return self.token.access_token

    def upload(self, stream, filename, mimetype=None):
        """Upload a file-like object and return Drive's ``{'id', 'name'}``."""
        mimetype = mimetype or 'application/octet-stream'
        metadata = {'name': filename, 'mimeType': mimetype}
        if self.folder_id:
            metadata['parents'] = [self.folder_id]

        boundary = uuid.uuid4().hex
        body = b''.join([
            f'--{boundary}\r\n'.encode(),
            b'Content-Type: application/json; charset=UTF-8\r\n\r\n',
            json.dumps(metadata).encode('utf-8'),
            f'\r\n--{boundary}\r\n'.encode(),
            f'Content-Type: {mimetype}\r\n\r\n'.encode(),
            stream.read(),
            f'\r\n--{boundary}--\r\n'.encode(),
        ])
        headers = {
            'Authorization': f'Bearer {self.access_token()}',
            'Content-Type': f'multipart/related; boundary={boundary}',
        }
        try:
            resp = self.http.post(
                UPLOAD_URI,
                params={'uploadType': 'multipart', 'fields': 'id,name'},
                data=body,
                headers=headers,
                timeout=TIMEOUT,
            )
        except requests.RequestException as e:
            raise DriveError(f'Upload request failed: {e}') from e
        if resp.status_code not in (200, 201):
            raise DriveError(f'Drive upload returned {resp.status_code}: {resp.text}', resp.status_code)
        return _json_body(resp, 'Drive upload')
