"""Google OAuth 2.0 web-server flow.

The client is built once by the app factory from configuration and kept in
``app.extensions['google_oauth']``. It only knows how to build the consent URL,
trade an authorization code for tokens and read the signed-in user's profile.
"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import requests

AUTH_URI = 'https://accounts.google.com/o/oauth2/v2/auth'
TOKEN_URI = 'https://oauth2.googleapis.com/token'
USERINFO_URI = 'https://openidconnect.googleapis.com/v1/userinfo'

LOGIN_SCOPES = ('openid', 'email', 'profile')
DRIVE_SCOPES = ('https://www.googleapis.com/auth/drive.file',)

TIMEOUT = 15


class OAuthError(Exception):
    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


@dataclass
class GoogleProfile:
    id: str
    email: Optional[str]
    display_name: Optional[str]


def _json_body(resp, what):
    try:
        data = resp.json()
    except ValueError as e:
        raise OAuthError(f'{what} returned a non-JSON body', resp.status_code) from e
    if not isinstance(data, dict):
        raise OAuthError(f'{what} returned unexpected JSON', resp.status_code)
    return data


class GoogleOAuthClient:
    def __init__(self, client_id, client_secret, redirect_uri, scopes=LOGIN_SCOPES, http=None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = tuple(scopes)
        self.http = http or requests.Session()

    def authorization_url(self, state, offline=False):
        params = {
            'client_id': self.client_id,
            'redirect_uri': self.redirect_uri,
            'response_type': 'code',
            'scope': ' '.join(self.scopes),
            'state': state,
        }
        if offline:
            # A refresh token is only issued on first consent unless forced
            params['access_type'] = 'offline'
            params['prompt'] = 'consent'
        return f'{AUTH_URI}?{urlencode(params)}'

    def exchange_code(self, code):
        """Trade an authorization code for the token response."""
        try:
            resp = self.http.post(
                TOKEN_URI,
                data={
                    'code': code,
                    'client_id': self.client_id,
                    'client_secret': self.client_secret,
                    'redirect_uri': self.redirect_uri,
                    'grant_type': 'authorization_code',
                },
                timeout=TIMEOUT,
            )
        except requests.RequestException as e:
            raise OAuthError(f'Token request failed: {e}') from e
        if resp.status_code != 200:
            raise OAuthError(f'Token endpoint returned {resp.status_code}: {resp.text}', resp.status_code)
        token = _json_body(resp, 'Token endpoint')
        if 'access_token' not in token:
            raise OAuthError('Token response has no access_token')
        return token

    def fetch_profile(self, access_token):
        try:
            resp = self.http.get(
                USERINFO_URI,
                headers={'Authorization': f'Bearer {access_token}'},
                timeout=TIMEOUT,
            )
        except requests.RequestException as e:
            raise OAuthError(f'Userinfo request failed: {e}') from e
        if resp.status_code != 200:
            raise OAuthError(f'Userinfo endpoint returned {resp.status_code}', resp.status_code)
        data = _json_body(resp, 'Userinfo endpoint')
        if not data.get('sub'):
            raise OAuthError('Userinfo response has no subject')
        return GoogleProfile(
            id=str(data['sub']),
            email=data.get('email') or None,
            display_name=data.get('name') or None,
        )

    def authenticate(self, code):
        token = self.exchange_code(code)
        return self.fetch_profile(token['access_token'])
