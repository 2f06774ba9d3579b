import secrets
from functools import wraps

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from sqlalchemy.exc import SQLAlchemyError

from .models import db, User
from .oauth import OAuthError

auth_bp = Blueprint('auth', __name__)

INTENTS = ('signup', 'login')


def normalize_email(email):
    return (email or '').strip().lower()


def login_user(user):
    session.clear()
    session['user_id'] = user.id
    g.user = user


def logout_user():
    session.clear()
    g.user = None


@auth_bp.before_app_request
def load_logged_in_user():
    """Resolve the session's user id to a full record for this request."""
    user_id = session.get('user_id')
    g.user = None
    if user_id is None:
        return
    user = db.session.get(User, user_id)
    if user is None:
        # Account no longer exists
        session.pop('user_id', None)
        return
    g.user = user


@auth_bp.app_context_processor
def inject_user():
    return {'user': g.get('user')}


def login_required(view):
    """Send anonymous callers back to the home page login form."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if g.get('user') is None:
            flash('Please log in first.', 'error')
            return redirect(url_for('index'))
        return view(*args, **kwargs)
    return wrapped


def _server_error(message):
    db.session.rollback()
    current_app.logger.exception(message)
    return 'Internal Server Error', 500


# ---------------- Local accounts ----------------

@auth_bp.route('/signup', methods=['GET'])
def signup_form():
    return render_template('signup.html')


@auth_bp.route('/signup', methods=['POST'])
def signup():
    email = normalize_email(request.form.get('email'))
    password = request.form.get('password') or ''
    username = (request.form.get('username') or '').strip()
    if not email or not password or not username:
        return 'Email, password, and username are required.', 400

    try:
        if User.query.filter_by(email=email).first():
            current_app.logger.info('Signup for existing email %s, redirecting home', email)
            flash('An account with that email already exists. Please log in.', 'error')
            return redirect(url_for('index'))

        new_user = User(email=email, username=username)
        new_user.set_password(password)
        db.session.add(new_user)
        db.session.commit()
    except SQLAlchemyError:
        return _server_error('Signup failed')

    current_app.logger.info('Created local user %s', new_user.id)
    login_user(new_user)
    return redirect(url_for('profile'))


@auth_bp.route('/login', methods=['POST'])
def login():
    email = normalize_email(request.form.get('email'))
    password = request.form.get('password') or ''
    if not email or not password:
        return 'Email and password are required.', 400

    try:
        user = User.query.filter_by(email=email).first()
    except SQLAlchemyError:
        return _server_error('Login lookup failed')

    if user is None:
        current_app.logger.info('Login for unknown email %s', email)
        flash('No account found for that email. Sign up first.', 'error')
        return redirect(url_for('auth.signup_form'))

    if not user.check_password(password):
        current_app.logger.warning('Invalid password for user %s', user.id)
        flash('Invalid email or password.', 'error')
        return redirect(url_for('index'))

    login_user(user)
    return redirect(url_for('profile'))


@auth_bp.route('/logout')
def logout():
    logout_user()
    flash('Logged out.', 'info')
    return redirect(url_for('index'))


# ---------------- Google sign-in ----------------

def _oauth_client():
    return current_app.extensions['google_oauth']


def _requested_intent():
    intent = request.args.get('intent')
    if intent in INTENTS:
        return intent
    referrer = request.headers.get('Referer') or ''
    return 'signup' if '/signup' in referrer else 'login'


def _intent_from_state(state):
    intent = (state or '').partition('.')[0]
    return intent if intent in INTENTS else 'login'


@auth_bp.route('/auth/google')
def google_login():
    # state carries the signup/login intent and doubles as the CSRF token
    state = f'{_requested_intent()}.{secrets.token_urlsafe(16)}'
    session['oauth_state'] = state
    return redirect(_oauth_client().authorization_url(state))


@auth_bp.route('/auth/google/callback')
def google_callback():
    state = request.args.get('state')
    expected = session.pop('oauth_state', None)
    if not state or not expected or not secrets.compare_digest(state, expected):
        current_app.logger.warning('OAuth callback with missing or mismatched state')
        return redirect(url_for('index'))

    failure_target = url_for('auth.signup_form') if _intent_from_state(state) == 'signup' else url_for('index')

    code = request.args.get('code')
    if request.args.get('error') or not code:
        current_app.logger.info('Google sign-in was not completed: %s', request.args.get('error'))
        return redirect(failure_target)

    try:
        profile = _oauth_client().authenticate(code)
    except OAuthError:
        current_app.logger.exception('Google token exchange failed')
        flash('Google sign-in failed.', 'error')
        return redirect(failure_target)

    try:
        user = User.query.filter_by(google_id=profile.id).first()
        if user is None:
            user = User(
                google_id=profile.id,
                email=normalize_email(profile.email) or None,
                username=profile.display_name,
            )
            db.session.add(user)
            db.session.commit()
            current_app.logger.info('Created Google user %s', user.id)
    except SQLAlchemyError:
        return _server_error('Google user lookup failed')

    login_user(user)
    return redirect(url_for('profile'))
