import click
from flask import Flask, render_template, session

from .auth import auth_bp
from .config import Config
from .drive import DriveClient, DriveError, DriveToken
from .models import db, User
from .oauth import DRIVE_SCOPES, GoogleOAuthClient, OAuthError
from .upload import upload_bp


def create_app(config=None, oauth_client=None, drive_client=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    app.logger.setLevel(app.config['LOG_LEVEL'])

    db.init_app(app)

    # External clients are built once here and handed to the views via extensions
    app.extensions['google_oauth'] = oauth_client or GoogleOAuthClient(
        app.config['GOOGLE_CLIENT_ID'],
        app.config['GOOGLE_CLIENT_SECRET'],
        app.config['GOOGLE_CALLBACK_URL'],
    )
    app.extensions['drive'] = drive_client or DriveClient(
        app.config['GOOGLE_CLIENT_ID'],
        app.config['GOOGLE_CLIENT_SECRET'],
        app.config['DRIVE_TOKEN_FILE'],
        folder_id=app.config['DRIVE_FOLDER_ID'],
    )
    drive = app.extensions['drive']
    if not drive.authorized:
        app.logger.warning(
            'No Drive token loaded (%s); uploads will fail until `flask drive-authorize` is run',
            getattr(drive, 'load_error', None) or 'no token file',
        )

    with app.app_context():
        db.create_all()

    # ---------------- Routes ----------------
    @app.route('/')
    def index():
        return render_template('home.html')

    @app.route('/profile')
    def profile():
        uploaded_file = session.get('uploaded_file')
        return render_template('profile.html', file_uploaded=bool(uploaded_file), uploaded_file=uploaded_file)

    # ---------------- Blueprints ----------------
    app.register_blueprint(auth_bp)
    app.register_blueprint(upload_bp)

    register_commands(app)
    return app


def register_commands(app):
    @app.cli.command('init-db')
    def init_db_command():
        """Create the users table."""
        db.create_all()
        click.echo('Initialized the database.')

    @app.cli.command('list-users')
    def list_users_command():
        """Print stored accounts (never the password hash)."""
        users = User.query.order_by(User.id).all()
        if not users:
            click.echo('(no users)')
            return
        for u in users:
            click.echo(f'{u.id}\t{u.email or "-"}\t{u.username or "-"}\t{u.provider}')

    @app.cli.command('drive-authorize')
    @click.option('--redirect-uri', default=None, help='Redirect URI registered for this client.')
    def drive_authorize_command(redirect_uri):
        """Obtain an offline Drive token and write it to DRIVE_TOKEN_FILE."""
        client = GoogleOAuthClient(
            app.config['GOOGLE_CLIENT_ID'],
            app.config['GOOGLE_CLIENT_SECRET'],
            redirect_uri or app.config['DRIVE_REDIRECT_URI'],
            scopes=DRIVE_SCOPES,
            http=app.extensions['google_oauth'].http,
        )
        click.echo('Open this URL and approve access. The browser then lands on the redirect URI;')
        click.echo('copy the `code` parameter from its address bar:')
        click.echo(client.authorization_url('drive', offline=True))
        code = click.prompt('Code').strip()
        try:
            token = DriveToken.from_response(client.exchange_code(code))
            token.save(app.config['DRIVE_TOKEN_FILE'])
        except (OAuthError, DriveError, OSError) as e:
            raise click.ClickException(str(e))
        click.echo(f'Saved Drive token to {app.config["DRIVE_TOKEN_FILE"]}')
