import io

import requests
from flask import Blueprint, current_app, flash, redirect, request, session, url_for

from .auth import login_required
from .drive import DriveError

upload_bp = Blueprint('upload', __name__)


@upload_bp.route('/upload', methods=['POST'])
@login_required
def upload():
    file = request.files.get('file')
    if file is None or not file.filename:
        return 'No file uploaded.', 400

    # Whole file is held in memory before forwarding
    stream = io.BytesIO(file.read())
    try:
        result = current_app.extensions['drive'].upload(stream, file.filename, file.mimetype)
    except (DriveError, requests.RequestException):
        current_app.logger.exception('Drive upload failed for %s', file.filename)
        return 'Internal Server Error', 500

    name = result.get('name') or file.filename
    current_app.logger.info('Uploaded %s to Drive as %s', name, result.get('id'))
    session['uploaded_file'] = name
    flash(f'File uploaded: {name}', 'success')
    return redirect(url_for('profile'))
