"""
Authentication routes and utilities

Registration and password checks are delegated to the identity provider;
the session only keeps the authenticated email as the Flask-Login user id.
"""
from flask import Blueprint, current_app, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required, login_user, logout_user

from docqa import login_manager
from docqa.errors import IdentityError
from docqa.models import User

auth_bp = Blueprint('auth', __name__)


@login_manager.user_loader
def load_user(user_id):
    """Load user by ID"""
    return User(user_id) if user_id else None


def identity_provider():
    return current_app.extensions['docqa'].identity


@auth_bp.route('/register', methods=['GET', 'POST'])
def register():
    """User registration"""
    if request.method == 'POST':
        email = request.form.get('email', '').strip().lower()
        password = request.form.get('password', '')

        if not email or not password:
            return render_template('register.html', error='Email and password are required.'), 400

        try:
            identity_provider().register(email, password)
        except IdentityError as e:
            current_app.logger.warning('Registration failed: %s', e)
            return render_template('register.html', error=e.user_message)

        current_app.logger.info('User %s registered', email)
        return redirect(url_for('auth.login'))

    return render_template('register.html', error=None)


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    """User login"""
    if current_user.is_authenticated:
        return redirect(url_for('api.upload'))

    if request.method == 'POST':
        email = request.form.get('email', '').strip().lower()
        password = request.form.get('password', '')

        if not email or not password:
            return render_template('login.html', error='Email and password are required.'), 400

        try:
            identity_provider().authenticate(email, password)
        except IdentityError as e:
            current_app.logger.warning('Login failed: %s', e)
            return render_template('login.html', error=e.user_message)

        login_user(User(email))
        current_app.logger.info('User %s logged in', email)
        return redirect(url_for('api.upload'))

    return render_template('login.html', error=None)


@auth_bp.route('/logout')
@login_required
def logout():
    """User logout"""
    current_app.logger.info('User %s logged out', current_user.email)
    logout_user()
    session.clear()
    return redirect(url_for('auth.login'))
