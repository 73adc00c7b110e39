from urllib.parse import urlparse

from flask import Blueprint, Response, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user

from app.services.auth import authenticate
from app.services.errors import AuthenticationFailed, FetchFailed
from app.services.export import build_csv, build_pdf, export_filename
from app.services.listing import fetch_reports
from app.utils.session_helpers import end_page_session

bp = Blueprint('admin', __name__, url_prefix='/admin')


def _is_safe_next(target):
    """Solo rutas relativas del mismo sitio"""
    if not target:
        return False
    parsed = urlparse(target)
    return not parsed.scheme and not parsed.netloc and target.startswith('/')


@bp.route('/login', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated:
        return redirect(url_for('admin.index'))

    if request.method == 'POST':
        try:
            user = authenticate(request.form.get('email'), request.form.get('password'))
        except AuthenticationFailed as e:
            flash(e.message, 'error')
        else:
            login_user(user)
            next_page = request.args.get('next')
            return redirect(next_page) if _is_safe_next(next_page) else redirect(url_for('admin.index'))

    return render_template('admin/login.html')


@bp.route('/logout')
@login_required
def logout():
    logout_user()
    end_page_session()
    flash('Sesión cerrada.', 'info')
    return redirect(url_for('admin.login'))


@bp.route('/')
@login_required
def index():
    """Panel con todos los reportes, del más reciente al más antiguo"""
    try:
        reports = fetch_reports()
    except FetchFailed as e:
        flash(e.message, 'error')
        reports = []

    return render_template('admin/index.html', reports=reports)


@bp.route('/exportar/csv')
@login_required
def export_csv():
    """Exportar reportes en CSV"""
    try:
        reports = fetch_reports()
    except FetchFailed as e:
        flash(e.message, 'error')
        return redirect(url_for('admin.index'))

    return Response(
        build_csv(reports),
        mimetype='text/csv',
        headers={
            'Content-Type': 'text/csv; charset=utf-8',
            'Content-Disposition': f'attachment; filename={export_filename("csv")}'
        }
    )


@bp.route('/exportar/pdf')
@login_required
def export_pdf():
    """Exportar reportes en PDF"""
    try:
        reports = fetch_reports()
    except FetchFailed as e:
        flash(e.message, 'error')
        return redirect(url_for('admin.index'))

    return Response(
        build_pdf(reports),
        mimetype='application/pdf',
        headers={
            'Content-Disposition': f'attachment; filename={export_filename("pdf")}'
        }
    )
