from datetime import date

from flask import request, jsonify, Blueprint, g, current_app
from sqlalchemy import text

import reports
import workflow
from errors import ValidationError
from forms import (BookForm, IssueForm, ReturnForm, FineForm, MembershipForm, MembershipUpdateForm,
                   UserForm)
from helpers import to_date, generate_membership_number, get_user_unpaid_fines

routes_blueprint = Blueprint('routes', __name__)


def _payload():
    data = request.get_json(silent=True)
    if data is None:
        if request.form:
            return request.form.to_dict()
        raise ValidationError('No data provided')
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object')
    return data


def _settings():
    return current_app.config['SETTINGS']


def _today():
    return date.today()


@routes_blueprint.route('/')
def hello_world():
    return jsonify({'service': 'library circulation', 'status': 'ok'})


@routes_blueprint.get('/health')
def health():
    g.db.execute(text('SELECT 1'))
    return jsonify({'status': 'healthy', 'db': True}), 200


@routes_blueprint.get('/me')
def me():
    user = workflow.current_user(g.db, g.identity)
    user['unpaid_fines'] = get_user_unpaid_fines(g.db, g.identity.id)
    return jsonify(user), 200


@routes_blueprint.get('/dashboard')
def dashboard():
    workflow.require_identity(g.identity)
    return jsonify(reports.dashboard_stats(g.db)), 200


# ---------- books ----------

@routes_blueprint.get('/books')
def get_books():
    workflow.require_identity(g.identity)
    search = request.args.get('search')
    field = request.args.get('field', 'title')
    return jsonify({'books': workflow.list_books(g.db, search, field)}), 200


@routes_blueprint.get('/books/available')
def get_available_books():
    workflow.require_identity(g.identity)
    return jsonify({'books': workflow.list_available_items(g.db, request.args.get('search'))}), 200


@routes_blueprint.get('/books/<int:book_id>')
def get_book(book_id):
    workflow.require_identity(g.identity)
    return jsonify(workflow.get_book(g.db, book_id).to_dict()), 200


@routes_blueprint.post('/books')
def add_book():
    form = BookForm.from_payload(_payload())
    return jsonify(workflow.create_book(g.db, g.identity, form)), 201


@routes_blueprint.put('/books/<int:book_id>')
def edit_book(book_id):
    form = BookForm.from_payload(_payload())
    return jsonify(workflow.update_book(g.db, g.identity, book_id, form)), 200


# ---------- memberships ----------

@routes_blueprint.get('/memberships')
def get_memberships():
    return jsonify({'memberships': workflow.list_memberships(g.db, g.identity)}), 200


@routes_blueprint.post('/memberships')
def add_membership():
    today = _today()
    form = MembershipForm.from_payload(_payload(), today, generate_membership_number)
    return jsonify(workflow.add_membership(g.db, g.identity, form, today)), 201


@routes_blueprint.get('/memberships/<membership_number>')
def get_membership(membership_number):
    return jsonify(workflow.find_membership(g.db, g.identity, membership_number)), 200


@routes_blueprint.put('/memberships/<membership_number>')
def update_membership(membership_number):
    form = MembershipUpdateForm.from_payload(_payload())
    return jsonify(workflow.update_membership(g.db, g.identity, membership_number, form, _today())), 200


# ---------- transactions ----------

@routes_blueprint.post('/transactions/issue')
def issue_book():
    form = IssueForm.from_payload(_payload())
    transaction = workflow.issue_item(g.db, g.identity, form, _today(), _settings().loan_period_days)
    return jsonify(transaction), 201


@routes_blueprint.get('/transactions/borrowed')
def borrowed_books():
    return jsonify({'transactions': workflow.list_borrowed(g.db, g.identity)}), 200


@routes_blueprint.post('/transactions/return')
def return_book():
    form = ReturnForm.from_payload(_payload(), _today())
    transaction = workflow.return_item(g.db, g.identity, form, _settings().fine_per_day)
    return jsonify(transaction), 200


@routes_blueprint.get('/transactions/<int:transaction_id>')
def get_transaction(transaction_id):
    return jsonify(workflow.get_transaction(g.db, g.identity, transaction_id)), 200


@routes_blueprint.post('/transactions/<int:transaction_id>/pay-fine')
def pay_fine(transaction_id):
    form = FineForm.from_payload(_payload())
    return jsonify(workflow.settle_fine(g.db, g.identity, transaction_id, form)), 200


# ---------- reports ----------

@routes_blueprint.get('/reports/transactions')
def transaction_report():
    workflow.require_identity(g.identity)
    report = reports.transaction_report(
        g.db,
        start_date=to_date(request.args.get('start_date'), 'start_date'),
        end_date=to_date(request.args.get('end_date'), 'end_date'),
        status=request.args.get('status') or None,
        item_type=request.args.get('type') or None,
    )
    return jsonify(report), 200


# ---------- maintenance (admin) ----------

@routes_blueprint.get('/maintenance/users')
def get_users():
    return jsonify({'users': workflow.list_users(g.db, g.identity)}), 200


@routes_blueprint.post('/maintenance/users')
def add_user():
    form = UserForm.from_payload(_payload())
    return jsonify(workflow.create_user(g.db, g.identity, form)), 201


@routes_blueprint.put('/maintenance/users/<user_id>')
def edit_user(user_id):
    form = UserForm.from_payload(_payload())
    return jsonify(workflow.update_user(g.db, g.identity, user_id, form)), 200
