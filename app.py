import logging
import os
from datetime import timedelta

from flask import Blueprint, Flask, jsonify, request, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from auth import TokenService, auth_required
from config import DEFAULT_JWT_SECRET, Config, configure_logging, cors_origins
from context import EXTENSION_KEY, AppContext, current_context
from errors import FinanceError, error_response
from models import db
from receipts import ReceiptStore
from repositories import AssetRepository, CryptoRateRepository, TransactionRepository, UserRepository
from services.dashboard import build_dashboard
from services.rates import RateFetcher, refresh_rates

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    configure_logging(app.config['LOG_LEVEL'])

    secret = app.config.get('JWT_SECRET')
    if not secret:
        logger.warning('JWT_SECRET is not set; signing tokens with the built-in fallback secret')
        secret = DEFAULT_JWT_SECRET

    app.extensions[EXTENSION_KEY] = AppContext(
        config=app.config,
        tokens=TokenService(secret, lifetime=timedelta(days=app.config['TOKEN_LIFETIME_DAYS'])),
        rates=RateFetcher(app.config.get('COIN_API_KEY'), base_url=app.config['COIN_API_URL']),
        receipts=ReceiptStore(app.config['UPLOAD_PATH']),
    )

    CORS(app, resources={r"/*": {"origins": cors_origins(app.config['CORS_ORIGINS'])}})
    db.init_app(app)
    with app.app_context():
        db.create_all()

    app.register_blueprint(api, url_prefix='/api')
    app.add_url_rule('/uploads/<path:filename>', 'uploads', serve_upload)
    register_error_handlers(app)
    return app


# ---------------------- Helpers ----------------------
def _payload():
    """JSON body, or the form fields of a multipart/urlencoded request."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def serve_upload(filename):
    return send_from_directory(current_context().receipts.upload_dir, filename)


def register_error_handlers(app):
    @app.errorhandler(FinanceError)
    def handle_finance_error(exc):
        db.session.rollback()
        return error_response(exc)

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        if isinstance(exc, HTTPException):
            return jsonify({'error': exc.description}), exc.code
        db.session.rollback()
        logger.exception('Unhandled error on %s %s', request.method, request.path)
        return error_response(exc)


# ---------------------- Routes: Health ----------------------
@api.route('/health')
def health():
    return jsonify({'status': 'healthy'})


# ---------------------- Routes: Users ----------------------
@api.route('/users/auth', methods=['POST'])
def users_auth():
    data = _payload()
    user = UserRepository(db.session).sign_in(data.get('telegramId'), data.get('name'))
    token = current_context().tokens.issue(user.id)
    return jsonify({'token': token, 'user': user.to_dict()})


@api.route('/users/me')
@auth_required
def users_me(user):
    return jsonify(user.to_dict())


@api.route('/users/me', methods=['PUT'])
@auth_required
def users_update_me(user):
    user = UserRepository(db.session).rename(user, _payload().get('name'))
    return jsonify(user.to_dict())


@api.route('/users/dashboard')
@auth_required
def users_dashboard(user):
    return jsonify(build_dashboard(db.session, user.id))


# ---------------------- Routes: Assets ----------------------
@api.route('/assets')
@auth_required
def list_assets(user):
    return jsonify([a.to_dict() for a in AssetRepository(db.session).list_for(user.id)])


@api.route('/assets/<asset_id>')
@auth_required
def get_asset(user, asset_id):
    return jsonify(AssetRepository(db.session).get(user.id, asset_id).to_dict())


@api.route('/assets', methods=['POST'])
@auth_required
def create_asset(user):
    asset = AssetRepository(db.session).create(user.id, _payload())
    return jsonify(asset.to_dict()), 201


@api.route('/assets/<asset_id>', methods=['PUT'])
@auth_required
def update_asset(user, asset_id):
    asset = AssetRepository(db.session).update(user.id, asset_id, _payload())
    return jsonify(asset.to_dict())


@api.route('/assets/<asset_id>', methods=['DELETE'])
@auth_required
def delete_asset(user, asset_id):
    AssetRepository(db.session).delete(user.id, asset_id)
    return jsonify({'message': 'Asset deleted successfully'})


# ---------------------- Routes: Transactions ----------------------
@api.route('/transactions')
@auth_required
def list_transactions(user):
    return jsonify([t.to_dict() for t in TransactionRepository(db.session).list_for(user.id)])


@api.route('/transactions/<txn_id>')
@auth_required
def get_transaction(user, txn_id):
    return jsonify(TransactionRepository(db.session).get(user.id, txn_id).to_dict())


@api.route('/transactions', methods=['POST'])
@auth_required
def create_transaction(user):
    receipts = current_context().receipts
    data = _payload()
    receipt_url = receipts.save(request.files.get('receipt'))
    try:
        txn = TransactionRepository(db.session).create(user.id, data, receipt_url=receipt_url)
    except Exception:
        receipts.remove(receipt_url)
        raise
    return jsonify(txn.to_dict()), 201


@api.route('/transactions/<txn_id>', methods=['PUT'])
@auth_required
def update_transaction(user, txn_id):
    receipts = current_context().receipts
    repo = TransactionRepository(db.session)
    previous_receipt = repo.get(user.id, txn_id).receipt_url
    receipt_url = receipts.save(request.files.get('receipt'))
    try:
        txn = repo.update(user.id, txn_id, _payload(), receipt_url=receipt_url)
    except Exception:
        receipts.remove(receipt_url)
        raise
    if receipt_url and previous_receipt:
        receipts.remove(previous_receipt)
    return jsonify(txn.to_dict())


@api.route('/transactions/<txn_id>', methods=['DELETE'])
@auth_required
def delete_transaction(user, txn_id):
    repo = TransactionRepository(db.session)
    receipt_url = repo.get(user.id, txn_id).receipt_url
    repo.delete(user.id, txn_id)
    if receipt_url:
        current_context().receipts.remove(receipt_url)
    return jsonify({'message': 'Transaction deleted successfully'})


# ---------------------- Routes: Crypto Rates ----------------------
@api.route('/crypto/rates')
@auth_required
def list_rates(user):
    return jsonify([r.to_dict() for r in CryptoRateRepository(db.session).list_all()])


@api.route('/crypto/rates/<symbol>')
@auth_required
def get_rate(user, symbol):
    return jsonify(CryptoRateRepository(db.session).get(symbol).to_dict())


@api.route('/crypto/update-rates', methods=['POST'])
@auth_required
def update_rates(user):
    updated = refresh_rates(_payload().get('symbols'), current_context().rates, CryptoRateRepository(db.session))
    return jsonify([r.to_dict() for r in updated])


@api.route('/crypto/rates/<symbol>', methods=['PUT'])
@auth_required
def set_rate(user, symbol):
    rate = CryptoRateRepository(db.session).set_manual(symbol, _payload().get('rate'))
    return jsonify(rate.to_dict())


# ---------------------- Run App ----------------------
if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', app.config['PORT'])), debug=False)
