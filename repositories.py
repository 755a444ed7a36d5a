import logging
from datetime import datetime, timezone

from errors import InvalidInput, NotFound
from models import Asset, CryptoRate, Transaction, User, utcnow

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ('income', 'expense')


# ---------------------- Input Helpers ----------------------
def parse_amount(value, field='amount'):
    if value is None or isinstance(value, bool):
        raise InvalidInput(f'{field} must be a number')
    try:
        amount = float(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidInput(f'{field} must be a number') from None
    if amount != amount or amount in (float('inf'), float('-inf')):
        raise InvalidInput(f'{field} must be a finite number')
    return amount


def parse_date(value):
    """ISO-8601 date or datetime; aware values are stored as naive UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidInput('date must be an ISO-8601 date') from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def _given(data, key):
    """True when the caller supplied a usable value for key."""
    value = data.get(key)
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _required_text(data, key):
    if not _given(data, key):
        raise InvalidInput(f'{key} is required')
    return str(data[key]).strip()


def _transaction_type(value):
    ttype = str(value).strip().lower()
    if ttype not in TRANSACTION_TYPES:
        raise InvalidInput('type must be income or expense')
    return ttype


# ---------------------- Identity Store ----------------------
class UserRepository:
    def __init__(self, session):
        self.session = session

    def get(self, user_id):
        return self.session.get(User, user_id)

    def get_by_telegram_id(self, telegram_id):
        return self.session.query(User).filter_by(telegram_id=str(telegram_id)).first()

    def sign_in(self, telegram_id, name=None):
        """Find the user for a platform identity, creating it on first sight."""
        if telegram_id is None or not str(telegram_id).strip():
            raise InvalidInput('Telegram ID is required')
        telegram_id = str(telegram_id).strip()
        name = name.strip() if isinstance(name, str) else None

        user = self.get_by_telegram_id(telegram_id)
        if user is None:
            user = User(telegram_id=telegram_id, name=name or 'User')
            self.session.add(user)
            self.session.commit()
            logger.info('Created user %s for telegram id %s', user.id, telegram_id)
        elif name and name != user.name:
            user.name = name
            self.session.commit()
        return user

    def rename(self, user, name):
        if isinstance(name, str) and name.strip():
            user.name = name.strip()
            self.session.commit()
        return user


# ---------------------- Owned Records ----------------------
class OwnedRepository:
    """CRUD over records that belong to exactly one user.

    Lookups always filter on the owner as well as the id, so a record owned by
    someone else is indistinguishable from one that does not exist.
    """
    model = None
    not_found_message = 'Not found'

    def __init__(self, session):
        self.session = session

    def _query(self, owner_id):
        return self.session.query(self.model).filter_by(user_id=owner_id)

    def list_for(self, owner_id):
        return self._query(owner_id).all()

    def get(self, owner_id, record_id):
        try:
            record_id = int(str(record_id))
        except ValueError:
            raise NotFound(self.not_found_message) from None
        record = self._query(owner_id).filter_by(id=record_id).first()
        if record is None:
            raise NotFound(self.not_found_message)
        return record

    def create(self, owner_id, data, **extra):
        fields = self._fields_for_create(data)
        fields.update(extra)
        record = self.model(user_id=owner_id, **fields)
        self.session.add(record)
        self.session.commit()
        return record

    def update(self, owner_id, record_id, data, **extra):
        """Merge the supplied fields into the record; absent fields keep their values."""
        record = self.get(owner_id, record_id)
        fields = self._fields_for_update(data)
        fields.update({k: v for k, v in extra.items() if v is not None})
        for key, value in fields.items():
            setattr(record, key, value)
        self.session.commit()
        return record

    def delete(self, owner_id, record_id):
        record = self.get(owner_id, record_id)
        self.session.delete(record)
        self.session.commit()
        return record

    def _fields_for_create(self, data):
        raise NotImplementedError

    def _fields_for_update(self, data):
        raise NotImplementedError


class TransactionRepository(OwnedRepository):
    model = Transaction
    not_found_message = 'Transaction not found'

    def list_for(self, owner_id):
        return self._query(owner_id).order_by(Transaction.date.desc(), Transaction.id.desc()).all()

    def recent(self, owner_id, limit=5):
        return self._query(owner_id).order_by(Transaction.date.desc(), Transaction.id.desc()).limit(limit).all()

    def _fields_for_create(self, data):
        if not _given(data, 'amount'):
            raise InvalidInput('amount is required')
        if not _given(data, 'type'):
            raise InvalidInput('type is required')
        return {
            'amount': parse_amount(data['amount']),
            'ttype': _transaction_type(data['type']),
            'category': _required_text(data, 'category'),
            'description': data.get('description') or None,
            'date': parse_date(data['date']) if _given(data, 'date') else utcnow(),
            'is_cash': parse_bool(data['isCash']) if data.get('isCash') is not None else False,
        }

    def _fields_for_update(self, data):
        fields = {}
        if _given(data, 'amount'):
            fields['amount'] = parse_amount(data['amount'])
        if _given(data, 'type'):
            fields['ttype'] = _transaction_type(data['type'])
        if _given(data, 'category'):
            fields['category'] = str(data['category']).strip()
        if data.get('description') is not None:
            fields['description'] = data['description'] or None
        if _given(data, 'date'):
            fields['date'] = parse_date(data['date'])
        if data.get('isCash') is not None:
            fields['is_cash'] = parse_bool(data['isCash'])
        return fields


class AssetRepository(OwnedRepository):
    model = Asset
    not_found_message = 'Asset not found'

    def _fields_for_create(self, data):
        if not _given(data, 'amount'):
            raise InvalidInput('amount is required')
        return {
            'name': _required_text(data, 'name'),
            'type': _required_text(data, 'type'),
            'amount': parse_amount(data['amount']),
            'description': data.get('description') or None,
        }

    def _fields_for_update(self, data):
        fields = {}
        if _given(data, 'name'):
            fields['name'] = str(data['name']).strip()
        if _given(data, 'type'):
            fields['type'] = str(data['type']).strip()
        if _given(data, 'amount'):
            fields['amount'] = parse_amount(data['amount'])
        if data.get('description') is not None:
            fields['description'] = data['description'] or None
        return fields


# ---------------------- Crypto Rates ----------------------
def normalize_symbol(symbol):
    if symbol is None or not str(symbol).strip():
        raise InvalidInput('symbol is required')
    return str(symbol).strip().upper()


class CryptoRateRepository:
    """Globally shared rates keyed by symbol; last write wins."""

    def __init__(self, session):
        self.session = session

    def list_all(self):
        return self.session.query(CryptoRate).order_by(CryptoRate.symbol).all()

    def get(self, symbol):
        rate = self.session.query(CryptoRate).filter_by(symbol=normalize_symbol(symbol)).first()
        if rate is None:
            raise NotFound('Crypto rate not found')
        return rate

    def upsert(self, symbol, rate):
        symbol = normalize_symbol(symbol)
        value = parse_amount(rate, 'rate')
        record = self.session.query(CryptoRate).filter_by(symbol=symbol).first()
        if record is None:
            record = CryptoRate(symbol=symbol, rate=value)
            self.session.add(record)
        else:
            record.rate = value
        self.session.commit()
        return record

    def set_manual(self, symbol, rate):
        if rate is None or (isinstance(rate, str) and not rate.strip()):
            raise InvalidInput('Valid rate is required')
        value = parse_amount(rate, 'rate')
        if value <= 0:
            raise InvalidInput('Valid rate is required')
        return self.upsert(symbol, value)
