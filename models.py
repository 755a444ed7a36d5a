from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    telegram_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False, default='User')
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    transactions = db.relationship('Transaction', backref='user', lazy=True, cascade="all, delete-orphan")
    assets = db.relationship('Asset', backref='user', lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'telegramId': self.telegram_id,
            'name': self.name,
            'createdAt': _iso(self.created_at),
        }


class Transaction(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    date = db.Column(db.DateTime, nullable=False, index=True, default=utcnow)
    amount = db.Column(db.Float, nullable=False)  # signed
    ttype = db.Column(db.String(20), nullable=False)  # 'income' or 'expense'
    category = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_cash = db.Column(db.Boolean, nullable=False, default=False)
    receipt_url = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'amount': self.amount,
            'type': self.ttype,
            'category': self.category,
            'description': self.description,
            'date': _iso(self.date),
            'isCash': self.is_cash,
            'receiptUrl': self.receipt_url,
            'createdAt': _iso(self.created_at),
        }


class Asset(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(50), nullable=False, index=True)  # cash, crypto, product, bank...
    amount = db.Column(db.Float, nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'name': self.name,
            'type': self.type,
            'amount': self.amount,
            'description': self.description,
            'createdAt': _iso(self.created_at),
        }


class CryptoRate(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    symbol = db.Column(db.String(20), unique=True, nullable=False, index=True)
    rate = db.Column(db.Float, nullable=False)  # USD per unit
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'symbol': self.symbol,
            'rate': self.rate,
            'updatedAt': _iso(self.updated_at),
        }
