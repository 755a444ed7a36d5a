from sqlalchemy import func

from models import Asset
from repositories import AssetRepository, TransactionRepository

RECENT_TRANSACTIONS = 5


def total_net_worth(session, user_id):
    total = session.query(func.sum(Asset.amount)).filter(Asset.user_id == user_id).scalar()
    return float(total or 0)


def net_worth_by_type(session, user_id):
    rows = session.query(
        Asset.type,
        func.sum(Asset.amount).label('amount')
    ).filter(Asset.user_id == user_id).group_by(Asset.type).all()
    return {r[0]: float(r[1] or 0) for r in rows}


def build_dashboard(session, user_id):
    """Aggregate a user's net worth and recent activity.

    Recomputed on every call. Amounts are summed as stored, without any
    currency conversion.
    """
    assets = AssetRepository(session).list_for(user_id)
    recent = TransactionRepository(session).recent(user_id, limit=RECENT_TRANSACTIONS)
    return {
        'totalNetWorth': total_net_worth(session, user_id),
        'netWorthByType': net_worth_by_type(session, user_id),
        'recentTransactions': [t.to_dict() for t in recent],
        'assets': [a.to_dict() for a in assets],
    }
