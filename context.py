from flask import current_app

EXTENSION_KEY = 'finance_tracker'


class AppContext:
    """Everything a request handler needs besides the database session.

    Built once by the app factory from the final configuration and stored on
    ``app.extensions``; nothing here is read from module-level globals.
    """

    def __init__(self, config, tokens, rates, receipts):
        self.config = config
        self.tokens = tokens
        self.rates = rates
        self.receipts = receipts


def current_context():
    return current_app.extensions[EXTENSION_KEY]
