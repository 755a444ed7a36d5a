import logging
import os
import time

from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

URL_PREFIX = '/uploads/'


class ReceiptStore:
    """Receipt attachments kept on local disk and served under /uploads/."""

    def __init__(self, upload_dir):
        self.upload_dir = os.path.abspath(upload_dir)

    def save(self, file):
        if file is None or not file.filename:
            return None
        os.makedirs(self.upload_dir, exist_ok=True)
        name = f'{int(time.time() * 1000)}-{secure_filename(file.filename) or "receipt"}'
        file.save(os.path.join(self.upload_dir, name))
        return URL_PREFIX + name

    def path_for(self, url):
        # Only the basename is honoured so a stored URL can never point outside upload_dir.
        name = os.path.basename(url or '')
        if not name:
            return None
        return os.path.join(self.upload_dir, name)

    def remove(self, url):
        """Best-effort delete; a file that is already gone is not an error."""
        path = self.path_for(url)
        if not path:
            return False
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError:
            logger.exception('Could not remove receipt %s', path)
            return False
        return True
