# freeimages-specific configuration options
import datetime
import os

# where the site configuration (storage credentials, admin password, ...) is kept
CONFIG_FILE_PATH = '/srv/freeimages/freeimages.config.json'

# signs the admin session cookie
SECRET_KEY = os.environ['FREEIMAGES_SECRET_KEY']
SESSION_COOKIE_SECURE = True

# how long an admin login lasts
PERMANENT_SESSION_LIFETIME = datetime.timedelta(hours=24)

# max size Flask will accept; the per-image limit lives in the site config
MAX_CONTENT_LENGTH = 50 * 1048576
