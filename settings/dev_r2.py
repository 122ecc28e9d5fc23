# freeimages-specific configuration options
import datetime

# where the site configuration (storage credentials, admin password, ...) is kept
CONFIG_FILE_PATH = 'freeimages.config.json'

# signs the admin session cookie
SECRET_KEY = 'dev-only-not-secret'

# how long an admin login lasts
PERMANENT_SESSION_LIFETIME = datetime.timedelta(hours=24)

# max size Flask will accept; the per-image limit lives in the site config
MAX_CONTENT_LENGTH = 20 * 1048576
