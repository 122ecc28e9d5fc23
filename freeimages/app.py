import datetime
import logging
import sys

from flask import Flask


app = Flask(__name__)
app.config['CONFIG_FILE_PATH'] = 'freeimages.config.json'
app.config['PERMANENT_SESSION_LIFETIME'] = datetime.timedelta(hours=24)
app.config.from_envvar('FREEIMAGES_SETTINGS')
app.logger.addHandler(logging.StreamHandler(sys.stderr))
app.logger.setLevel(logging.DEBUG)
