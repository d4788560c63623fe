# backend/wsgi.py
from blueledger import create_app

app = create_app()
