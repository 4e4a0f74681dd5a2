# backend/wsgi.py
from mostrador import create_app

app = create_app()
