# backend/wsgi.py
from ordertrack import create_app

app = create_app()
