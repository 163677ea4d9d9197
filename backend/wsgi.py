# backend/wsgi.py
from fleur import create_app

app = create_app()
