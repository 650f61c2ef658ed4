# backend/wsgi.py
from serialdesk import create_app

app = create_app()
