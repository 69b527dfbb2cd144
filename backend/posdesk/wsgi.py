# backend/posdesk/wsgi.py
from posdesk import create_app

app = create_app()
