# backend/wsgi.py
from consignment import create_app

app = create_app()
