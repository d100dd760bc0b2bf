# backend/wsgi.py
from dsdrecon import create_app

app = create_app()
