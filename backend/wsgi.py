# backend/wsgi.py
from jewelshop import create_app

app = create_app()
