#!/usr/bin/env python3
"""
toolchat server launcher
Runs the HTTP/SSE front end (FastAPI on uvicorn)
"""
import os

# Fix encoding issues on servers with ASCII locale
os.environ.setdefault('PYTHONIOENCODING', 'utf-8')
os.environ.setdefault('LANG', 'en_US.UTF-8')
os.environ.setdefault('LC_ALL', 'en_US.UTF-8')

from toolchat.server import serve

if __name__ == "__main__":
    serve()
