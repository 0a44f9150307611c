"""
Gunicorn configuration for Mr Tagger
"""
import os

# Server socket
bind = f"{os.environ.get('HOST', '127.0.0.1')}:{os.environ.get('PORT', '8339')}"
backlog = 64

# Worker processes
# IMPORTANT: Using a single worker because open files live in an in-memory registry.
# Multiple workers would each hold different sessions, so handles would not resolve.
workers = 1
worker_class = 'gthread'
threads = 4
timeout = 120  # 2 minutes for saving very large files
keepalive = 5

# Logging
accesslog = '-'  # Log to stdout
errorlog = '-'   # Log to stderr
loglevel = os.environ.get('LOG_LEVEL', 'info').lower()

# Process naming
proc_name = 'mr-tagger'

# Server mechanics
daemon = False
pidfile = None
preload_app = False

# Server hooks for graceful shutdown
def when_ready(server):
    """Called just after the server is started."""
    server.log.info("Server is ready. Listening at: %s", server.address)

def on_exit(server):
    """Called just before exiting."""
    server.log.info("Server is shutting down")
