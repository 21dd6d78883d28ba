"""Appointment reservation backend: database models, accounts, token authentication and a rate-limited WSGI API."""

__version__ = "0.1.0"