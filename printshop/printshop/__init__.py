# Celery instance is defined in printshop/celery.py
# celery_app is the single task queue app for the whole project
from .celery import celery_app

__all__ = ("celery_app",)

""" Workers run with "celery -A printshop worker -l info",
    which imports this module and picks up celery_app. """
