# Celery instance is defined in bk_project/celery.py
# It points the worker at Django settings and discovers ledger_core.tasks
from .celery import celery_app

# 'from bk_project import *' only exports celery_app
__all__ = ("celery_app",)
