# Celery instance is defined in erp_project/celery.py
# It builds the celery_app object and points it at Django settings
from .celery import celery_app

# 'from erp_project import *' only exports celery_app
__all__ = ("celery_app",)

""" Workers are started with "celery -A erp_project worker -l info"
    -A erp_project imports erp_project/__init__.py,
    which exposes celery_app. """
