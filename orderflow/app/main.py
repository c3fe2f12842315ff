"""ASGI entry point: ``orderflow.app.main:app``.

Importing this module builds the application from the environment
(logging, database engine, external clients). Tests and tooling import
``create_app`` from ``orderflow.app.factory`` instead.
"""

from orderflow.app.factory import create_app

app = create_app()
