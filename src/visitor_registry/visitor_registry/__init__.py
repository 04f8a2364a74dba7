"""Visitor Registry package.

Front-desk visitor check-in/check-out with an approval workflow for edits and
deletions. Organized by feature modules (visitors, requests, audit, diagnostics)
with a thin Flask controller layer over service/repository layers.
"""
