"""
widget-fuzz — reference domains

File: src/widget_fuzz/domains/__init__.py

Purpose
- Concrete widget domains (schemas, actions, rules, seeders). Import the domain
  module directly, e.g. ``widget_fuzz.domains.poll``.
"""

__all__: list[str] = []
