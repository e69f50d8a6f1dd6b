"""
Configuration for the structure pipeline.

Defaults live in ``defaults``, validation rules in ``validation`` and the
YAML overlay loader in ``loader``.
"""
