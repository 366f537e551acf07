# ridehail/importer/__init__.py
"""
CSV импорт водителей.
"""
