# ridehail/shared/__init__.py
"""
Общие модели для обоих сервисов.
"""
