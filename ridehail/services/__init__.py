# ridehail/services/__init__.py
"""
Сервисы: Location Service и Matching Service.
"""
