# ridehail/services/location_service/__init__.py
"""
Driver Location Service: реестр водителей и поиск в радиусе.
"""
