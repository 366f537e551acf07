# ridehail/services/matching_service/__init__.py
"""
Matching Service: подбор ближайшего водителя для пассажира.
"""
