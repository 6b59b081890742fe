"""
Conference registration, paper submission and review service.
"""
