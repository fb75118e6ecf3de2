"""
Clinic app: doctors, appointments with slot availability, billing and
financial analytics for the hospital operations dashboards.
"""
