"""
Services layer - Business logic goes here.
Keep services focused on specific domains (SOS, geofencing, anomalies, etc.)

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Services raise ValueError / LookupError / PermissionError; routes map them to HTTP codes
- Notification and AI failures are logged and never fail the triggering write
"""
