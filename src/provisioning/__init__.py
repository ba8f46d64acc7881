"""Service account provisioning.

Modules:
- validation: rule evaluation for actor drafts
- quota: per-tenant slot reservation and single-writer locks
- workflow: session state machine tying validation, quota and storage together
- errors: provisioning exceptions
"""
