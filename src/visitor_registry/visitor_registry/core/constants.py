"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

# Fields a change request may modify. Anything else in a proposed payload is dropped.
EDITABLE_FIELDS = (
    "full_name",
    "phone_number",
    "email",
    "address",
    "institution",
    "purpose",
    "person_to_meet",
    "location",
    "id_number",
    "id_type",
    "document_type",
)

# Identity fields required on every check-in regardless of policy.
REQUIRED_IDENTITY_FIELDS = ("full_name",)

DEFAULT_LIST_LIMIT = 200
DEFAULT_PENDING_LIMIT = 500
DEFAULT_AUDIT_RECENT_LIMIT = 100
