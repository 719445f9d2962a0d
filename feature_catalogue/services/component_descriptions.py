"""
Component descriptions shown on the assessment intro step.

Keyed by component code.  Components without an entry get an empty
description; the intro still renders with the catalogue name and counts.
"""


# ═════════════════════════════════════════════════════════════════════════════
# DESCRIPTION CATALOG
# ═════════════════════════════════════════════════════════════════════════════

COMPONENT_DESCRIPTIONS: dict[str, dict] = {
    "ACM": {
        "summary": (
            "Access Management (ACM) provides role-based access control and authorisation across "
            "HMCTS applications. It manages user permissions, roles and organisational hierarchies "
            "so users only reach the data and functions appropriate to their role."
        ),
        "capabilities": [
            "Role-based access control (RBAC)",
            "Organisational hierarchies and case assignments",
            "Dynamic permission management",
            "User role mapping and inheritance",
            "Access control integration with CCD",
        ],
        "users": (
            "System administrators configure roles and permissions; every user whose access to "
            "case data depends on an assigned role relies on it indirectly."
        ),
    },
    "BKP": {
        "summary": (
            "Bulk Print automates printing and dispatch of large volumes of court documents and "
            "correspondence, centralising the physical documents sent to parties in proceedings."
        ),
        "capabilities": [
            "Bulk document printing",
            "Print job scheduling and management",
            "Integration with document generation services",
            "Print tracking and status monitoring",
        ],
        "users": (
            "Administrative staff and automated systems sending physical correspondence to "
            "citizens, legal representatives and other parties."
        ),
    },
    "BKS": {
        "summary": (
            "Bulk Scan digitises paper submissions: it processes incoming forms and documents, "
            "extracts data and attaches scanned images to digital cases."
        ),
        "capabilities": [
            "Automated document scanning and OCR",
            "Form recognition and data extraction",
            "Exception handling for unclear submissions",
            "Integration with case management systems",
            "Document classification and routing",
        ],
        "users": (
            "Scanning teams, caseworkers processing paper submissions, and workflows that ingest "
            "scanned documents into digital cases."
        ),
    },
    "CCD": {
        "summary": (
            "Core Case Data (CCD) is the central platform for case data across all jurisdictions, "
            "a configurable framework for storing, accessing and processing case information "
            "through the case lifecycle."
        ),
        "capabilities": [
            "Case data storage and management",
            "Configurable case types and workflows",
            "Role-based access control",
            "Event-driven case progression",
            "Document management integration",
            "Search and filtering",
            "Case history and audit trail",
        ],
        "users": (
            "Caseworkers, judicial office holders, legal professionals and citizens creating, "
            "viewing and updating cases across HMCTS services."
        ),
    },
    "DOC": {
        "summary": (
            "Document Generation merges case data with predefined templates to produce court "
            "orders, letters, forms and other legal documents in consistent formats."
        ),
        "capabilities": [
            "Template-based document generation",
            "Data merging from case management systems",
            "Multiple output formats (PDF, DOCX)",
            "Template version control",
        ],
        "users": (
            "Caseworkers and judicial office holders generating official documents, orders and "
            "correspondence from case data."
        ),
    },
    "FEE": {
        "summary": (
            "Fees and Payments calculates, collects and reconciles court fees: fee assessment, "
            "payment processing, refunds, remissions and financial reporting."
        ),
        "capabilities": [
            "Fee calculation based on case type and value",
            "Payment processing (online and offline)",
            "Payment reconciliation and reporting",
            "Fee remissions and help with fees",
            "Refund processing",
            "Integration with GOV.UK Pay",
            "Financial audit trails",
        ],
        "users": (
            "Citizens making payments, caseworkers processing applications, finance administrators "
            "reconciling payments and staff reviewing remission applications."
        ),
    },
    "HMC": {
        "summary": (
            "Hearings Management (HMC) schedules and manages hearings end to end, booking "
            "courtrooms, judges and participants across jurisdictions."
        ),
        "capabilities": [
            "Hearing scheduling and booking",
            "Room and resource allocation",
            "Judge and participant availability management",
            "Hearing notifications and updates",
            "Integration with listing systems",
            "Hearing history and audit trail",
        ],
        "users": (
            "Listing officers scheduling hearings, judges managing calendars, caseworkers "
            "requesting hearings and participants receiving notifications."
        ),
    },
    "IDM": {
        "summary": (
            "Identity Management (IDM) provides authentication, registration and profile "
            "management, acting as the single sign-on service for HMCTS."
        ),
        "capabilities": [
            "User authentication and single sign-on (SSO)",
            "User registration and profile management",
            "Multi-factor authentication (MFA)",
            "Integration with government identity systems",
            "Password management and security policies",
        ],
        "users": "Every user signing in to an HMCTS digital service.",
    },
    "LST": {
        "summary": (
            "List Assist manages daily court lists, hearing allocations and judicial assignments "
            "around judicial requirements."
        ),
        "capabilities": [
            "Daily court list management",
            "Hearing allocation and scheduling",
            "Judicial assignment coordination",
            "Courtroom resource management",
        ],
        "users": "Listing officers and judicial office holders managing court schedules.",
    },
    "NOT": {
        "summary": (
            "GOV.UK Notify integration sends emails, SMS messages and letters to users from one "
            "notification service."
        ),
        "capabilities": [
            "Email notifications",
            "SMS notifications",
            "Letter generation and dispatch",
            "Template-based messaging",
            "Delivery tracking and status",
        ],
        "users": "Everyone receiving case updates, hearing notifications or alerts from HMCTS services.",
    },
    "REF": {
        "summary": (
            "Reference Data holds the authoritative shared lists used across services: courts, "
            "organisations, categories and other reference information."
        ),
        "capabilities": [
            "Centralised reference data storage",
            "Court and organisation directories",
            "Category and classification management",
            "Data versioning and history",
            "API access for consuming services",
        ],
        "users": (
            "Administrators maintaining reference lists, and every service that reads them for "
            "dropdowns, validation and business rules."
        ),
    },
    "VHS": {
        "summary": (
            "Video Hearings Service runs secure remote hearings, integrated with case management "
            "and hearing scheduling."
        ),
        "capabilities": [
            "Secure video conferencing",
            "Hearing room management",
            "Participant management and invitations",
            "Recording and playback",
            "Integration with hearing management",
        ],
        "users": "Judges, legal representatives, witnesses and other participants attending remotely.",
    },
    "XUI": {
        "summary": (
            "Expert UI (XUI) is the interface framework for caseworkers and legal professionals "
            "managing cases, viewing case data and performing case operations."
        ),
        "capabilities": [
            "Case list and search interfaces",
            "Case detail views and navigation",
            "Form-based data entry",
            "Document viewing and management",
            "Task and work allocation views",
            "Accessibility compliance (WCAG 2.1)",
        ],
        "users": "Caseworkers, legal professionals and judicial office holders using the web interface.",
    },
}


def describe_component(component_code: str) -> dict:
    """Description for *component_code*; empty fields when none is catalogued."""
    entry = COMPONENT_DESCRIPTIONS.get((component_code or "").upper(), {})
    return {
        "summary": entry.get("summary", ""),
        "capabilities": list(entry.get("capabilities", [])),
        "users": entry.get("users", ""),
    }
