"""
Built-in tenant configurations.

Used when `TENANT_CONFIG_PATH` is not set. Storage limits are in MB.
"""

from typing import Any, Dict

DEFAULT_TENANTS: Dict[str, Dict[str, Any]] = {
    "luxgen": {
        "id": "luxgen",
        "slug": "luxgen",
        "name": "LuxGen Technologies",
        "domain": "luxgen.com",
        "features": [
            "user-management",
            "job-posting",
            "feed-management",
            "analytics",
            "reporting",
            "training-management",
            "assessment-tools",
            "certification-system",
        ],
        "limits": {
            "max_users": 1000,
            "max_storage": 1000000,
            "max_api_calls": 10000,
            "max_concurrent_sessions": 100,
            "data_retention_days": 365,
            "max_job_posts": 100,
            "max_training_programs": 50,
            "max_assessments": 200,
        },
        "branding": {
            "primary_color": "#FF6B35",
            "secondary_color": "#2C3E50",
            "logo": "https://luxgen.com/logo.png",
            "favicon": "https://luxgen.com/favicon.ico",
        },
        "security": {
            "encryption_enabled": True,
            "sso_enabled": False,
            "mfa_required": False,
            "password_policy": {
                "min_length": 8,
                "require_uppercase": True,
                "require_lowercase": True,
                "require_numbers": True,
                "require_special_chars": True,
                "max_age": 90,
            },
            "session_timeout": 3600,
            "ip_whitelist": [],
            "allowed_domains": ["luxgen.com", "*.luxgen.com"],
        },
        "data_retention": {
            "user_data": 365,
            "activity_logs": 90,
            "audit_logs": 2555,
            "temporary_data": 7,
            "backup_retention": 30,
            "training_records": 2555,
            "assessment_results": 2555,
        },
        "settings": {
            "notifications": {"email": True, "sms": False, "push": True},
            "integrations": {"calendar": "google", "storage": "aws-s3", "analytics": "google-analytics"},
        },
        "workflows": {
            "enabled": True,
            "available": [
                "job-post-management",
                "user-management",
                "feed-management",
                "training-workflow",
                "assessment-workflow",
            ],
        },
    },
    "demo": {
        "id": "demo",
        "slug": "demo",
        "name": "Demo Organization",
        "domain": "demo.luxgen.com",
        "features": ["user-management", "job-posting", "feed-management", "analytics"],
        "limits": {
            "max_users": 50,
            "max_storage": 100000,
            "max_api_calls": 1000,
            "max_concurrent_sessions": 10,
            "data_retention_days": 30,
            "max_job_posts": 10,
            "max_training_programs": 5,
            "max_assessments": 20,
        },
        "branding": {
            "primary_color": "#4A90E2",
            "secondary_color": "#7B68EE",
            "logo": "https://demo.luxgen.com/logo.png",
            "favicon": "https://demo.luxgen.com/favicon.ico",
        },
        "security": {
            "encryption_enabled": True,
            "sso_enabled": False,
            "mfa_required": False,
            "password_policy": {
                "min_length": 6,
                "require_uppercase": False,
                "require_lowercase": True,
                "require_numbers": True,
                "require_special_chars": False,
                "max_age": 180,
            },
            "session_timeout": 7200,
            "ip_whitelist": [],
            "allowed_domains": ["demo.luxgen.com"],
        },
        "data_retention": {
            "user_data": 30,
            "activity_logs": 7,
            "audit_logs": 90,
            "temporary_data": 1,
            "backup_retention": 7,
            "training_records": 90,
            "assessment_results": 90,
        },
        "settings": {
            "notifications": {"email": True, "sms": False, "push": False},
            "integrations": {"storage": "local"},
        },
        "workflows": {
            "enabled": True,
            "available": ["job-post-management", "user-management", "feed-management"],
        },
    },
    "test": {
        "id": "test",
        "slug": "test",
        "name": "Test Tenant",
        "domain": "test.luxgen.com",
        "features": ["user-management", "analytics"],
        "limits": {
            "max_users": 10,
            "max_storage": 10000,
            "max_api_calls": 100,
            "max_concurrent_sessions": 5,
            "data_retention_days": 7,
            "max_job_posts": 5,
            "max_training_programs": 2,
            "max_assessments": 5,
        },
        "workflows": {"enabled": False, "available": []},
    },
}
