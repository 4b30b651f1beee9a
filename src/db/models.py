"""Database table name constants and type references."""

# Table names used in Supabase queries
USERS = "users"
REFRESH_TOKENS = "refresh_tokens"
ONE_TIME_TOKENS = "one_time_tokens"

# User roles (closed set)
ROLE_ADMIN = "admin"
ROLE_SERVICE_PROVIDER = "service_provider"
ROLE_CUSTOMER = "customer"
VALID_ROLES = {ROLE_ADMIN, ROLE_SERVICE_PROVIDER, ROLE_CUSTOMER}

# One-time token kinds
KIND_EMAIL_VERIFICATION = "email_verification"
KIND_PASSWORD_RESET = "password_reset"
KIND_MAGIC_LOGIN = "magic_login"

# Columns safe to return to clients (no password hash)
PUBLIC_USER_COLUMNS = "id, email, display_name, phone, role, email_verified, created_at, updated_at"
